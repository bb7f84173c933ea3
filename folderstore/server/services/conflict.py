import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import QuotaConfig
from ..context import RequestContext
from ..db.models.folder import FolderDO
from ..db.session import DatabaseSessionManager
from ..exceptions import FolderNotFoundException, InvalidOperationException
from .file import FileStore
from .tree import FolderTree

logger = logging.getLogger(__name__)


class ConflictChecker:
    """Read-only checks run before a move, copy or upload."""

    def __init__(
        self, session_manager: DatabaseSessionManager, quota: QuotaConfig
    ) -> None:
        self.session_manager = session_manager
        self.quota = quota

    async def check_cycle(
        self, session: AsyncSession, folder_ids: list[int], dest_id: int
    ) -> None:
        """Raise if `dest_id` is one of the folders or lies below one of them."""
        tree = FolderTree(session)
        for folder_id in folder_ids:
            if folder_id == dest_id or await tree.is_ancestor(folder_id, dest_id):
                raise InvalidOperationException(
                    f"Cannot move or copy folder {folder_id} into itself or its subfolder {dest_id}"
                )

    async def can_move_or_copy(
        self, ctx: RequestContext, folder_ids: list[int], dest_id: int
    ) -> dict[int, str]:
        """Find files that would collide when the folders land in `dest_id`.

        A source folder whose title (ignoring case) already exists under the
        destination is merged into that folder. Every file of the source whose
        title exists in the merge target is reported by file id, and the
        subfolders are checked against the merge target the same way.
        """
        async with self.session_manager.session() as session:
            conflicts: dict[int, str] = {}
            await self._collect(session, ctx, folder_ids, dest_id, conflicts)
        return conflicts

    async def _collect(
        self,
        session: AsyncSession,
        ctx: RequestContext,
        folder_ids: list[int],
        dest_id: int,
        conflicts: dict[int, str],
    ) -> None:
        await self.check_cycle(session, folder_ids, dest_id)
        files = FileStore(session)
        for folder_id in folder_ids:
            result = await session.execute(
                select(FolderDO.title).where(
                    FolderDO.tenant_id == ctx.tenant_id, FolderDO.id == folder_id
                )
            )
            title = result.scalar_one_or_none()
            if title is None:
                continue

            result = await session.execute(
                select(FolderDO.id)
                .where(
                    FolderDO.tenant_id == ctx.tenant_id,
                    FolderDO.parent_id == dest_id,
                    func.lower(FolderDO.title) == title.lower(),
                )
                .limit(1)
            )
            merge_id = result.scalar_one_or_none()
            if merge_id is None:
                continue

            for file_do in await files.find_title_conflicts(
                ctx.tenant_id, folder_id, merge_id
            ):
                conflicts[file_do.id] = file_do.title

            result = await session.execute(
                select(FolderDO.id).where(
                    FolderDO.tenant_id == ctx.tenant_id,
                    FolderDO.parent_id == folder_id,
                )
            )
            children = list(result.scalars().all())
            if children:
                await self._collect(session, ctx, children, merge_id, conflicts)

    async def get_max_upload_size(
        self, ctx: RequestContext, folder_id: int, chunked: bool = False
    ) -> int:
        """Return the largest upload in bytes currently allowed into a folder.

        In personal mode the limit is further capped by the space the acting
        user has left.
        """
        limit = (
            self.quota.max_chunked_upload_size
            if chunked
            else self.quota.max_upload_size
        )
        async with self.session_manager.session() as session:
            result = await session.execute(
                select(FolderDO.id).where(
                    FolderDO.tenant_id == ctx.tenant_id, FolderDO.id == folder_id
                )
            )
            if result.scalar_one_or_none() is None:
                raise FolderNotFoundException(f"Folder {folder_id} not found")
            if not self.quota.personal_mode:
                return limit
            used = await FileStore(session).get_used_space(ctx.tenant_id, ctx.actor_id)

        remaining = max(self.quota.personal_max_space - used, 0)
        return min(limit, remaining)
