import logging
import time

from folderstore.models.folder import FolderType

from ..context import RequestContext
from ..db.session import DatabaseSessionManager
from ..events import FolderUpdatedEvent, LocalEventBus
from ..exceptions import (
    FolderNotFoundException,
    ForbiddenException,
    InvalidArgumentException,
    UnsupportedDestinationException,
)
from ..utils.titles import replace_invalid_chars_and_truncate
from .conflict import ConflictChecker
from .counts import FolderCounter
from .cross_store import CrossStoreCopier, FolderRef, ForeignKey, LocalId
from .folder import Folder, FolderService
from .tree import FolderTree

logger = logging.getLogger(__name__)


class HierarchyService:
    """Structural mutations of the folder hierarchy.

    Destinations are either a `LocalId` in this store or a `ForeignKey` in a
    foreign store. Local mutations change the folder row and the closure
    table in one transaction. Counts and re-indexing follow after commit.
    """

    def __init__(
        self,
        session_manager: DatabaseSessionManager,
        folder_service: FolderService,
        conflict_checker: ConflictChecker,
        cross_store: CrossStoreCopier,
        counter: FolderCounter,
        event_bus: LocalEventBus,
    ) -> None:
        self.session_manager = session_manager
        self.folder_service = folder_service
        self.conflict_checker = conflict_checker
        self.cross_store = cross_store
        self.counter = counter
        self.event_bus = event_bus

    async def move(self, ctx: RequestContext, folder_id: int, dest: FolderRef) -> FolderRef:
        """Move a folder with its subtree and return where it now lives."""
        match dest:
            case LocalId(id=dest_id):
                await self._move_local(ctx, folder_id, dest_id)
                return LocalId(folder_id)
            case ForeignKey(key=key):
                await self._check_movable(ctx, folder_id)
                result = await self.cross_store.copy_folder(
                    ctx, folder_id, key, delete_source=True
                )
                return ForeignKey(result.folder_id)
            case _:
                raise UnsupportedDestinationException(f"Unsupported destination {dest!r}")

    async def copy(self, ctx: RequestContext, folder_id: int, dest: FolderRef) -> FolderRef:
        """Copy a folder and return the id of the copy.

        A local copy creates only the folder itself below the destination.
        A foreign copy carries the whole subtree with its files.
        """
        match dest:
            case LocalId(id=dest_id):
                copy = await self._copy_local(ctx, folder_id, dest_id)
                return LocalId(copy.id)
            case ForeignKey(key=key):
                result = await self.cross_store.copy_folder(
                    ctx, folder_id, key, delete_source=False
                )
                return ForeignKey(result.folder_id)
            case _:
                raise UnsupportedDestinationException(f"Unsupported destination {dest!r}")

    async def can_move_or_copy(
        self, ctx: RequestContext, folder_ids: list[int], dest: FolderRef
    ) -> dict[int, str]:
        """Return colliding file titles by file id, empty when there are none.

        Foreign destinations are not checked for collisions.
        """
        match dest:
            case LocalId(id=dest_id):
                return await self.conflict_checker.can_move_or_copy(
                    ctx, folder_ids, dest_id
                )
            case ForeignKey():
                return {}
            case _:
                raise UnsupportedDestinationException(f"Unsupported destination {dest!r}")

    async def rename(self, ctx: RequestContext, folder_id: int, title: str) -> int:
        """Rename a folder and schedule its re-indexing."""
        title = replace_invalid_chars_and_truncate(
            title, self.folder_service.max_title_length
        )
        if not title:
            raise InvalidArgumentException("Folder title is required")

        async with self.session_manager.session() as session:
            node = await self.folder_service.load_folder_do(session, ctx, folder_id)
            if node is None:
                raise FolderNotFoundException(f"Folder {folder_id} not found")
            node.title = title
            node.modified_on = int(time.time() * 1000)
            node.modified_by = ctx.actor_id
            await session.commit()

        self.event_bus.publish(
            FolderUpdatedEvent(tenant_id=ctx.tenant_id, folder_id=folder_id, title=title)
        )
        return folder_id

    async def recalculate_counts(self, folder_id: int) -> None:
        await self.counter.recalculate(folder_id)

    async def _check_movable(self, ctx: RequestContext, folder_id: int) -> None:
        async with self.session_manager.session() as session:
            node = await self.folder_service.load_folder_do(session, ctx, folder_id)
        if node is None:
            raise FolderNotFoundException(f"Folder {folder_id} not found")
        if node.folder_type != FolderType.DEFAULT.value:
            raise ForbiddenException(
                f"It is forbidden to move the system folder {folder_id}"
            )

    async def _move_local(self, ctx: RequestContext, folder_id: int, dest_id: int) -> None:
        async with self.session_manager.session() as session:
            node = await self.folder_service.load_folder_do(session, ctx, folder_id)
            if node is None:
                raise FolderNotFoundException(f"Folder {folder_id} not found")
            if node.folder_type != FolderType.DEFAULT.value:
                raise ForbiddenException(
                    f"It is forbidden to move the system folder {folder_id}"
                )
            if await self.folder_service.load_folder_do(session, ctx, dest_id) is None:
                raise FolderNotFoundException(f"Folder {dest_id} not found")
            await self.conflict_checker.check_cycle(session, [folder_id], dest_id)

            old_parent_id = node.parent_id
            node.parent_id = dest_id
            node.modified_on = int(time.time() * 1000)
            node.modified_by = ctx.actor_id
            await session.flush()
            await FolderTree(session).relocate_subtree(folder_id, dest_id)
            await session.commit()
            title = node.title

        logger.info(f"Moved folder {folder_id} from {old_parent_id} to {dest_id}")
        await self.counter.recalculate(dest_id)
        if old_parent_id != dest_id:
            await self.counter.recalculate(old_parent_id)
        self.event_bus.publish(
            FolderUpdatedEvent(tenant_id=ctx.tenant_id, folder_id=folder_id, title=title)
        )

    async def _copy_local(self, ctx: RequestContext, folder_id: int, dest_id: int) -> Folder:
        source = await self.folder_service.get(ctx, folder_id)
        dest = await self.folder_service.get(ctx, dest_id)

        copy = Folder(
            parent_id=dest.id,
            title=source.title,
            folder_type=(
                FolderType.DEFAULT
                if source.folder_type == FolderType.BUNCH
                else source.folder_type
            ),
            root_folder_id=dest.root_folder_id,
            root_folder_type=dest.root_folder_type,
            root_folder_creator=dest.root_folder_creator,
        )
        await self.folder_service.save(ctx, copy)
        logger.info(f"Copied folder {folder_id} to {copy.id} under {dest_id}")
        return await self.folder_service.get(ctx, copy.id)
