import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from folderstore.models.folder import FolderType

from ..constants import (
    BUNCH_COMMON,
    BUNCH_FAVORITES,
    BUNCH_FOLDER_TYPES,
    BUNCH_MY,
    BUNCH_PRIVACY,
    BUNCH_PROJECTS,
    BUNCH_RECENT,
    BUNCH_SHARE,
    BUNCH_TEMPLATES,
    BUNCH_TRASH,
    FILES_MODULE,
    ROOT_PARENT_ID,
    USER_OWNED_BUNCHES,
)
from ..context import RequestContext
from ..db.models.folder import BunchObjectDO
from ..db.session import DatabaseSessionManager
from ..exceptions import InvalidArgumentException
from ..utils.titles import bunch_key
from .folder import Folder, FolderService

logger = logging.getLogger(__name__)


class BunchService:
    """Registry of well-known folders addressed by a symbolic key.

    A key has the form `module/bunch/data`, for example `files/my/<user id>`
    for the personal root of a user. The first lookup with `create=True`
    creates the folder and binds it to the key in one transaction.
    """

    def __init__(
        self, session_manager: DatabaseSessionManager, folder_service: FolderService
    ) -> None:
        self.session_manager = session_manager
        self.folder_service = folder_service

    async def get_folder_id(
        self,
        ctx: RequestContext,
        module: str,
        bunch: str,
        data: str | None,
        create: bool = True,
    ) -> int:
        """Resolve a key to its folder id, creating the folder if requested.

        Returns 0 when the key is unbound and `create` is False.
        """
        if not module:
            raise InvalidArgumentException("module is required")
        if not bunch:
            raise InvalidArgumentException("bunch is required")

        key = bunch_key(module, bunch, data)
        folder_id = await self._lookup(ctx, key)
        if folder_id or not create:
            return folder_id
        return await self._create(ctx, key, bunch, data)

    async def get_folder_ids(
        self,
        ctx: RequestContext,
        module: str,
        bunch: str,
        data: list[str],
        create: bool = True,
    ) -> list[int]:
        """Resolve several keys that differ only in `data`.

        Bound keys return their existing folder. The result is in the order
        of `data`.
        """
        if not module:
            raise InvalidArgumentException("module is required")
        if not bunch:
            raise InvalidArgumentException("bunch is required")

        keys = [bunch_key(module, bunch, item) for item in data]
        async with self.session_manager.session() as session:
            result = await session.execute(
                select(BunchObjectDO.right_node, BunchObjectDO.left_node).where(
                    BunchObjectDO.tenant_id == ctx.tenant_id,
                    BunchObjectDO.right_node.in_(keys),
                )
            )
            existing = {key: int(node) for key, node in result.all()}

        folder_ids = []
        for key, item in zip(keys, data):
            if key in existing:
                folder_ids.append(existing[key])
            elif create:
                folder_ids.append(await self._create(ctx, key, bunch, item))
            else:
                folder_ids.append(ROOT_PARENT_ID)
        return folder_ids

    async def get_bunch_object_id(self, ctx: RequestContext, folder_id: int) -> str:
        """Reverse lookup of the key bound to a folder, empty if none."""
        async with self.session_manager.session() as session:
            result = await session.execute(
                select(BunchObjectDO.right_node)
                .where(
                    BunchObjectDO.tenant_id == ctx.tenant_id,
                    BunchObjectDO.left_node == str(folder_id),
                )
                .limit(1)
            )
            return result.scalar_one_or_none() or ""

    async def get_bunch_object_ids(
        self, ctx: RequestContext, folder_ids: list[int]
    ) -> dict[int, str]:
        """Map each bound folder id to its key. Unbound ids are left out."""
        async with self.session_manager.session() as session:
            result = await session.execute(
                select(BunchObjectDO.left_node, BunchObjectDO.right_node).where(
                    BunchObjectDO.tenant_id == ctx.tenant_id,
                    BunchObjectDO.left_node.in_([str(i) for i in folder_ids]),
                )
            )
            return {int(node): key for node, key in result.all()}

    async def _lookup(self, ctx: RequestContext, key: str) -> int:
        async with self.session_manager.session() as session:
            result = await session.execute(
                select(BunchObjectDO.left_node).where(
                    BunchObjectDO.tenant_id == ctx.tenant_id,
                    BunchObjectDO.right_node == key,
                )
            )
            node = result.scalar_one_or_none()
        return int(node) if node else ROOT_PARENT_ID

    async def _create(
        self, ctx: RequestContext, key: str, bunch: str, data: str | None
    ) -> int:
        folder_type = BUNCH_FOLDER_TYPES.get(bunch, FolderType.BUNCH)
        folder = Folder(
            parent_id=ROOT_PARENT_ID,
            folder_type=folder_type,
            title=bunch if folder_type != FolderType.BUNCH else key,
        )
        if bunch in USER_OWNED_BUNCHES and data:
            folder.create_by = data

        try:
            async with self.session_manager.session() as session:
                folder_id = await self.folder_service.save(ctx, folder, session=session)
                session.add(
                    BunchObjectDO(
                        tenant_id=ctx.tenant_id,
                        right_node=key,
                        left_node=str(folder_id),
                    )
                )
                await session.commit()
        except IntegrityError:
            # Another request bound the key first; its folder wins.
            folder_id = await self._lookup(ctx, key)
            if not folder_id:
                raise
            logger.info(f"Bunch {key} was created concurrently, using folder {folder_id}")
            return folder_id

        logger.info(f"Created bunch folder {folder_id} for {key}")
        await self.folder_service.after_save(ctx, folder)
        return folder_id

    async def get_folder_id_user(
        self, ctx: RequestContext, user_id: str | None = None, create: bool = True
    ) -> int:
        return await self.get_folder_id(
            ctx, FILES_MODULE, BUNCH_MY, user_id or ctx.actor_id, create
        )

    async def get_folder_id_trash(
        self, ctx: RequestContext, user_id: str | None = None, create: bool = True
    ) -> int:
        return await self.get_folder_id(
            ctx, FILES_MODULE, BUNCH_TRASH, user_id or ctx.actor_id, create
        )

    async def get_folder_id_privacy(
        self, ctx: RequestContext, user_id: str | None = None, create: bool = True
    ) -> int:
        return await self.get_folder_id(
            ctx, FILES_MODULE, BUNCH_PRIVACY, user_id or ctx.actor_id, create
        )

    async def get_folder_id_common(self, ctx: RequestContext, create: bool = True) -> int:
        return await self.get_folder_id(ctx, FILES_MODULE, BUNCH_COMMON, None, create)

    async def get_folder_id_share(self, ctx: RequestContext, create: bool = True) -> int:
        return await self.get_folder_id(ctx, FILES_MODULE, BUNCH_SHARE, None, create)

    async def get_folder_id_recent(self, ctx: RequestContext, create: bool = True) -> int:
        return await self.get_folder_id(ctx, FILES_MODULE, BUNCH_RECENT, None, create)

    async def get_folder_id_favorites(
        self, ctx: RequestContext, create: bool = True
    ) -> int:
        return await self.get_folder_id(
            ctx, FILES_MODULE, BUNCH_FAVORITES, None, create
        )

    async def get_folder_id_templates(
        self, ctx: RequestContext, create: bool = True
    ) -> int:
        return await self.get_folder_id(
            ctx, FILES_MODULE, BUNCH_TEMPLATES, None, create
        )

    async def get_folder_id_projects(
        self, ctx: RequestContext, create: bool = True
    ) -> int:
        return await self.get_folder_id(ctx, FILES_MODULE, BUNCH_PROJECTS, None, create)
