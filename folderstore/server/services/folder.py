import logging
import time
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import Select, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from folderstore.models.folder import (
    FILE_ONLY_FILTERS,
    FileEntryType,
    FilterType,
    FolderType,
    OrderBy,
    SortedByType,
)

from ..constants import (
    DEFAULT_MAX_TITLE_LENGTH,
    DISPLAY_TITLES,
    PROTECTED_FOLDER_TYPES,
    ROOT_PARENT_ID,
)
from ..context import RequestContext
from ..db.models.folder import BunchObjectDO, FolderDO, FolderTreeDO
from ..db.models.security import SecurityDO, TagDO, TagLinkDO
from ..db.session import DatabaseSessionManager
from ..events import FolderDeletedEvent, FolderUpdatedEvent, LocalEventBus
from ..exceptions import (
    FolderNotFoundException,
    ForbiddenException,
    InvalidArgumentException,
)
from ..utils.titles import replace_invalid_chars_and_truncate
from .counts import FolderCounter
from .directory import UserDirectory
from .file import FileStore
from .index import FolderIndexer
from .tree import FolderTree

logger = logging.getLogger(__name__)


__all__ = [
    "Folder",
    "FolderService",
]


@dataclass
class Folder:
    """Domain object representing a folder.

    The root fields and `shared` are derived from the ancestry on every read
    and never stored.
    """

    id: int = 0
    parent_id: int = ROOT_PARENT_ID
    title: str = ""
    folder_type: FolderType = FolderType.DEFAULT
    create_by: str = ""
    create_on: int = 0
    modified_by: str = ""
    modified_on: int = 0
    folders_count: int = 0
    files_count: int = 0
    tenant_id: int = 0
    root_folder_id: int = 0
    root_folder_type: FolderType = FolderType.DEFAULT
    root_folder_creator: str = ""
    shared: bool = False

    @property
    def display_title(self) -> str:
        """Title shown to users; system roots have a fixed name."""
        return DISPLAY_TITLES.get(self.folder_type, self.title)


def _to_folder(node: FolderDO, root: FolderDO | None, shared: bool) -> Folder:
    """Convert a FolderDO and its root to a Folder."""
    folder = Folder(
        id=node.id,
        parent_id=node.parent_id,
        title=node.title,
        folder_type=FolderType.from_value(node.folder_type),
        create_by=node.create_by,
        create_on=int(node.create_on),
        modified_by=node.modified_by,
        modified_on=int(node.modified_on),
        folders_count=node.folders_count or 0,
        files_count=node.files_count or 0,
        tenant_id=node.tenant_id,
        shared=shared,
    )
    if root is not None:
        folder.root_folder_id = root.id
        folder.root_folder_type = FolderType.from_value(root.folder_type)
        folder.root_folder_creator = root.create_by

    if folder.folder_type != FolderType.DEFAULT:
        if folder.parent_id == ROOT_PARENT_ID:
            folder.root_folder_type = folder.folder_type
        if not folder.root_folder_creator:
            folder.root_folder_creator = folder.create_by
        if not folder.root_folder_id:
            folder.root_folder_id = folder.id
    return folder


def _apply_order(stmt: Select, order_by: OrderBy) -> Select:
    match order_by.sorted_by:
        case SortedByType.AUTHOR:
            column = FolderDO.create_by
        case SortedByType.AZ:
            column = FolderDO.title
        case SortedByType.DATE_AND_TIME:
            column = FolderDO.modified_on
        case SortedByType.DATE_AND_TIME_CREATION:
            column = FolderDO.create_on
        case _:
            return stmt.order_by(FolderDO.title)
    return stmt.order_by(column.asc() if order_by.is_asc else column.desc())


def _escape_like(word: str) -> str:
    return word.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class FolderService:
    """Folder record store.

    Reads attach the root metadata of each folder. Structural writes run in a
    single transaction together with the closure table changes.
    """

    def __init__(
        self,
        session_manager: DatabaseSessionManager,
        indexer: FolderIndexer,
        user_directory: UserDirectory,
        event_bus: LocalEventBus,
        counter: FolderCounter,
        max_title_length: int = DEFAULT_MAX_TITLE_LENGTH,
    ) -> None:
        self.session_manager = session_manager
        self.indexer = indexer
        self.user_directory = user_directory
        self.event_bus = event_bus
        self.counter = counter
        self.max_title_length = max_title_length

    async def load_folder_do(
        self, session: AsyncSession, ctx: RequestContext, folder_id: int
    ) -> FolderDO | None:
        """Load the row of a folder of the current tenant."""
        stmt = select(FolderDO).where(
            FolderDO.tenant_id == ctx.tenant_id, FolderDO.id == folder_id
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def to_folders(
        self,
        session: AsyncSession,
        ctx: RequestContext,
        nodes: list[FolderDO],
        check_share: bool = True,
    ) -> list[Folder]:
        """Attach root metadata and share state to folder rows.

        Uses one query for the ancestry of all rows, one for their roots and
        one for share grants on any of the ancestors.
        """
        if not nodes:
            return []
        ids = [node.id for node in nodes]
        result = await session.execute(
            select(
                FolderTreeDO.folder_id, FolderTreeDO.parent_id, FolderTreeDO.level
            ).where(FolderTreeDO.folder_id.in_(ids))
        )
        ancestry: dict[int, list[tuple[int, int]]] = defaultdict(list)
        for folder_id, ancestor_id, level in result.all():
            ancestry[folder_id].append((level, ancestor_id))

        root_ids = {
            folder_id: max(edges)[1] for folder_id, edges in ancestry.items()
        }
        roots: dict[int, FolderDO] = {}
        if root_ids:
            result = await session.execute(
                select(FolderDO).where(FolderDO.id.in_(list(set(root_ids.values()))))
            )
            roots = {root.id: root for root in result.scalars().all()}

        shared_ids: set[str] = set()
        if check_share:
            ancestor_ids = {
                str(ancestor_id)
                for edges in ancestry.values()
                for _, ancestor_id in edges
            }
            if ancestor_ids:
                result = await session.execute(
                    select(SecurityDO.entry_id).where(
                        SecurityDO.tenant_id == ctx.tenant_id,
                        SecurityDO.entry_type == FileEntryType.FOLDER.value,
                        SecurityDO.entry_id.in_(list(ancestor_ids)),
                    )
                )
                shared_ids = set(result.scalars().all())

        folders = []
        for node in nodes:
            edges = ancestry.get(node.id, [])
            shared = any(str(ancestor_id) in shared_ids for _, ancestor_id in edges)
            root = roots.get(root_ids.get(node.id, ROOT_PARENT_ID))
            folders.append(_to_folder(node, root, shared))
        return folders

    async def get(self, ctx: RequestContext, folder_id: int) -> Folder:
        """Get a folder by id."""
        async with self.session_manager.session() as session:
            node = await self.load_folder_do(session, ctx, folder_id)
            if node is None:
                raise FolderNotFoundException(f"Folder {folder_id} not found")
            return (await self.to_folders(session, ctx, [node]))[0]

    async def get_by_title(
        self, ctx: RequestContext, title: str, parent_id: int
    ) -> Folder | None:
        """Get the earliest created folder with the title under a parent."""
        if not title:
            raise InvalidArgumentException("title is required")
        async with self.session_manager.session() as session:
            stmt = (
                select(FolderDO)
                .where(
                    FolderDO.tenant_id == ctx.tenant_id,
                    FolderDO.title == title,
                    FolderDO.parent_id == parent_id,
                )
                .order_by(FolderDO.create_on, FolderDO.id)
                .limit(1)
            )
            result = await session.execute(stmt)
            node = result.scalar_one_or_none()
            if node is None:
                return None
            return (await self.to_folders(session, ctx, [node]))[0]

    async def get_root_folder(self, ctx: RequestContext, folder_id: int) -> Folder:
        """Get the topmost ancestor of a folder."""
        async with self.session_manager.session() as session:
            if await self.load_folder_do(session, ctx, folder_id) is None:
                raise FolderNotFoundException(f"Folder {folder_id} not found")
            root_id = await FolderTree(session).get_root(folder_id)
        return await self.get(ctx, root_id)

    async def get_root_folder_by_file(self, ctx: RequestContext, file_id: int) -> Folder:
        """Get the root folder of the folder a file resides in."""
        async with self.session_manager.session() as session:
            file_do = await FileStore(session).get_file(ctx.tenant_id, file_id)
            if file_do is None:
                raise FolderNotFoundException(f"File {file_id} not found")
            root_id = await FolderTree(session).get_root(file_do.folder_id)
        return await self.get(ctx, root_id)

    async def get_parent_folders(self, ctx: RequestContext, folder_id: int) -> list[Folder]:
        """Return the path from the root down to and including the folder."""
        async with self.session_manager.session() as session:
            if await self.load_folder_do(session, ctx, folder_id) is None:
                raise FolderNotFoundException(f"Folder {folder_id} not found")
            stmt = (
                select(FolderDO)
                .join(FolderTreeDO, FolderTreeDO.parent_id == FolderDO.id)
                .where(
                    FolderDO.tenant_id == ctx.tenant_id,
                    FolderTreeDO.folder_id == folder_id,
                )
                .order_by(FolderTreeDO.level.desc())
            )
            result = await session.execute(stmt)
            return await self.to_folders(session, ctx, list(result.scalars().all()))

    async def list_folders(
        self,
        ctx: RequestContext,
        parent_id: int,
        order_by: OrderBy | None = None,
        filter_type: FilterType = FilterType.NONE,
        subject_id: str | None = None,
        subject_group: bool = False,
        search_text: str | None = None,
        with_subfolders: bool = False,
    ) -> list[Folder]:
        """List the folders under a parent.

        With `with_subfolders` every descendant is listed, not only the
        direct children.
        """
        if filter_type in FILE_ONLY_FILTERS:
            return []
        if order_by is None:
            order_by = OrderBy(SortedByType.DATE_AND_TIME, False)

        async with self.session_manager.session() as session:
            if with_subfolders:
                stmt = (
                    select(FolderDO)
                    .join(FolderTreeDO, FolderTreeDO.folder_id == FolderDO.id)
                    .where(
                        FolderDO.tenant_id == ctx.tenant_id,
                        FolderTreeDO.parent_id == parent_id,
                        FolderTreeDO.level != 0,
                    )
                )
            else:
                stmt = select(FolderDO).where(
                    FolderDO.tenant_id == ctx.tenant_id,
                    FolderDO.parent_id == parent_id,
                )
            stmt = await self._apply_search(ctx, stmt, search_text)
            stmt = await self._apply_subject(ctx, stmt, subject_id, subject_group)
            stmt = _apply_order(stmt, order_by)

            result = await session.execute(stmt)
            return await self.to_folders(session, ctx, list(result.scalars().all()))

    async def list_folders_by_ids(
        self,
        ctx: RequestContext,
        folder_ids: list[int],
        filter_type: FilterType = FilterType.NONE,
        subject_id: str | None = None,
        subject_group: bool = False,
        search_text: str | None = None,
        search_subfolders: bool = False,
        check_share: bool = True,
    ) -> list[Folder]:
        """Get folders by id, or with `search_subfolders` the subtrees below them."""
        if filter_type in FILE_ONLY_FILTERS or not folder_ids:
            return []

        async with self.session_manager.session() as session:
            if search_subfolders:
                stmt = (
                    select(FolderDO)
                    .join(FolderTreeDO, FolderTreeDO.folder_id == FolderDO.id)
                    .where(
                        FolderDO.tenant_id == ctx.tenant_id,
                        FolderTreeDO.parent_id.in_(folder_ids),
                    )
                    .distinct()
                )
            else:
                stmt = select(FolderDO).where(
                    FolderDO.tenant_id == ctx.tenant_id, FolderDO.id.in_(folder_ids)
                )
            stmt = await self._apply_search(ctx, stmt, search_text)
            stmt = await self._apply_subject(ctx, stmt, subject_id, subject_group)

            result = await session.execute(stmt)
            return await self.to_folders(
                session, ctx, list(result.scalars().all()), check_share=check_share
            )

    async def search_folders(
        self, ctx: RequestContext, text: str, bunch: bool = False
    ) -> list[Folder]:
        """Search folder titles.

        With `bunch` only folders below BUNCH roots are returned, otherwise
        only folders below user and common roots.
        """
        if not text:
            return []
        async with self.session_manager.session() as session:
            stmt = select(FolderDO).where(FolderDO.tenant_id == ctx.tenant_id)
            stmt = await self._apply_search(ctx, stmt, text)
            result = await session.execute(stmt)
            folders = await self.to_folders(session, ctx, list(result.scalars().all()))

        if bunch:
            return [f for f in folders if f.root_folder_type == FolderType.BUNCH]
        return [
            f
            for f in folders
            if f.root_folder_type in (FolderType.USER, FolderType.COMMON)
        ]

    async def _apply_search(
        self, ctx: RequestContext, stmt: Select, search_text: str | None
    ) -> Select:
        if not search_text:
            return stmt
        found, ids = await self.indexer.try_match_ids(ctx.tenant_id, search_text)
        if found:
            return stmt.where(FolderDO.id.in_(list(ids)))
        words = [_escape_like(word) for word in search_text.split()]
        return stmt.where(
            or_(*[FolderDO.title.ilike(f"%{word}%", escape="\\") for word in words])
        )

    async def _apply_subject(
        self,
        ctx: RequestContext,
        stmt: Select,
        subject_id: str | None,
        subject_group: bool,
    ) -> Select:
        if not subject_id:
            return stmt
        if subject_group:
            members = await self.user_directory.get_group_members(
                ctx.tenant_id, subject_id
            )
            return stmt.where(FolderDO.create_by.in_(members))
        return stmt.where(FolderDO.create_by == subject_id)

    async def save(
        self,
        ctx: RequestContext,
        folder: Folder,
        session: AsyncSession | None = None,
    ) -> int:
        """Insert or update a folder and return its id.

        A folder with an existing id has its title, owner and modification
        stamp updated. Otherwise a new row is inserted and linked into the
        closure table below `folder.parent_id`.

        When `session` is given the save joins that transaction and the caller
        commits and then calls `after_save`.
        """
        if folder is None:
            raise InvalidArgumentException("folder is required")
        if session is not None:
            return await self._save(session, ctx, folder)

        async with self.session_manager.session() as session:
            folder_id = await self._save(session, ctx, folder)
            await session.commit()
        await self.after_save(ctx, folder)
        return folder_id

    async def _save(
        self, session: AsyncSession, ctx: RequestContext, folder: Folder
    ) -> int:
        # Bunch folders keep their symbolic key as the title.
        folder.title = replace_invalid_chars_and_truncate(
            folder.title,
            self.max_title_length,
            replace_chars=folder.folder_type != FolderType.BUNCH,
        )
        if not folder.title:
            raise InvalidArgumentException("Folder title is required")

        now = int(time.time() * 1000)
        folder.tenant_id = ctx.tenant_id
        folder.modified_on = now
        folder.modified_by = ctx.actor_id
        if not folder.create_on:
            folder.create_on = now
        if not folder.create_by:
            folder.create_by = ctx.actor_id

        if folder.id and (node := await self.load_folder_do(session, ctx, folder.id)):
            node.title = folder.title
            node.create_by = folder.create_by
            node.modified_on = folder.modified_on
            node.modified_by = folder.modified_by
            await session.flush()
            return node.id

        if folder.parent_id != ROOT_PARENT_ID:
            if await self.load_folder_do(session, ctx, folder.parent_id) is None:
                raise FolderNotFoundException(
                    f"Parent folder {folder.parent_id} not found"
                )

        node = FolderDO(
            tenant_id=ctx.tenant_id,
            parent_id=folder.parent_id,
            title=folder.title,
            folder_type=folder.folder_type.value,
            create_by=folder.create_by,
            create_on=folder.create_on,
            modified_by=folder.modified_by,
            modified_on=folder.modified_on,
            folders_count=0,
            files_count=0,
        )
        session.add(node)
        await session.flush()
        folder.id = node.id

        await FolderTree(session).insert_subtree(folder.id, folder.parent_id)
        logger.info(
            f"Created folder {folder.id} '{folder.title}' under {folder.parent_id} (tenant {ctx.tenant_id})"
        )
        return folder.id

    async def after_save(self, ctx: RequestContext, folder: Folder) -> None:
        """Post-commit work for a saved folder: counts and re-indexing."""
        await self.counter.recalculate(folder.id)
        self.event_bus.publish(
            FolderUpdatedEvent(
                tenant_id=ctx.tenant_id, folder_id=folder.id, title=folder.title
            )
        )

    async def delete(self, ctx: RequestContext, folder_id: int) -> None:
        """Delete a folder with all of its subfolders and everything attached.

        Files, tag links, security rows and bunch bindings of every removed
        folder are deleted in the same transaction.
        """
        if not folder_id:
            raise InvalidArgumentException("folder_id is required")

        async with self.session_manager.session() as session:
            node = await self.load_folder_do(session, ctx, folder_id)
            if node is None:
                raise FolderNotFoundException(f"Folder {folder_id} not found")
            if FolderType.from_value(node.folder_type) in PROTECTED_FOLDER_TYPES:
                raise ForbiddenException(
                    f"It is forbidden to delete the system folder {folder_id}"
                )
            parent_id = node.parent_id

            ids = sorted(await FolderTree(session).delete_subtree(folder_id))
            entry_ids = [str(i) for i in ids]

            await session.execute(
                delete(FolderDO)
                .where(FolderDO.tenant_id == ctx.tenant_id, FolderDO.id.in_(ids))
                .execution_options(synchronize_session=False)
            )
            await FileStore(session).delete_in_folders(ctx.tenant_id, ids)
            await session.execute(
                delete(TagLinkDO)
                .where(
                    TagLinkDO.tenant_id == ctx.tenant_id,
                    TagLinkDO.entry_type == FileEntryType.FOLDER.value,
                    TagLinkDO.entry_id.in_(entry_ids),
                )
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                delete(TagDO)
                .where(
                    TagDO.tenant_id == ctx.tenant_id,
                    TagDO.id.not_in(
                        select(TagLinkDO.tag_id).where(
                            TagLinkDO.tenant_id == ctx.tenant_id
                        )
                    ),
                )
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                delete(SecurityDO)
                .where(
                    SecurityDO.tenant_id == ctx.tenant_id,
                    SecurityDO.entry_type == FileEntryType.FOLDER.value,
                    SecurityDO.entry_id.in_(entry_ids),
                )
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                delete(BunchObjectDO)
                .where(
                    BunchObjectDO.tenant_id == ctx.tenant_id,
                    BunchObjectDO.left_node.in_(entry_ids),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        logger.info(
            f"Deleted folder {folder_id} with {len(ids) - 1} subfolders (tenant {ctx.tenant_id})"
        )
        self.event_bus.publish(FolderDeletedEvent(tenant_id=ctx.tenant_id, folder_ids=ids))
        await self.counter.recalculate(parent_id)

    async def reassign_folders(
        self, ctx: RequestContext, folder_ids: list[int], new_owner_id: str
    ) -> None:
        """Change the owner of the given folders."""
        async with self.session_manager.session() as session:
            await session.execute(
                update(FolderDO)
                .where(FolderDO.tenant_id == ctx.tenant_id, FolderDO.id.in_(folder_ids))
                .values(create_by=new_owner_id)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def get_items_count(self, ctx: RequestContext, folder_id: int) -> int:
        """Count all subfolders and files below a folder, at any depth."""
        async with self.session_manager.session() as session:
            folders = await FolderTree(session).get_descendants(folder_id, min_level=1)
            files = await FileStore(session).count_files_in_subtree(
                ctx.tenant_id, folder_id
            )
        return len(folders) + files

    async def is_empty(self, ctx: RequestContext, folder_id: int) -> bool:
        return await self.get_items_count(ctx, folder_id) == 0

    @staticmethod
    def use_trash_for_remove(folder: Folder) -> bool:
        """Whether removing the folder should go through the trash."""
        return (
            folder.root_folder_type not in (FolderType.TRASH, FolderType.PRIVACY)
            and folder.folder_type != FolderType.BUNCH
        )
