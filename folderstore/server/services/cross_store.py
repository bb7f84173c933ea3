"""Moving and copying folders into a foreign backing store.

A foreign store (for example a third-party storage provider) has its own
folder and file records and string ids. There is no transaction spanning both
stores, so the subtree is written to the destination first, the destination
is verified, and only then is the local source deleted.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy import select

from ..context import RequestContext
from ..db.models.folder import FolderDO, FolderTreeDO
from ..db.session import DatabaseSessionManager
from ..exceptions import (
    FolderNotFoundException,
    FolderStoreException,
    UnsupportedDestinationException,
)
from .file import FileStore
from .folder import FolderService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalId:
    """A folder in this store."""

    id: int


@dataclass(frozen=True)
class ForeignKey:
    """A folder in a foreign store, addressed by its provider key."""

    key: str


FolderRef = LocalId | ForeignKey


@dataclass
class ForeignFolder:
    """A folder record as a foreign store reports it."""

    id: str
    parent_id: str
    title: str


class ForeignFolderStore(ABC):
    """Folder records of a foreign store."""

    @abstractmethod
    async def get_folder(self, folder_id: str) -> ForeignFolder | None:
        """Return the folder, or None if it does not exist."""

    @abstractmethod
    async def save_folder(self, parent_id: str, title: str) -> str:
        """Create a folder and return its id."""


class ForeignFileStore(ABC):
    """File records of a foreign store."""

    @abstractmethod
    async def save_file(self, folder_id: str, title: str, content_length: int) -> str:
        """Create a file and return its id."""


@dataclass
class ForeignStore:
    """Folder store, file store and id conversion of one foreign provider."""

    folder_store: ForeignFolderStore
    file_store: ForeignFileStore
    convert_id: Callable[[str], str] = lambda key: key


class StoreSelector(ABC):
    """Resolves a destination key to the foreign store that owns it."""

    @abstractmethod
    def get_store(self, key: str) -> ForeignStore:
        """Return the store for the key or raise UnsupportedDestinationException."""


class PrefixStoreSelector(StoreSelector):
    """Selects a store by the key prefix before the first `-`."""

    def __init__(self, stores: dict[str, ForeignStore] | None = None) -> None:
        self._stores = dict(stores or {})

    def register(self, prefix: str, store: ForeignStore) -> None:
        self._stores[prefix] = store

    def get_store(self, key: str) -> ForeignStore:
        prefix = key.split("-", 1)[0]
        if (store := self._stores.get(prefix)) is None:
            raise UnsupportedDestinationException(f"No store registered for {key}")
        return store


@dataclass
class CrossStoreResult:
    """Outcome of a cross-store copy."""

    folder_id: str
    """Id of the copied root folder in the foreign store."""

    id_map: dict[int, str] = field(default_factory=dict)
    """Local folder id to foreign folder id for the whole subtree."""

    file_id_map: dict[int, str] = field(default_factory=dict)
    """Local file id to foreign file id."""


class CrossStoreCopier:
    """Copies a local subtree into a foreign store, optionally moving it."""

    def __init__(
        self,
        session_manager: DatabaseSessionManager,
        folder_service: FolderService,
        selector: StoreSelector,
    ) -> None:
        self.session_manager = session_manager
        self.folder_service = folder_service
        self.selector = selector

    async def copy_folder(
        self,
        ctx: RequestContext,
        folder_id: int,
        dest_key: str,
        delete_source: bool = False,
    ) -> CrossStoreResult:
        """Copy the folder with its subfolders and files to `dest_key`.

        With `delete_source` the local subtree is removed once the copy is
        verified. A failure at any earlier point leaves the source untouched.
        """
        store = self.selector.get_store(dest_key)
        dest_id = store.convert_id(dest_key)
        if await store.folder_store.get_folder(dest_id) is None:
            raise FolderNotFoundException(f"Foreign folder {dest_key} not found")

        async with self.session_manager.session() as session:
            result = await session.execute(
                select(FolderDO)
                .join(FolderTreeDO, FolderTreeDO.folder_id == FolderDO.id)
                .where(
                    FolderDO.tenant_id == ctx.tenant_id,
                    FolderTreeDO.parent_id == folder_id,
                )
                .order_by(FolderTreeDO.level, FolderDO.id)
            )
            nodes = list(result.scalars().all())
            if not nodes:
                raise FolderNotFoundException(f"Folder {folder_id} not found")
            files = FileStore(session)
            files_by_folder = {
                node.id: await files.list_files(ctx.tenant_id, node.id)
                for node in nodes
            }

        copied = CrossStoreResult(folder_id="")
        for node in nodes:
            parent_id = dest_id if node.id == folder_id else copied.id_map[node.parent_id]
            new_id = await store.folder_store.save_folder(parent_id, node.title)
            copied.id_map[node.id] = new_id
            for file_do in files_by_folder[node.id]:
                copied.file_id_map[file_do.id] = await store.file_store.save_file(
                    new_id, file_do.title, file_do.content_length
                )
        copied.folder_id = copied.id_map[folder_id]

        if await store.folder_store.get_folder(copied.folder_id) is None:
            raise FolderStoreException(
                f"Copy of folder {folder_id} to {dest_key} could not be verified"
            )
        logger.info(
            f"Copied {len(nodes)} folders and {len(copied.file_id_map)} files from {folder_id} to {dest_key}"
        )

        if delete_source:
            await self.folder_service.delete(ctx, folder_id)
        return copied
