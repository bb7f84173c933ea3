"""Full-text index of folder titles."""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict

from ..events import Event, FolderDeletedEvent, FolderUpdatedEvent, LocalEventBus

logger = logging.getLogger(__name__)


class FolderIndexer(ABC):
    """Interface to a full-text index of folders."""

    @abstractmethod
    async def try_match_ids(self, tenant_id: int, text: str) -> tuple[bool, set[int]]:
        """Match all words of `text`.

        Returns `(False, set())` when the index cannot answer, in which case
        the caller falls back to a substring scan.
        """

    @abstractmethod
    async def index(self, tenant_id: int, folder_id: int, title: str) -> None:
        """Add or replace a folder in the index."""

    @abstractmethod
    async def delete(self, tenant_id: int, folder_ids: list[int]) -> None:
        """Remove folders from the index."""


class NullFolderIndexer(FolderIndexer):
    """Indexer used when full-text search is disabled."""

    async def try_match_ids(self, tenant_id: int, text: str) -> tuple[bool, set[int]]:
        return False, set()

    async def index(self, tenant_id: int, folder_id: int, title: str) -> None:
        pass

    async def delete(self, tenant_id: int, folder_ids: list[int]) -> None:
        pass


class LocalFolderIndexer(FolderIndexer):
    """In-process index of folder titles.

    A tenant's index is uninitialized until the first folder of that tenant
    is indexed.
    """

    def __init__(self) -> None:
        self._titles: dict[int, dict[int, str]] = defaultdict(dict)

    async def try_match_ids(self, tenant_id: int, text: str) -> tuple[bool, set[int]]:
        titles = self._titles.get(tenant_id)
        if titles is None:
            return False, set()
        words = text.lower().split()
        return True, {
            folder_id
            for folder_id, title in titles.items()
            if all(word in title for word in words)
        }

    async def index(self, tenant_id: int, folder_id: int, title: str) -> None:
        self._titles[tenant_id][folder_id] = title.lower()

    async def delete(self, tenant_id: int, folder_ids: list[int]) -> None:
        titles = self._titles.get(tenant_id, {})
        for folder_id in folder_ids:
            titles.pop(folder_id, None)


class IndexService:
    """Keeps the index in sync by listening to folder events."""

    def __init__(self, event_bus: LocalEventBus, indexer: FolderIndexer) -> None:
        self.event_bus = event_bus
        self.indexer = indexer

    def start(self) -> None:
        self.event_bus.subscribe(FolderUpdatedEvent, self.handle_folder_updated)
        self.event_bus.subscribe(FolderDeletedEvent, self.handle_folder_deleted)

    async def handle_folder_updated(self, event: Event) -> None:
        if not isinstance(event, FolderUpdatedEvent):
            return
        await self.indexer.index(event.tenant_id, event.folder_id, event.title)

    async def handle_folder_deleted(self, event: Event) -> None:
        if not isinstance(event, FolderDeletedEvent):
            return
        logger.debug(f"Removing {len(event.folder_ids)} folders from the index")
        await self.indexer.delete(event.tenant_id, event.folder_ids)
