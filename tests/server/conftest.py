"""Shared pytest fixtures for server tests."""

import pytest

from folderstore.server.config import QuotaConfig
from folderstore.server.db.session import DatabaseSessionManager
from folderstore.server.events import LocalEventBus
from folderstore.server.services.bunch import BunchService
from folderstore.server.services.conflict import ConflictChecker
from folderstore.server.services.counts import FolderCounter
from folderstore.server.services.cross_store import (
    CrossStoreCopier,
    PrefixStoreSelector,
)
from folderstore.server.services.directory import LocalUserDirectory
from folderstore.server.services.folder import FolderService
from folderstore.server.services.hierarchy import HierarchyService
from folderstore.server.services.index import IndexService, LocalFolderIndexer
from tests.conftest import OTHER_USER_ID, TEST_USER_ID
from tests.server.services.fakes import FOREIGN_PREFIX, InMemoryForeignStore

TEST_GROUP_ID = "group-1"


@pytest.fixture
def event_bus() -> LocalEventBus:
    return LocalEventBus()


@pytest.fixture
def indexer(event_bus: LocalEventBus) -> LocalFolderIndexer:
    indexer = LocalFolderIndexer()
    IndexService(event_bus, indexer).start()
    return indexer


@pytest.fixture
def counter(session_manager: DatabaseSessionManager) -> FolderCounter:
    return FolderCounter(session_manager)


@pytest.fixture
def quota() -> QuotaConfig:
    return QuotaConfig()


@pytest.fixture
def folder_service(
    session_manager: DatabaseSessionManager,
    indexer: LocalFolderIndexer,
    event_bus: LocalEventBus,
    counter: FolderCounter,
) -> FolderService:
    return FolderService(
        session_manager,
        indexer,
        LocalUserDirectory({TEST_GROUP_ID: [TEST_USER_ID, OTHER_USER_ID]}),
        event_bus,
        counter,
    )


@pytest.fixture
def bunch_service(
    session_manager: DatabaseSessionManager, folder_service: FolderService
) -> BunchService:
    return BunchService(session_manager, folder_service)


@pytest.fixture
def conflict_checker(
    session_manager: DatabaseSessionManager, quota: QuotaConfig
) -> ConflictChecker:
    return ConflictChecker(session_manager, quota)


@pytest.fixture
def foreign_store() -> InMemoryForeignStore:
    return InMemoryForeignStore()


@pytest.fixture
def cross_store(
    session_manager: DatabaseSessionManager,
    folder_service: FolderService,
    foreign_store: InMemoryForeignStore,
) -> CrossStoreCopier:
    selector = PrefixStoreSelector({FOREIGN_PREFIX: foreign_store.as_store()})
    return CrossStoreCopier(session_manager, folder_service, selector)


@pytest.fixture
def hierarchy_service(
    session_manager: DatabaseSessionManager,
    folder_service: FolderService,
    conflict_checker: ConflictChecker,
    cross_store: CrossStoreCopier,
    counter: FolderCounter,
    event_bus: LocalEventBus,
) -> HierarchyService:
    return HierarchyService(
        session_manager,
        folder_service,
        conflict_checker,
        cross_store,
        counter,
        event_bus,
    )
