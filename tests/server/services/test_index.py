import asyncio
import logging
from pathlib import Path

import pytest

from folderstore.server.context import RequestContext
from folderstore.server.db.session import DatabaseSessionManager
from folderstore.server.events import (
    Event,
    FolderDeletedEvent,
    FolderUpdatedEvent,
    LocalEventBus,
)
from folderstore.server.services.counts import FolderCounter
from folderstore.server.services.directory import LocalUserDirectory
from folderstore.server.services.folder import Folder, FolderService
from folderstore.server.services.index import (
    IndexService,
    LocalFolderIndexer,
    NullFolderIndexer,
)
from tests.server.services.fakes import FailingIndexer


async def test_local_indexer() -> None:
    indexer = LocalFolderIndexer()
    assert await indexer.try_match_ids(1, "plan") == (False, set())

    await indexer.index(1, 10, "Project Plan")
    await indexer.index(1, 11, "Plan B")
    await indexer.index(2, 12, "Plan")

    assert await indexer.try_match_ids(1, "plan") == (True, {10, 11})
    assert await indexer.try_match_ids(1, "project plan") == (True, {10})
    assert await indexer.try_match_ids(1, "missing") == (True, set())

    await indexer.delete(1, [10])
    assert await indexer.try_match_ids(1, "plan") == (True, {11})


async def test_null_indexer() -> None:
    indexer = NullFolderIndexer()
    await indexer.index(1, 10, "Plan")
    assert await indexer.try_match_ids(1, "plan") == (False, set())


async def test_event_bus_dispatches_by_type() -> None:
    bus = LocalEventBus()
    seen: list[Event] = []

    async def handler(event: Event) -> None:
        seen.append(event)

    bus.subscribe(FolderUpdatedEvent, handler)
    bus.publish(FolderUpdatedEvent(tenant_id=1, folder_id=2, title="x"))
    bus.publish(FolderDeletedEvent(tenant_id=1, folder_ids=[2]))
    await bus.join()

    assert seen == [FolderUpdatedEvent(tenant_id=1, folder_id=2, title="x")]


async def test_event_bus_does_not_block_publisher() -> None:
    bus = LocalEventBus()
    release = asyncio.Event()
    done: list[int] = []

    async def slow_handler(event: Event) -> None:
        await release.wait()
        done.append(1)

    bus.subscribe(FolderUpdatedEvent, slow_handler)
    bus.publish(FolderUpdatedEvent(tenant_id=1, folder_id=2, title="x"))
    assert done == []

    release.set()
    await bus.join()
    assert done == [1]


async def test_failing_handler_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    bus = LocalEventBus()
    IndexService(bus, FailingIndexer()).start()

    bus.publish(FolderUpdatedEvent(tenant_id=1, folder_id=2, title="x"))
    with caplog.at_level(logging.ERROR):
        await bus.join()

    assert "Event handler failed for FolderUpdatedEvent" in caplog.text


async def test_index_failure_does_not_fail_save(
    session_manager: DatabaseSessionManager, ctx: RequestContext
) -> None:
    bus = LocalEventBus()
    indexer = FailingIndexer()
    IndexService(bus, indexer).start()
    folder_service = FolderService(
        session_manager,
        indexer,
        LocalUserDirectory(),
        bus,
        FolderCounter(session_manager),
    )

    folder_id = await folder_service.save(ctx, Folder(title="Resilient"))
    await bus.join()
    await folder_service.delete(ctx, folder_id)
    await bus.join()


async def test_index_follows_folder_changes(
    folder_service: FolderService,
    event_bus: LocalEventBus,
    indexer: LocalFolderIndexer,
    ctx: RequestContext,
) -> None:
    parent = await folder_service.save(ctx, Folder(title="Budget"))
    child = await folder_service.save(ctx, Folder(parent_id=parent, title="Budget 2024"))
    await event_bus.join()
    assert await indexer.try_match_ids(ctx.tenant_id, "budget") == (
        True,
        {parent, child},
    )

    await folder_service.delete(ctx, parent)
    await event_bus.join()
    assert await indexer.try_match_ids(ctx.tenant_id, "budget") == (True, set())


async def test_count_failure_is_logged(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    closed = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'closed.db'}")
    counter = FolderCounter(closed)
    await closed.close()

    with caplog.at_level(logging.ERROR):
        await counter.recalculate(1)

    assert "Failed to recalculate counts for folder 1" in caplog.text
