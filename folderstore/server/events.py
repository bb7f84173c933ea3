"""In-process event bus for fire-and-forget side effects."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """Base class for events."""

    tenant_id: int


@dataclass
class FolderUpdatedEvent(Event):
    """A folder was created, renamed or moved and should be (re)indexed."""

    folder_id: int
    title: str


@dataclass
class FolderDeletedEvent(Event):
    """Folders were removed and should be dropped from the index."""

    folder_ids: list[int] = field(default_factory=list)


EventHandler = Callable[[Event], Awaitable[None]]


class LocalEventBus:
    """Dispatches events to subscribers as background tasks.

    Publishing never waits for handlers. A failing handler is logged and does
    not affect the publisher or other handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[Event], list[EventHandler]] = defaultdict(list)
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, event_type: type[Event], handler: EventHandler) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def publish(self, event: Event) -> None:
        """Schedule all handlers for the event."""
        for handler in self._handlers.get(type(event), []):
            task = asyncio.create_task(self._run(handler, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, handler: EventHandler, event: Event) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception(f"Event handler failed for {type(event).__name__}")

    async def join(self) -> None:
        """Wait until every scheduled handler has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
