import json
import logging
from typing import Awaitable, Callable

from aiohttp import web
from mashumaro.exceptions import InvalidFieldValue, MissingField

from folderstore.models.base import create_error_response

from .config import ServerConfig
from .context import RequestContext
from .db.session import DatabaseSessionManager
from .events import LocalEventBus
from .exceptions import (
    FolderNotFoundException,
    FolderStoreException,
    ForbiddenException,
    InvalidArgumentException,
    InvalidOperationException,
    UnsupportedDestinationException,
)
from .routes import folder
from .services.bunch import BunchService
from .services.conflict import ConflictChecker
from .services.counts import FolderCounter
from .services.cross_store import CrossStoreCopier, PrefixStoreSelector, StoreSelector
from .services.directory import LocalUserDirectory, UserDirectory
from .services.folder import FolderService
from .services.hierarchy import HierarchyService
from .services.index import (
    FolderIndexer,
    IndexService,
    LocalFolderIndexer,
    NullFolderIndexer,
)

logger = logging.getLogger(__name__)

TENANT_HEADER = "x-tenant-id"
ACTOR_HEADER = "x-actor-id"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

# Checked in order, the first matching class wins.
ERROR_STATUS: list[tuple[type[FolderStoreException], int, str]] = [
    (InvalidArgumentException, 400, "InvalidArgument"),
    (FolderNotFoundException, 404, "NotFound"),
    (ForbiddenException, 403, "Forbidden"),
    (InvalidOperationException, 409, "InvalidOperation"),
    (UnsupportedDestinationException, 501, "NotImplemented"),
]


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Translate store exceptions into JSON error responses."""
    try:
        return await handler(request)
    except (MissingField, InvalidFieldValue, json.JSONDecodeError) as err:
        return web.json_response(
            create_error_response(str(err), "InvalidArgument").to_dict(), status=400
        )
    except FolderStoreException as err:
        for exc_type, status, code in ERROR_STATUS:
            if isinstance(err, exc_type):
                return web.json_response(
                    create_error_response(str(err), code).to_dict(), status=status
                )
        logger.exception(f"Unhandled store error on {request.method} {request.path}")
        return web.json_response(create_error_response(str(err)).to_dict(), status=500)


@web.middleware
async def context_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Build the request context from the tenant and actor headers."""
    tenant = request.headers.get(TENANT_HEADER)
    actor = request.headers.get(ACTOR_HEADER)
    if not tenant or not actor:
        raise InvalidArgumentException(
            f"Headers {TENANT_HEADER} and {ACTOR_HEADER} are required"
        )
    try:
        tenant_id = int(tenant)
    except ValueError as err:
        raise InvalidArgumentException(f"Invalid tenant id {tenant}") from err
    request["ctx"] = RequestContext(tenant_id=tenant_id, actor_id=actor)
    return await handler(request)


def create_app(
    config: ServerConfig | None = None,
    session_manager: DatabaseSessionManager | None = None,
    store_selector: StoreSelector | None = None,
    user_directory: UserDirectory | None = None,
    indexer: FolderIndexer | None = None,
) -> web.Application:
    """Create the folder store application.

    Collaborators that live outside the store (foreign stores, the user
    directory and the full-text index) may be injected. Tables are created on
    startup.
    """
    if config is None:
        config = ServerConfig.load()
    if session_manager is None:
        session_manager = DatabaseSessionManager(config.database_url)
    if indexer is None:
        indexer = LocalFolderIndexer() if config.search.enable_index else NullFolderIndexer()

    app = web.Application(middlewares=[error_middleware, context_middleware])
    app["config"] = config
    app["session_manager"] = session_manager

    event_bus = LocalEventBus()
    IndexService(event_bus, indexer).start()
    counter = FolderCounter(session_manager)
    folder_service = FolderService(
        session_manager,
        indexer,
        user_directory or LocalUserDirectory(),
        event_bus,
        counter,
        max_title_length=config.max_title_length,
    )
    conflict_checker = ConflictChecker(session_manager, config.quota)
    cross_store = CrossStoreCopier(
        session_manager, folder_service, store_selector or PrefixStoreSelector()
    )
    app["event_bus"] = event_bus
    app["folder_service"] = folder_service
    app["conflict_checker"] = conflict_checker
    app["bunch_service"] = BunchService(session_manager, folder_service)
    app["hierarchy_service"] = HierarchyService(
        session_manager, folder_service, conflict_checker, cross_store, counter, event_bus
    )

    app.add_routes(folder.routes)

    async def on_startup(app: web.Application) -> None:
        await app["session_manager"].create_all()

    async def on_cleanup(app: web.Application) -> None:
        await app["event_bus"].join()
        await app["session_manager"].close()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


def run(config: ServerConfig) -> None:
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = create_app(config)
    web.run_app(app, host=config.host, port=config.port)
