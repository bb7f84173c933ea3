import logging

from aiohttp import web

from folderstore.models.base import BaseResponse
from folderstore.models.folder import (
    BunchFolderVO,
    ConflictItemVO,
    ConflictListVO,
    FolderCreateDTO,
    FolderInfoVO,
    FolderListVO,
    FolderMoveCopyDTO,
    FolderMoveCopyVO,
    FolderRenameDTO,
    FolderVO,
    OrderBy,
    SortedByType,
    UploadLimitVO,
)
from folderstore.server.context import RequestContext
from folderstore.server.exceptions import InvalidArgumentException
from folderstore.server.services.bunch import BunchService
from folderstore.server.services.conflict import ConflictChecker
from folderstore.server.services.cross_store import FolderRef, ForeignKey, LocalId
from folderstore.server.services.folder import Folder, FolderService
from folderstore.server.services.hierarchy import HierarchyService

logger = logging.getLogger(__name__)
routes = web.RouteTableDef()


def _to_vo(folder: Folder) -> FolderVO:
    return FolderVO(
        id=folder.id,
        parent_id=folder.parent_id,
        title=folder.display_title,
        folder_type=folder.folder_type.value,
        create_by=folder.create_by,
        create_on=folder.create_on,
        modified_by=folder.modified_by,
        modified_on=folder.modified_on,
        folders_count=folder.folders_count,
        files_count=folder.files_count,
        root_folder_id=folder.root_folder_id,
        root_folder_type=folder.root_folder_type.value,
        root_folder_creator=folder.root_folder_creator,
        shared=folder.shared,
    )


def _folder_id(request: web.Request) -> int:
    try:
        return int(request.match_info["folder_id"])
    except ValueError as err:
        raise InvalidArgumentException(
            f"Invalid folder id {request.match_info['folder_id']}"
        ) from err


def _flag(request: web.Request, name: str, default: bool = False) -> bool:
    value = request.query.get(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def _destination(dto: FolderMoveCopyDTO) -> FolderRef:
    if (dto.dest_id is None) == (dto.dest_key is None):
        raise InvalidArgumentException("Exactly one of destId or destKey is required")
    if dto.dest_key is not None:
        return ForeignKey(dto.dest_key)
    return LocalId(dto.dest_id)


def _ref_id(ref: FolderRef) -> str:
    match ref:
        case LocalId(id=folder_id):
            return str(folder_id)
        case ForeignKey(key=key):
            return key


@routes.get("/api/folder/{folder_id}")
async def handle_get_folder(request: web.Request) -> web.Response:
    ctx: RequestContext = request["ctx"]
    folder_service: FolderService = request.app["folder_service"]

    folder = await folder_service.get(ctx, _folder_id(request))
    return web.json_response(FolderInfoVO(folder=_to_vo(folder)).to_dict())


@routes.get("/api/folder/{folder_id}/children")
async def handle_list_folders(request: web.Request) -> web.Response:
    # Query: sortedBy, asc, search, subfolders
    ctx: RequestContext = request["ctx"]
    folder_service: FolderService = request.app["folder_service"]

    try:
        sorted_by = SortedByType.from_value(
            request.query.get("sortedBy", SortedByType.DATE_AND_TIME.value)
        )
    except ValueError as err:
        raise InvalidArgumentException(str(err)) from err

    folders = await folder_service.list_folders(
        ctx,
        _folder_id(request),
        order_by=OrderBy(sorted_by, _flag(request, "asc")),
        search_text=request.query.get("search"),
        with_subfolders=_flag(request, "subfolders"),
    )
    return web.json_response(
        FolderListVO(
            total=len(folders), folders=[_to_vo(f) for f in folders]
        ).to_dict()
    )


@routes.get("/api/folder/{folder_id}/path")
async def handle_folder_path(request: web.Request) -> web.Response:
    ctx: RequestContext = request["ctx"]
    folder_service: FolderService = request.app["folder_service"]

    folders = await folder_service.get_parent_folders(ctx, _folder_id(request))
    return web.json_response(
        FolderListVO(
            total=len(folders), folders=[_to_vo(f) for f in folders]
        ).to_dict()
    )


@routes.post("/api/folder")
async def handle_create_folder(request: web.Request) -> web.Response:
    ctx: RequestContext = request["ctx"]
    folder_service: FolderService = request.app["folder_service"]
    req_data = FolderCreateDTO.from_dict(await request.json())

    folder_id = await folder_service.save(
        ctx, Folder(parent_id=req_data.parent_id, title=req_data.title)
    )
    folder = await folder_service.get(ctx, folder_id)
    return web.json_response(FolderInfoVO(folder=_to_vo(folder)).to_dict())


@routes.put("/api/folder/{folder_id}/title")
async def handle_rename_folder(request: web.Request) -> web.Response:
    ctx: RequestContext = request["ctx"]
    folder_service: FolderService = request.app["folder_service"]
    hierarchy_service: HierarchyService = request.app["hierarchy_service"]
    req_data = FolderRenameDTO.from_dict(await request.json())

    folder_id = await hierarchy_service.rename(ctx, _folder_id(request), req_data.title)
    folder = await folder_service.get(ctx, folder_id)
    return web.json_response(FolderInfoVO(folder=_to_vo(folder)).to_dict())


@routes.delete("/api/folder/{folder_id}")
async def handle_delete_folder(request: web.Request) -> web.Response:
    ctx: RequestContext = request["ctx"]
    folder_service: FolderService = request.app["folder_service"]

    await folder_service.delete(ctx, _folder_id(request))
    return web.json_response(BaseResponse().to_dict())


@routes.post("/api/folder/move")
async def handle_move_folders(request: web.Request) -> web.Response:
    ctx: RequestContext = request["ctx"]
    hierarchy_service: HierarchyService = request.app["hierarchy_service"]
    req_data = FolderMoveCopyDTO.from_dict(await request.json())
    dest = _destination(req_data)

    ids = []
    for folder_id in req_data.folder_ids:
        ids.append(_ref_id(await hierarchy_service.move(ctx, folder_id, dest)))
    return web.json_response(FolderMoveCopyVO(ids=ids).to_dict())


@routes.post("/api/folder/copy")
async def handle_copy_folders(request: web.Request) -> web.Response:
    ctx: RequestContext = request["ctx"]
    hierarchy_service: HierarchyService = request.app["hierarchy_service"]
    req_data = FolderMoveCopyDTO.from_dict(await request.json())
    dest = _destination(req_data)

    ids = []
    for folder_id in req_data.folder_ids:
        ids.append(_ref_id(await hierarchy_service.copy(ctx, folder_id, dest)))
    return web.json_response(FolderMoveCopyVO(ids=ids).to_dict())


@routes.post("/api/folder/check")
async def handle_check_move_copy(request: web.Request) -> web.Response:
    # Pre-check for move/copy, reports files that would collide.
    ctx: RequestContext = request["ctx"]
    hierarchy_service: HierarchyService = request.app["hierarchy_service"]
    req_data = FolderMoveCopyDTO.from_dict(await request.json())

    conflicts = await hierarchy_service.can_move_or_copy(
        ctx, req_data.folder_ids, _destination(req_data)
    )
    return web.json_response(
        ConflictListVO(
            conflicts=[
                ConflictItemVO(id=file_id, title=title)
                for file_id, title in sorted(conflicts.items())
            ]
        ).to_dict()
    )


@routes.get("/api/bunch/{module}/{bunch}")
async def handle_bunch_folder(request: web.Request) -> web.Response:
    # Query: data (key discriminator), create (default true)
    ctx: RequestContext = request["ctx"]
    bunch_service: BunchService = request.app["bunch_service"]

    folder_id = await bunch_service.get_folder_id(
        ctx,
        request.match_info["module"],
        request.match_info["bunch"],
        request.query.get("data"),
        create=_flag(request, "create", default=True),
    )
    return web.json_response(BunchFolderVO(folder_id=folder_id).to_dict())


@routes.get("/api/folder/{folder_id}/upload-limit")
async def handle_upload_limit(request: web.Request) -> web.Response:
    ctx: RequestContext = request["ctx"]
    conflict_checker: ConflictChecker = request.app["conflict_checker"]

    limit = await conflict_checker.get_max_upload_size(
        ctx, _folder_id(request), chunked=_flag(request, "chunked")
    )
    return web.json_response(UploadLimitVO(max_upload_size=limit).to_dict())
