from pathlib import Path
from typing import Any

import pytest
from aiohttp.test_utils import TestClient

from folderstore.server.app import create_app
from folderstore.server.config import ServerConfig
from folderstore.server.services.cross_store import PrefixStoreSelector
from tests.conftest import TEST_USER_ID, AiohttpClient
from tests.server.services.fakes import (
    FOREIGN_PREFIX,
    FOREIGN_ROOT_KEY,
    InMemoryForeignStore,
)

HEADERS = {"x-tenant-id": "1", "x-actor-id": TEST_USER_ID}


@pytest.fixture
def server_config(tmp_path: Path) -> ServerConfig:
    return ServerConfig(database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")


@pytest.fixture
async def client(
    aiohttp_client: AiohttpClient,
    server_config: ServerConfig,
    foreign_store: InMemoryForeignStore,
) -> TestClient:
    selector = PrefixStoreSelector({FOREIGN_PREFIX: foreign_store.as_store()})
    return await aiohttp_client(create_app(server_config, store_selector=selector))


async def create_folder(client: TestClient, title: str, parent_id: int = 0) -> dict[str, Any]:
    resp = await client.post(
        "/api/folder", json={"parentId": parent_id, "title": title}, headers=HEADERS
    )
    assert resp.status == 200
    data = await resp.json()
    assert data["success"]
    return data["folder"]


async def test_missing_context_headers(client: TestClient) -> None:
    resp = await client.get("/api/folder/1")
    assert resp.status == 400
    data = await resp.json()
    assert data["success"] is False
    assert data["errorCode"] == "InvalidArgument"

    resp = await client.get(
        "/api/folder/1", headers={"x-tenant-id": "abc", "x-actor-id": TEST_USER_ID}
    )
    assert resp.status == 400


async def test_folder_lifecycle(client: TestClient) -> None:
    resp = await client.get("/api/bunch/files/my", params={"data": TEST_USER_ID}, headers=HEADERS)
    assert resp.status == 200
    my_id = (await resp.json())["folderId"]
    assert my_id > 0

    reports = await create_folder(client, "Reports", my_id)
    assert reports["parentId"] == my_id
    assert reports["rootFolderId"] == my_id
    assert reports["rootFolderType"] == 5
    assert reports["createBy"] == TEST_USER_ID
    assert reports["shared"] is False
    year = await create_folder(client, "2024", reports["id"])

    resp = await client.get(f"/api/folder/{my_id}", headers=HEADERS)
    data = await resp.json()
    assert data["folder"]["title"] == "My Documents"
    assert data["folder"]["foldersCount"] == 1

    resp = await client.get(f"/api/folder/{year['id']}/path", headers=HEADERS)
    data = await resp.json()
    assert [f["id"] for f in data["folders"]] == [my_id, reports["id"], year["id"]]

    resp = await client.get("/api/folder/999/path", headers=HEADERS)
    assert resp.status == 404

    resp = await client.put(
        f"/api/folder/{year['id']}/title", json={"title": "Year 2024"}, headers=HEADERS
    )
    assert resp.status == 200
    assert (await resp.json())["folder"]["title"] == "Year 2024"

    resp = await client.get(
        f"/api/folder/{my_id}/children",
        params={"sortedBy": "az", "asc": "true", "subfolders": "true"},
        headers=HEADERS,
    )
    data = await resp.json()
    assert data["total"] == 2
    assert [f["title"] for f in data["folders"]] == ["Reports", "Year 2024"]

    resp = await client.delete(f"/api/folder/{reports['id']}", headers=HEADERS)
    assert resp.status == 200
    assert (await resp.json()) == {"success": True}

    resp = await client.get(f"/api/folder/{year['id']}", headers=HEADERS)
    assert resp.status == 404
    assert (await resp.json())["errorCode"] == "NotFound"


async def test_bunch_without_create(client: TestClient) -> None:
    resp = await client.get(
        "/api/bunch/files/trash",
        params={"data": TEST_USER_ID, "create": "false"},
        headers=HEADERS,
    )
    assert resp.status == 200
    assert (await resp.json())["folderId"] == 0


async def test_error_statuses(client: TestClient) -> None:
    resp = await client.get(
        "/api/bunch/files/trash", params={"data": TEST_USER_ID}, headers=HEADERS
    )
    trash_id = (await resp.json())["folderId"]
    parent = await create_folder(client, "Parent")
    child = await create_folder(client, "Child", parent["id"])

    resp = await client.delete(f"/api/folder/{trash_id}", headers=HEADERS)
    assert resp.status == 403
    assert (await resp.json())["errorCode"] == "Forbidden"

    resp = await client.post(
        "/api/folder/move",
        json={"folderIds": [parent["id"]], "destId": child["id"]},
        headers=HEADERS,
    )
    assert resp.status == 409
    assert (await resp.json())["errorCode"] == "InvalidOperation"

    resp = await client.post(
        "/api/folder/move",
        json={"folderIds": [parent["id"]], "destId": 1, "destKey": FOREIGN_ROOT_KEY},
        headers=HEADERS,
    )
    assert resp.status == 400

    resp = await client.post(
        "/api/folder/copy",
        json={"folderIds": [parent["id"]], "destKey": "box-1"},
        headers=HEADERS,
    )
    assert resp.status == 501
    assert (await resp.json())["errorCode"] == "NotImplemented"

    resp = await client.post("/api/folder", json={"title": "No parent"}, headers=HEADERS)
    assert resp.status == 400

    resp = await client.get("/api/folder/abc", headers=HEADERS)
    assert resp.status == 400

    resp = await client.delete("/api/folder/0", headers=HEADERS)
    assert resp.status == 400


async def test_move_copy_and_check(
    client: TestClient, foreign_store: InMemoryForeignStore
) -> None:
    source = await create_folder(client, "Source")
    dest = await create_folder(client, "Dest")
    await create_folder(client, "source", dest["id"])

    resp = await client.post(
        "/api/folder/check",
        json={"folderIds": [source["id"]], "destId": dest["id"]},
        headers=HEADERS,
    )
    assert resp.status == 200
    assert (await resp.json()) == {"success": True, "conflicts": []}

    resp = await client.post(
        "/api/folder/copy",
        json={"folderIds": [source["id"]], "destId": dest["id"]},
        headers=HEADERS,
    )
    assert resp.status == 200
    ids = (await resp.json())["ids"]
    assert len(ids) == 1
    assert ids[0] != str(source["id"])

    resp = await client.post(
        "/api/folder/move",
        json={"folderIds": [source["id"]], "destId": dest["id"]},
        headers=HEADERS,
    )
    assert resp.status == 200
    assert (await resp.json())["ids"] == [str(source["id"])]

    resp = await client.get(f"/api/folder/{dest['id']}", headers=HEADERS)
    assert (await resp.json())["folder"]["foldersCount"] == 3

    resp = await client.post(
        "/api/folder/move",
        json={"folderIds": [source["id"]], "destKey": FOREIGN_ROOT_KEY},
        headers=HEADERS,
    )
    assert resp.status == 200
    foreign_id = (await resp.json())["ids"][0]
    assert foreign_store.folders[foreign_id].title == "Source"


async def test_upload_limit(client: TestClient, server_config: ServerConfig) -> None:
    folder = await create_folder(client, "Uploads")

    resp = await client.get(f"/api/folder/{folder['id']}/upload-limit", headers=HEADERS)
    assert resp.status == 200
    assert (await resp.json())["maxUploadSize"] == server_config.quota.max_upload_size

    resp = await client.get(
        f"/api/folder/{folder['id']}/upload-limit",
        params={"chunked": "true"},
        headers=HEADERS,
    )
    assert (await resp.json())["maxUploadSize"] == server_config.quota.max_chunked_upload_size

    resp = await client.get("/api/folder/999/upload-limit", headers=HEADERS)
    assert resp.status == 404
