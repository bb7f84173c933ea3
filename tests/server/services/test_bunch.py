import pytest
from sqlalchemy import func, select

from folderstore.models.folder import FolderType
from folderstore.server.context import RequestContext
from folderstore.server.db.models.folder import BunchObjectDO, FolderDO
from folderstore.server.db.session import DatabaseSessionManager
from folderstore.server.exceptions import InvalidArgumentException
from folderstore.server.services.bunch import BunchService
from folderstore.server.services.folder import FolderService
from tests.conftest import OTHER_USER_ID, TEST_USER_ID


async def test_resolve_is_idempotent(
    bunch_service: BunchService, folder_service: FolderService, ctx: RequestContext
) -> None:
    first = await bunch_service.get_folder_id(ctx, "files", "my", TEST_USER_ID)
    second = await bunch_service.get_folder_id(ctx, "files", "my", TEST_USER_ID)
    third = await bunch_service.get_folder_id(
        ctx, "files", "my", TEST_USER_ID, create=False
    )

    assert first > 0
    assert first == second == third

    folder = await folder_service.get(ctx, first)
    assert folder.folder_type == FolderType.USER
    assert folder.title == "my"
    assert folder.display_title == "My Documents"
    assert folder.parent_id == 0


async def test_resolve_without_create(
    bunch_service: BunchService, ctx: RequestContext
) -> None:
    assert await bunch_service.get_folder_id(ctx, "files", "share", None, create=False) == 0


async def test_resolve_requires_module_and_bunch(
    bunch_service: BunchService, ctx: RequestContext
) -> None:
    with pytest.raises(InvalidArgumentException):
        await bunch_service.get_folder_id(ctx, "", "my", TEST_USER_ID)
    with pytest.raises(InvalidArgumentException):
        await bunch_service.get_folder_id(ctx, "files", "", TEST_USER_ID)


async def test_user_roots_are_owned_by_the_keyed_user(
    bunch_service: BunchService, folder_service: FolderService, ctx: RequestContext
) -> None:
    for bunch, folder_type in (
        ("my", FolderType.USER),
        ("trash", FolderType.TRASH),
        ("privacy", FolderType.PRIVACY),
    ):
        folder_id = await bunch_service.get_folder_id(ctx, "files", bunch, OTHER_USER_ID)
        folder = await folder_service.get(ctx, folder_id)
        assert folder.folder_type == folder_type
        assert folder.create_by == OTHER_USER_ID

    common_id = await bunch_service.get_folder_id_common(ctx)
    common = await folder_service.get(ctx, common_id)
    assert common.folder_type == FolderType.COMMON
    assert common.create_by == TEST_USER_ID


async def test_generic_bunch_folder(
    bunch_service: BunchService, folder_service: FolderService, ctx: RequestContext
) -> None:
    folder_id = await bunch_service.get_folder_id(ctx, "crm", "contact", "5")
    folder = await folder_service.get(ctx, folder_id)

    assert folder.folder_type == FolderType.BUNCH
    assert folder.title == "crm/contact/5"
    assert await bunch_service.get_bunch_object_id(ctx, folder_id) == "crm/contact/5"


async def test_convenience_resolvers(
    bunch_service: BunchService, ctx: RequestContext
) -> None:
    user_id = await bunch_service.get_folder_id_user(ctx)
    assert user_id == await bunch_service.get_folder_id(ctx, "files", "my", TEST_USER_ID)
    assert await bunch_service.get_folder_id_trash(ctx) == await bunch_service.get_folder_id(
        ctx, "files", "trash", TEST_USER_ID
    )
    assert await bunch_service.get_folder_id_user(ctx, OTHER_USER_ID) != user_id

    ids = {
        await bunch_service.get_folder_id_common(ctx),
        await bunch_service.get_folder_id_share(ctx),
        await bunch_service.get_folder_id_recent(ctx),
        await bunch_service.get_folder_id_favorites(ctx),
        await bunch_service.get_folder_id_templates(ctx),
        await bunch_service.get_folder_id_projects(ctx),
        await bunch_service.get_folder_id_privacy(ctx),
    }
    assert len(ids) == 7
    assert 0 not in ids


async def test_batched_resolve(bunch_service: BunchService, ctx: RequestContext) -> None:
    existing = await bunch_service.get_folder_id(ctx, "crm", "deal", "1")

    ids = await bunch_service.get_folder_ids(ctx, "crm", "deal", ["1", "2"])
    assert ids[0] == existing
    assert ids[1] not in (0, existing)

    ids = await bunch_service.get_folder_ids(ctx, "crm", "deal", ["2", "3"], create=False)
    assert ids[1] == 0
    assert ids[0] == await bunch_service.get_folder_id(ctx, "crm", "deal", "2")


async def test_reverse_lookup(bunch_service: BunchService, ctx: RequestContext) -> None:
    my_id = await bunch_service.get_folder_id_user(ctx)
    common_id = await bunch_service.get_folder_id_common(ctx)

    assert await bunch_service.get_bunch_object_id(ctx, my_id) == f"files/my/{TEST_USER_ID}"
    assert await bunch_service.get_bunch_object_id(ctx, 999) == ""
    assert await bunch_service.get_bunch_object_ids(ctx, [my_id, common_id, 999]) == {
        my_id: f"files/my/{TEST_USER_ID}",
        common_id: "files/common/",
    }


async def test_lost_creation_race_returns_winner(
    bunch_service: BunchService,
    session_manager: DatabaseSessionManager,
    ctx: RequestContext,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    winner = await bunch_service.get_folder_id(ctx, "files", "my", TEST_USER_ID)

    # The losing request looked the key up before the winner committed.
    real_lookup = bunch_service._lookup
    calls = 0

    async def stale_lookup(lookup_ctx: RequestContext, key: str) -> int:
        nonlocal calls
        calls += 1
        if calls == 1:
            return 0
        return await real_lookup(lookup_ctx, key)

    monkeypatch.setattr(bunch_service, "_lookup", stale_lookup)

    assert await bunch_service.get_folder_id(ctx, "files", "my", TEST_USER_ID) == winner
    assert calls == 2

    async with session_manager.session() as session:
        folders = await session.execute(
            select(func.count()).where(FolderDO.folder_type == FolderType.USER.value)
        )
        assert folders.scalar_one() == 1
        bindings = await session.execute(select(func.count()).select_from(BunchObjectDO))
        assert bindings.scalar_one() == 1
