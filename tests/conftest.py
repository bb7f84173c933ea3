"""Root conftest for all tests."""

from typing import Awaitable, Callable

import pytest
from aiohttp.test_utils import TestClient
from aiohttp.web import Application

from folderstore.server.context import RequestContext

pytest_plugins = ["tests.plugins.db_fixtures"]

# Shared test constants
TEST_TENANT_ID = 1
TEST_USER_ID = "user-1"
OTHER_USER_ID = "user-2"

# Type alias for the aiohttp_client fixture - shared across all tests
AiohttpClient = Callable[[Application], Awaitable[TestClient]]


@pytest.fixture
def ctx() -> RequestContext:
    """Request context of the test user."""
    return RequestContext(tenant_id=TEST_TENANT_ID, actor_id=TEST_USER_ID)


@pytest.fixture
def other_ctx() -> RequestContext:
    """Request context of a second user of the same tenant."""
    return RequestContext(tenant_id=TEST_TENANT_ID, actor_id=OTHER_USER_ID)
