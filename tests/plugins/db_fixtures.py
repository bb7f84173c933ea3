"""Test database fixtures."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from folderstore.server.db.session import DatabaseSessionManager


@pytest_asyncio.fixture
async def session_manager(tmp_path: Path) -> AsyncGenerator[DatabaseSessionManager, None]:
    """Create a session manager on a fresh SQLite database for a test.

    A file database is used so that every session sees committed data.
    """
    manager = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await manager.create_all()
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def db_session(
    session_manager: DatabaseSessionManager,
) -> AsyncGenerator[AsyncSession, None]:
    """Create a new database session for a test."""
    async with session_manager.session() as session:
        yield session
