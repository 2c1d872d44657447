"""
Pytest Configuration and Fixtures
"""

from collections.abc import AsyncGenerator

import pytest_asyncio

from eventstore.db.session import Database
from eventstore.repositories.event_repository import EventRepository


@pytest_asyncio.fixture
async def db(tmp_path) -> AsyncGenerator[Database, None]:
    """Returns a fresh SQLite-backed database with the schema created."""
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'events.db'}")
    await database.init_db()
    yield database
    await database.dispose()


@pytest_asyncio.fixture
async def repo(db: Database) -> EventRepository:
    return EventRepository(db)
