from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from eventstore.core.config import settings
from eventstore.db.transaction import SharedTransaction
from eventstore import models  # noqa: F401


def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def _create_engine(url: str) -> AsyncEngine:
    engine = create_async_engine(url, echo=False, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragma)
    return engine


class Database:
    """Primary (write) engine plus a read-preferring engine.

    Without a replica URL both roles share one engine.
    """

    def __init__(self, url: str, read_url: str | None = None):
        self.engine = _create_engine(url)
        if read_url and read_url != url:
            self.read_engine = _create_engine(read_url)
        else:
            self.read_engine = self.engine
        self.SessionLocal = async_sessionmaker(self.engine, expire_on_commit=False)
        self.ReadSessionLocal = async_sessionmaker(self.read_engine, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.SessionLocal() as session:
            yield session

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        async with self.ReadSessionLocal() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SharedTransaction]:
        """Open a primary transaction that several repository calls can share.

        Commits when the block exits normally, rolls back on any exception
        (cancellation included).
        """
        async with self.SessionLocal() as session:
            async with session.begin():
                yield SharedTransaction(session)

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Event store schema ensured", dialect=self.engine.dialect.name)

    async def dispose(self) -> None:
        await self.engine.dispose()
        if self.read_engine is not self.engine:
            await self.read_engine.dispose()


database = Database(settings.database_url, settings.get_read_database_url())


async def init_db() -> None:
    await database.init_db()
