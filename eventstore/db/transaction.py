from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

if TYPE_CHECKING:
    from eventstore.db.session import Database


@dataclass(frozen=True)
class SharedTransaction:
    """A transaction opened by the caller.

    Writers run their statements on ``session`` and leave commit and rollback
    to whoever opened it.
    """

    session: AsyncSession


@asynccontextmanager
async def acquire_transaction(db: Database, tx: SharedTransaction | None) -> AsyncIterator[AsyncSession]:
    if tx is not None:
        yield tx.session
        return

    async with db.session() as session:
        async with session.begin():
            yield session
