from collections.abc import Iterable

from sqlalchemy import func, select

from eventstore.db.session import Database
from eventstore.models.event import Event, EventEndpoint
from eventstore.repositories.event_repository import EventRepository

PROJECT_ID = "project-1"


def make_event(event_id: str, project_id: str = PROJECT_ID, **fields) -> Event:
    fields.setdefault("event_type", "invoice.paid")
    fields.setdefault("raw", '{"amount": 100}')
    fields.setdefault("data", {"amount": 100})
    return Event(id=event_id, project_id=project_id, **fields)


def event_id(n: int) -> str:
    return f"evt-{n:04d}"


async def seed_events(repo: EventRepository, numbers: Iterable[int], **fields) -> None:
    for n in numbers:
        await repo.create_event(make_event(event_id(n), **fields))


async def association_count(db: Database, event_id: str | None = None) -> int:
    stmt = select(func.count()).select_from(EventEndpoint)
    if event_id is not None:
        stmt = stmt.where(EventEndpoint.event_id == event_id)
    async with db.session() as session:
        return await session.scalar(stmt)


async def event_row_count(db: Database) -> int:
    async with db.session() as session:
        return await session.scalar(select(func.count()).select_from(Event))
