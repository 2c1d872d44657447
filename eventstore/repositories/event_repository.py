from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Iterable, TextIO

from loguru import logger
from sqlalchemy import delete, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventstore.core.config import settings
from eventstore.core.errors import EventNotFoundError, EventStoreError
from eventstore.db.session import Database
from eventstore.db.transaction import SharedTransaction, acquire_transaction
from eventstore.models.delivery import EventDelivery
from eventstore.models.enums import EventStatus, PageDirection
from eventstore.models.event import Event, EventEndpoint, EventSearch
from eventstore.repositories.event_query import (
    decode_event,
    filtered_events,
    live_events,
    select_next_exists,
    select_page,
    select_prev_exists,
)
from eventstore.schemas.event import EventResponse
from eventstore.schemas.pagination import EventFilter, Pageable, PaginationData, SearchParams
from eventstore.services.export import export_records

EXPORT_TABLE = "events"


def partition(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _insert_ignoring_duplicates(dialect_name: str):
    table = EventEndpoint.__table__
    if dialect_name == "postgresql":
        stmt = postgresql.insert(table)
    elif dialect_name == "sqlite":
        stmt = sqlite.insert(table)
    else:
        raise EventStoreError("no duplicate-ignoring insert for dialect", {"dialect": dialect_name})
    return stmt.on_conflict_do_nothing(index_elements=["endpoint_id", "event_id"])


def _trim_page(events: list[EventResponse], pageable: Pageable) -> tuple[list[EventResponse], bool, str]:
    """Cut the fetched rows down to one page.

    Returns the page, whether rows exist after it and the cursor that starts
    the following page.
    """
    per_page = pageable.per_page
    if pageable.direction == PageDirection.next:
        has_next = len(events) > per_page
        next_cursor = events[per_page].id if has_next else ""
        return events[:per_page], has_next, next_cursor

    # the inclusive bound brings back the row the caller navigated from
    cursor = pageable.cursor()
    cursor_seen = bool(events) and events[-1].id == cursor
    if cursor_seen:
        events = events[:-1]
    if len(events) > per_page:
        events = events[len(events) - per_page:]
    return events, cursor_seen, cursor if cursor_seen else ""


class EventRepository:
    def __init__(self, db: Database, partition_size: int | None = None):
        self.db = db
        self.partition_size = partition_size or settings.event_partition_size

    @asynccontextmanager
    async def _operation(self, operation: str, **context):
        try:
            yield
        except SQLAlchemyError as exc:
            logger.warning(
                "Event store operation {operation} failed",
                operation=operation,
                error=str(exc),
                **context,
            )
            raise

    async def create_event(
        self,
        event: Event,
        endpoint_ids: Iterable[str] | None = None,
        *,
        tx: SharedTransaction | None = None,
    ) -> Event:
        endpoints = list(event.endpoints if endpoint_ids is None else endpoint_ids)
        event.endpoints = endpoints
        event.status = EventStatus.pending
        if not event.source_id:
            event.source_id = None

        async with self._operation("create_event", project_id=event.project_id, event_id=event.id):
            async with acquire_transaction(self.db, tx) as session:
                session.add(event)
                await session.flush()
                await self._link_endpoints(session, event.id, endpoints)
        return event

    async def update_event_endpoints(
        self,
        event: Event,
        endpoint_ids: Iterable[str],
        *,
        tx: SharedTransaction | None = None,
    ) -> None:
        endpoints = list(endpoint_ids)
        async with self._operation("update_event_endpoints", project_id=event.project_id, event_id=event.id):
            async with acquire_transaction(self.db, tx) as session:
                await session.execute(
                    update(Event)
                    .where(Event.project_id == event.project_id, Event.id == event.id)
                    .values(endpoints=list(event.endpoints), updated_at=datetime.utcnow())
                    .execution_options(synchronize_session=False)
                )
                await self._link_endpoints(session, event.id, endpoints)

    async def update_event_status(
        self,
        event: Event,
        status: EventStatus,
        *,
        tx: SharedTransaction | None = None,
    ) -> None:
        async with self._operation("update_event_status", project_id=event.project_id, event_id=event.id):
            async with acquire_transaction(self.db, tx) as session:
                await session.execute(
                    update(Event)
                    .where(Event.project_id == event.project_id, Event.id == event.id)
                    .values(status=status, updated_at=datetime.utcnow())
                    .execution_options(synchronize_session=False)
                )
        event.status = status

    async def _link_endpoints(self, session: AsyncSession, event_id: str, endpoint_ids: Sequence[str]) -> None:
        chunks = 0
        for chunk in partition(endpoint_ids, self.partition_size):
            await self._insert_endpoint_chunk(session, event_id, chunk)
            chunks += 1
        logger.debug(
            "Linked event to endpoints",
            event_id=event_id,
            endpoints=len(endpoint_ids),
            chunks=chunks,
        )

    async def _insert_endpoint_chunk(self, session: AsyncSession, event_id: str, chunk: Sequence[str]) -> None:
        stmt = _insert_ignoring_duplicates(session.get_bind().dialect.name)
        await session.execute(stmt, [{"event_id": event_id, "endpoint_id": endpoint_id} for endpoint_id in chunk])

    async def find_event_by_id(self, project_id: str, event_id: str) -> EventResponse:
        """Point lookup on the primary database, for callers that need fresh rows."""
        query = live_events(project_id)
        stmt = query.where(query.ev.id == event_id).select_events()
        async with self._operation("find_event_by_id", project_id=project_id, event_id=event_id):
            async with self.db.session() as session:
                row = (await session.execute(stmt)).first()
        if row is None:
            raise EventNotFoundError(project_id, event_id)
        return decode_event(row._mapping)

    async def find_events_by_ids(self, project_id: str, ids: Iterable[str]) -> list[EventResponse]:
        ids = list(ids)
        if not ids:
            return []
        query = live_events(project_id)
        stmt = query.where(query.ev.id.in_(ids)).select_events().order_by(query.ev.id)
        async with self._operation("find_events_by_ids", project_id=project_id):
            async with self.db.read_session() as session:
                result = await session.execute(stmt)
                return [decode_event(row._mapping) for row in result]

    async def find_events_by_idempotency_key(self, project_id: str, idempotency_key: str) -> list[EventResponse]:
        query = live_events(project_id)
        stmt = query.where(query.ev.idempotency_key == idempotency_key).select_events().order_by(query.ev.id)
        async with self._operation("find_events_by_idempotency_key", project_id=project_id):
            async with self.db.session() as session:
                result = await session.execute(stmt)
                return [decode_event(row._mapping) for row in result]

    async def find_first_event_with_idempotency_key(self, project_id: str, idempotency_key: str) -> EventResponse:
        query = live_events(project_id)
        ev = query.ev
        stmt = (
            query.where(ev.idempotency_key == idempotency_key, ev.is_duplicate_event.is_(False))
            .select_events()
            .order_by(ev.id)
            .limit(1)
        )
        async with self._operation("find_first_event_with_idempotency_key", project_id=project_id):
            async with self.db.session() as session:
                row = (await session.execute(stmt)).first()
        if row is None:
            raise EventNotFoundError(project_id, idempotency_key=idempotency_key)
        return decode_event(row._mapping)

    async def count_project_messages(self, project_id: str) -> int:
        query = live_events(project_id)
        async with self._operation("count_project_messages", project_id=project_id):
            async with self.db.read_session() as session:
                return int(await session.scalar(query.select_count()) or 0)

    async def count_events(self, event_filter: EventFilter) -> int:
        start, end = event_filter.search_params.window()
        query = filtered_events(event_filter, start, end, with_search=False)
        async with self._operation("count_events", project_id=event_filter.project_id):
            async with self.db.read_session() as session:
                return int(await session.scalar(query.select_count()) or 0)

    async def load_events_paged(self, event_filter: EventFilter) -> tuple[list[EventResponse], PaginationData]:
        pageable = event_filter.pageable
        start, end = event_filter.search_params.window()
        query = filtered_events(event_filter, start, end)

        async with self._operation("load_events_paged", project_id=event_filter.project_id):
            async with self.db.read_session() as session:
                result = await session.execute(select_page(query, event_filter))
                events = [decode_event(row._mapping) for row in result]
                events, has_next, next_cursor = _trim_page(events, pageable)

                cursor = pageable.cursor()
                if pageable.direction == PageDirection.prev and cursor and not has_next:
                    # the cursor row is gone or filtered out, so ask past it directly
                    has_next = bool(await session.scalar(select_next_exists(query, event_filter, cursor)))
                    next_cursor = cursor if has_next else ""

                has_prev = False
                if events:
                    has_prev = bool(await session.scalar(select_prev_exists(query, event_filter, events[0].id)))

        pagination = PaginationData(
            per_page=pageable.per_page,
            has_next_page=has_next,
            has_prev_page=has_prev,
            next_page_cursor=next_cursor,
            prev_page_cursor=events[0].id if events else "",
        )
        return events, pagination

    async def delete_project_events(
        self,
        project_id: str,
        search_params: SearchParams,
        hard_delete: bool = False,
    ) -> int:
        start, end = search_params.window()
        window = (Event.project_id == project_id, Event.created_at >= start, Event.created_at <= end)
        search_window = (
            EventSearch.project_id == project_id,
            EventSearch.created_at >= start,
            EventSearch.created_at <= end,
        )

        async with self._operation("delete_project_events", project_id=project_id, hard_delete=hard_delete):
            async with self.db.session() as session:
                async with session.begin():
                    if hard_delete:
                        undelivered = ~(
                            select(EventDelivery.id)
                            .where(EventDelivery.event_id == Event.id)
                            .correlate(Event)
                            .exists()
                        )
                        result = await session.execute(
                            delete(Event).where(*window, undelivered).execution_options(synchronize_session=False)
                        )
                        orphaned = ~select(Event.id).where(Event.id == EventSearch.id).correlate(EventSearch).exists()
                        await session.execute(
                            delete(EventSearch)
                            .where(*search_window, orphaned)
                            .execution_options(synchronize_session=False)
                        )
                    else:
                        now = datetime.utcnow()
                        result = await session.execute(
                            update(Event)
                            .where(*window, Event.deleted_at.is_(None))
                            .values(deleted_at=now)
                            .execution_options(synchronize_session=False)
                        )
                        await session.execute(
                            update(EventSearch)
                            .where(*search_window, EventSearch.deleted_at.is_(None))
                            .values(deleted_at=now)
                            .execution_options(synchronize_session=False)
                        )

        logger.info(
            "Deleted project events",
            project_id=project_id,
            hard_delete=hard_delete,
            count=result.rowcount,
        )
        return result.rowcount

    async def delete_project_tokenized_events(self, project_id: str, search_params: SearchParams) -> int:
        start, end = search_params.window()
        async with self._operation("delete_project_tokenized_events", project_id=project_id):
            async with self.db.session() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(EventSearch)
                        .where(
                            EventSearch.project_id == project_id,
                            EventSearch.created_at >= start,
                            EventSearch.created_at <= end,
                        )
                        .execution_options(synchronize_session=False)
                    )
        return result.rowcount

    async def copy_rows(self, project_id: str, interval: int) -> int:
        """Copy recent live events into the search relation.

        A non-default interval rebuilds the project's search rows from scratch.
        """
        events = Event.__table__
        search = EventSearch.__table__
        since = datetime.utcnow() - timedelta(hours=interval)
        names = [column.name for column in events.columns]

        rows = select(*events.columns, events.c.raw.label("search_token")).where(
            events.c.project_id == project_id,
            events.c.deleted_at.is_(None),
            events.c.created_at >= since,
            ~select(search.c.id).where(search.c.id == events.c.id).correlate(events).exists(),
        )

        async with self._operation("copy_rows", project_id=project_id, interval=interval):
            async with self.db.session() as session:
                async with session.begin():
                    if interval != settings.search_tokenization_interval:
                        await session.execute(delete(search).where(search.c.project_id == project_id))
                    result = await session.execute(insert(search).from_select([*names, "search_token"], rows))

        logger.info("Copied events into search table", project_id=project_id, interval=interval, count=result.rowcount)
        return result.rowcount

    async def export_records(self, project_id: str, since: datetime, writer: TextIO) -> int:
        async with self._operation("export_records", project_id=project_id):
            async with self.db.read_session() as session:
                return await export_records(session, EXPORT_TABLE, project_id, since, writer)
