"""Query construction for event listings.

Every statement is assembled from an ordered tuple of SQLAlchemy predicates
and rendered once by the dialect of the session that executes it.

Keyset paging truth table (bound on ``ev.id`` and the order of the inner
fetch, which the outer query flips back to the requested sort):

    sort  direction  bound            pre-order
    desc  next       id <= cursor     desc
    desc  prev       id >= cursor     asc
    asc   next       id >= cursor     asc
    asc   prev       id <= cursor     desc
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Mapping

from sqlalchemy import Select, distinct, func, select
from sqlalchemy.sql.expression import ColumnElement, FromClause

from eventstore.db.search import search_match
from eventstore.models.enums import PageDirection, SortOrder
from eventstore.models.event import Event, EventEndpoint, EventSearch
from eventstore.models.source import Source
from eventstore.schemas.event import EventResponse, SourceMetadata
from eventstore.schemas.pagination import EventFilter


@dataclass(frozen=True)
class PageBounds:
    compare: Callable[[Any, Any], ColumnElement]
    pre_order: SortOrder


_SOURCES = Source.__table__.alias("s")

_PAGE_BOUNDS: dict[tuple[SortOrder, PageDirection], PageBounds] = {
    (SortOrder.desc, PageDirection.next): PageBounds(operator.le, SortOrder.desc),
    (SortOrder.desc, PageDirection.prev): PageBounds(operator.ge, SortOrder.asc),
    (SortOrder.asc, PageDirection.next): PageBounds(operator.ge, SortOrder.asc),
    (SortOrder.asc, PageDirection.prev): PageBounds(operator.le, SortOrder.desc),
}


def page_bounds(sort: SortOrder, direction: PageDirection) -> PageBounds:
    return _PAGE_BOUNDS[(sort, direction)]


def before_first(sort: SortOrder) -> Callable[[Any, Any], ColumnElement]:
    """Strict comparison selecting rows displayed before a page's first row."""
    return operator.gt if sort == SortOrder.desc else operator.lt


def after(sort: SortOrder) -> Callable[[Any, Any], ColumnElement]:
    """Strict comparison selecting rows displayed after a boundary id."""
    return operator.lt if sort == SortOrder.desc else operator.gt


def ordered(column, order: SortOrder):
    return column.asc() if order == SortOrder.asc else column.desc()


@dataclass(frozen=True)
class EventQuery:
    source: FromClause
    predicates: tuple[ColumnElement, ...] = ()

    @property
    def ev(self):
        return self.source.c

    def where(self, *clauses: ColumnElement) -> EventQuery:
        return replace(self, predicates=self.predicates + clauses)

    def where_if(self, condition: Any, build: Callable[[], ColumnElement]) -> EventQuery:
        if not condition:
            return self
        return self.where(build())

    def columns(self) -> list:
        ev = self.ev
        s = _SOURCES
        return [
            ev.id,
            ev.project_id,
            ev.event_type,
            ev.endpoints,
            ev.source_id,
            ev.headers,
            ev.raw,
            ev.data,
            ev.url_query_params,
            ev.idempotency_key,
            ev.is_duplicate_event,
            ev.status,
            ev.event_metadata,
            ev.created_at,
            ev.updated_at,
            ev.acknowledged_at,
            ev.deleted_at,
            s.c.id.label("source_metadata_id"),
            s.c.name.label("source_metadata_name"),
        ]

    def select_events(self) -> Select:
        s = _SOURCES
        return (
            select(*self.columns())
            .select_from(self.source.outerjoin(s, s.c.id == self.ev.source_id))
            .where(*self.predicates)
        )

    def select_exists(self, *clauses: ColumnElement) -> Select:
        return select(select(self.ev.id).where(*self.predicates, *clauses).exists())

    def select_count(self) -> Select:
        return select(func.count(distinct(self.ev.id))).select_from(self.source).where(*self.predicates)


def events_source(search: bool = False) -> FromClause:
    table = EventSearch.__table__ if search else Event.__table__
    return table.alias("ev")


def live_events(project_id: str, *, search: bool = False) -> EventQuery:
    query = EventQuery(events_source(search))
    return query.where(query.ev.deleted_at.is_(None), query.ev.project_id == project_id)


def _endpoint_membership(ev, endpoint_ids: list[str]) -> ColumnElement:
    ee = EventEndpoint.__table__
    return (
        select(ee.c.event_id)
        .where(ee.c.event_id == ev.id, ee.c.endpoint_id.in_(endpoint_ids))
        .exists()
    )


def filtered_events(
    event_filter: EventFilter,
    start: datetime,
    end: datetime,
    *,
    with_search: bool = True,
) -> EventQuery:
    """Mandatory tenant/window predicates plus whichever optional ones are set."""
    search = with_search and bool(event_filter.query)
    query = live_events(event_filter.project_id, search=search)
    ev = query.ev
    return (
        query.where(ev.created_at >= start, ev.created_at <= end)
        .where_if(event_filter.idempotency_key, lambda: ev.idempotency_key == event_filter.idempotency_key)
        .where_if(event_filter.source_ids, lambda: ev.source_id.in_(event_filter.source_ids))
        .where_if(event_filter.endpoint_ids, lambda: _endpoint_membership(ev, event_filter.endpoint_ids))
        .where_if(search, lambda: search_match(ev.search_token, event_filter.query))
    )


def select_page(query: EventQuery, event_filter: EventFilter) -> Select:
    pageable = event_filter.pageable
    bounds = page_bounds(pageable.sort, pageable.direction)
    cursor = pageable.cursor()

    inner = query.where_if(cursor, lambda: bounds.compare(query.ev.id, cursor)).select_events()
    inner = inner.order_by(ordered(query.ev.id, bounds.pre_order)).limit(pageable.limit()).subquery("page")
    return select(inner).order_by(ordered(inner.c.id, pageable.sort))


def select_prev_exists(query: EventQuery, event_filter: EventFilter, first_id: str) -> Select:
    compare = before_first(event_filter.pageable.sort)
    return query.select_exists(compare(query.ev.id, first_id))


def select_next_exists(query: EventQuery, event_filter: EventFilter, boundary_id: str) -> Select:
    compare = after(event_filter.pageable.sort)
    return query.select_exists(compare(query.ev.id, boundary_id))


def decode_event(row: Mapping[str, Any]) -> EventResponse:
    source_metadata = None
    if row["source_metadata_id"]:
        source_metadata = SourceMetadata(
            id=row["source_metadata_id"],
            name=row["source_metadata_name"] or "",
        )

    return EventResponse(
        id=row["id"],
        project_id=row["project_id"],
        event_type=row["event_type"],
        endpoints=list(row["endpoints"] or []),
        source_id=row["source_id"],
        source_metadata=source_metadata,
        headers=row["headers"],
        raw=row["raw"] or "",
        data=row["data"],
        url_query_params=row["url_query_params"],
        idempotency_key=row["idempotency_key"],
        is_duplicate_event=bool(row["is_duplicate_event"]),
        status=row["status"],
        event_metadata=row["event_metadata"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        acknowledged_at=row["acknowledged_at"],
        deleted_at=row["deleted_at"],
    )
