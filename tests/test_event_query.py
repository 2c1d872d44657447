import operator

import pytest
from sqlalchemy.dialects import postgresql, sqlite

from eventstore.models.enums import PageDirection, SortOrder
from eventstore.repositories.event_query import (
    after,
    before_first,
    filtered_events,
    page_bounds,
    select_next_exists,
    select_page,
    select_prev_exists,
)
from eventstore.schemas.pagination import EventFilter, SearchParams


def _sql(stmt, dialect) -> str:
    return str(stmt.compile(dialect=dialect))


@pytest.mark.parametrize(
    "sort, direction, compare, pre_order",
    [
        (SortOrder.desc, PageDirection.next, operator.le, SortOrder.desc),
        (SortOrder.desc, PageDirection.prev, operator.ge, SortOrder.asc),
        (SortOrder.asc, PageDirection.next, operator.ge, SortOrder.asc),
        (SortOrder.asc, PageDirection.prev, operator.le, SortOrder.desc),
    ],
)
def test_page_bounds_truth_table(sort, direction, compare, pre_order):
    bounds = page_bounds(sort, direction)

    assert bounds.compare is compare
    assert bounds.pre_order == pre_order


def test_rows_before_first_flip_with_sort_order():
    assert before_first(SortOrder.desc) is operator.gt
    assert before_first(SortOrder.asc) is operator.lt


def _filter(**fields) -> EventFilter:
    fields.setdefault("project_id", "p1")
    return EventFilter.parse(**fields)


def _window(event_filter: EventFilter):
    return event_filter.search_params.window()


def test_optional_predicates_are_only_added_when_set():
    bare = _filter()
    full = _filter(endpoint_ids=["ep-1"], source_ids=["src-1"], idempotency_key="key-1")

    bare_sql = _sql(filtered_events(bare, *_window(bare)).select_events(), sqlite.dialect())
    full_sql = _sql(filtered_events(full, *_window(full)).select_events(), sqlite.dialect())

    assert "events_endpoints" not in bare_sql
    assert "idempotency_key =" not in bare_sql
    assert "ev.source_id IN" not in bare_sql
    assert "EXISTS (SELECT events_endpoints.event_id" in full_sql
    assert "ev.idempotency_key =" in full_sql
    assert "ev.source_id IN" in full_sql
    assert "ev.deleted_at IS NULL" in bare_sql
    assert "ev.project_id =" in bare_sql


def test_search_switches_base_source_and_predicate():
    event_filter = _filter(query="payment failed")
    query = filtered_events(event_filter, *_window(event_filter))

    pg_sql = _sql(query.select_events(), postgresql.dialect())
    sqlite_sql = _sql(query.select_events(), sqlite.dialect())

    assert "FROM events_search AS ev" in pg_sql
    assert "to_tsvector" in pg_sql and "websearch_to_tsquery" in pg_sql and "@@" in pg_sql
    assert "to_tsvector" not in sqlite_sql
    assert sqlite_sql.count("LIKE") == 2


def test_count_never_uses_search_relation():
    event_filter = _filter(query="payment")
    query = filtered_events(event_filter, *_window(event_filter), with_search=False)

    sql = _sql(query.select_count(), sqlite.dialect())

    assert "events_search" not in sql
    assert "count(DISTINCT ev.id)" in sql


@pytest.mark.parametrize(
    "sort, direction, bound, inner_order, outer_order",
    [
        ("desc", "next", "ev.id <=", "ORDER BY ev.id DESC", "ORDER BY page.id DESC"),
        ("desc", "prev", "ev.id >=", "ORDER BY ev.id ASC", "ORDER BY page.id DESC"),
        ("asc", "next", "ev.id >=", "ORDER BY ev.id ASC", "ORDER BY page.id ASC"),
        ("asc", "prev", "ev.id <=", "ORDER BY ev.id DESC", "ORDER BY page.id ASC"),
    ],
)
def test_page_query_shape(sort, direction, bound, inner_order, outer_order):
    event_filter = _filter(
        pageable={
            "per_page": 10,
            "sort": sort,
            "direction": direction,
            "next_page_cursor": "evt-5",
            "prev_page_cursor": "evt-5",
        }
    )
    query = filtered_events(event_filter, *_window(event_filter))

    sql = _sql(select_page(query, event_filter), sqlite.dialect())

    assert bound in sql
    assert inner_order in sql
    assert sql.rstrip().endswith(outer_order)
    assert "LIMIT" in sql


def test_page_query_without_cursor_has_no_bound():
    event_filter = _filter()
    query = filtered_events(event_filter, *_window(event_filter))

    sql = _sql(select_page(query, event_filter), sqlite.dialect())

    assert "ev.id <=" not in sql and "ev.id >=" not in sql


def test_prev_exists_reuses_predicates_with_strict_bound():
    desc_filter = _filter(source_ids=["src-1"])
    asc_filter = _filter(source_ids=["src-1"], pageable={"sort": "asc"})

    desc_sql = _sql(
        select_prev_exists(filtered_events(desc_filter, *_window(desc_filter)), desc_filter, "evt-5"),
        sqlite.dialect(),
    )
    asc_sql = _sql(
        select_prev_exists(filtered_events(asc_filter, *_window(asc_filter)), asc_filter, "evt-5"),
        sqlite.dialect(),
    )

    assert desc_sql.startswith("SELECT EXISTS")
    assert "ev.id > " in desc_sql
    assert "ev.id < " in asc_sql
    assert "ev.source_id IN" in desc_sql


def test_window_is_part_of_every_listing():
    event_filter = _filter(search_params=SearchParams(created_at_start=10, created_at_end=20))

    sql = _sql(filtered_events(event_filter, *_window(event_filter)).select_events(), sqlite.dialect())

    assert "ev.created_at >=" in sql
    assert "ev.created_at <=" in sql


def test_next_exists_looks_past_boundary_in_display_order():
    desc_filter = _filter(pageable={"direction": "prev"})
    asc_filter = _filter(pageable={"direction": "prev", "sort": "asc"})

    desc_sql = _sql(
        select_next_exists(filtered_events(desc_filter, *_window(desc_filter)), desc_filter, "evt-5"),
        sqlite.dialect(),
    )
    asc_sql = _sql(
        select_next_exists(filtered_events(asc_filter, *_window(asc_filter)), asc_filter, "evt-5"),
        sqlite.dialect(),
    )

    assert after(SortOrder.desc) is operator.lt
    assert after(SortOrder.asc) is operator.gt
    assert "ev.id < " in desc_sql
    assert "ev.id > " in asc_sql
    assert "ev.deleted_at IS NULL" in desc_sql
