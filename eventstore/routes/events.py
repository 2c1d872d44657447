import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from eventstore.api import deps
from eventstore.core.config import settings
from eventstore.core.errors import EventNotFoundError, FilterValidationError
from eventstore.models.event import Event
from eventstore.repositories.event_repository import EventRepository
from eventstore.schemas.event import (
    EventCountResponse,
    EventCreateRequest,
    EventPageResponse,
    EventResponse,
)
from eventstore.schemas.pagination import EventFilter

router = APIRouter()


def _event_filter(
    project_id: str,
    endpoint_id: Optional[list[str]] = Query(default=None, alias="endpointId"),
    source_id: Optional[list[str]] = Query(default=None, alias="sourceId"),
    idempotency_key: Optional[str] = Query(default=None, alias="idempotencyKey"),
    query: Optional[str] = None,
    start_date: int = Query(default=0, alias="startDate"),
    end_date: Optional[int] = Query(default=None, alias="endDate"),
    per_page: int = Query(default=settings.default_per_page, alias="perPage"),
    direction: str = "next",
    sort: str = "desc",
    next_page_cursor: Optional[str] = None,
    prev_page_cursor: Optional[str] = None,
) -> EventFilter:
    try:
        return EventFilter.parse(
            project_id=project_id,
            endpoint_ids=_flatten(endpoint_id),
            source_ids=_flatten(source_id),
            idempotency_key=idempotency_key,
            query=query,
            search_params={"created_at_start": start_date, "created_at_end": end_date},
            pageable={
                "per_page": per_page,
                "direction": direction,
                "sort": sort,
                "next_page_cursor": next_page_cursor,
                "prev_page_cursor": prev_page_cursor,
            },
        )
    except FilterValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.details or exc.message) from exc


def _flatten(values: Optional[list[str]]) -> list[str]:
    # repeated params and comma-separated lists are both accepted
    if not values:
        return []
    return ",".join(values).split(",")


@router.get("", response_model=EventPageResponse)
async def list_events(
    event_filter: EventFilter = Depends(_event_filter),
    repo: EventRepository = Depends(deps.get_event_repository),
):
    events, pagination = await repo.load_events_paged(event_filter)
    return EventPageResponse(content=events, pagination=pagination)


@router.get("/count", response_model=EventCountResponse)
async def count_events(
    event_filter: EventFilter = Depends(_event_filter),
    repo: EventRepository = Depends(deps.get_event_repository),
):
    return EventCountResponse(count=await repo.count_events(event_filter))


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    project_id: str,
    event_id: str,
    repo: EventRepository = Depends(deps.get_event_repository),
):
    try:
        return await repo.find_event_by_id(project_id, event_id)
    except EventNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found") from None


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    project_id: str,
    payload: EventCreateRequest,
    repo: EventRepository = Depends(deps.get_event_repository),
):
    is_duplicate = False
    if payload.idempotency_key:
        existing = await repo.find_events_by_idempotency_key(project_id, payload.idempotency_key)
        is_duplicate = len(existing) > 0

    event = Event(
        project_id=project_id,
        event_type=payload.event_type,
        source_id=payload.source_id,
        headers=payload.headers,
        data=payload.data,
        raw=payload.raw if payload.raw is not None else _raw_body(payload.data),
        url_query_params=payload.url_query_params,
        idempotency_key=payload.idempotency_key,
        is_duplicate_event=is_duplicate,
        event_metadata=payload.metadata,
    )
    await repo.create_event(event, payload.endpoint_ids)
    logger.info(
        "Event created",
        project_id=project_id,
        event_id=event.id,
        endpoints=len(payload.endpoint_ids),
        is_duplicate_event=is_duplicate,
    )
    return await repo.find_event_by_id(project_id, event.id)


def _raw_body(data: object) -> str:
    if data is None:
        return ""
    return json.dumps(data, ensure_ascii=False)
