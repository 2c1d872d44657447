from eventstore.schemas.event import (
    EventCountResponse,
    EventCreateRequest,
    EventPageResponse,
    EventResponse,
    SourceMetadata,
)
from eventstore.schemas.pagination import EventFilter, Pageable, PaginationData, SearchParams

__all__ = [
    "EventCountResponse",
    "EventCreateRequest",
    "EventPageResponse",
    "EventResponse",
    "SourceMetadata",
    "EventFilter",
    "Pageable",
    "PaginationData",
    "SearchParams",
]
