from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from eventstore.models.enums import EventStatus
from eventstore.schemas.pagination import PaginationData


class SourceMetadata(BaseModel):
    id: str
    name: str


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    event_type: str
    endpoints: list[str] = Field(default_factory=list)
    source_id: Optional[str] = None
    source_metadata: Optional[SourceMetadata] = None
    headers: Optional[dict] = None
    raw: str = ""
    data: Any = None
    url_query_params: Optional[str] = None
    idempotency_key: Optional[str] = None
    is_duplicate_event: bool = False
    status: EventStatus = EventStatus.pending
    event_metadata: Optional[dict] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class EventPageResponse(BaseModel):
    content: list[EventResponse]
    pagination: PaginationData


class EventCountResponse(BaseModel):
    count: int


class EventCreateRequest(BaseModel):
    event_type: str = Field(min_length=1, max_length=255)
    endpoint_ids: list[str] = Field(default_factory=list)
    source_id: Optional[str] = None
    headers: Optional[dict[str, list[str]]] = None
    data: Any = None
    raw: Optional[str] = None
    url_query_params: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, max_length=255)
    metadata: Optional[dict] = None
