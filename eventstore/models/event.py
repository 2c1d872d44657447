from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Text
from sqlmodel import Field, SQLModel

from eventstore.models.base import SoftDeleteModel, new_ulid
from eventstore.models.enums import EventStatus


class EventBase(SoftDeleteModel):
    id: str = Field(default_factory=new_ulid, primary_key=True)
    project_id: str = Field(index=True)
    event_type: str = Field(default="")
    endpoints: list[str] = Field(default_factory=list, sa_type=JSON)
    source_id: Optional[str] = Field(default=None, index=True)
    headers: Optional[dict] = Field(default=None, sa_type=JSON)
    raw: str = Field(default="", sa_type=Text)
    data: Optional[Any] = Field(default=None, sa_type=JSON)
    url_query_params: Optional[str] = Field(default=None)
    idempotency_key: Optional[str] = Field(default=None, index=True)
    is_duplicate_event: bool = Field(default=False, nullable=False)
    acknowledged_at: Optional[datetime] = Field(default=None)
    event_metadata: Optional[dict] = Field(default=None, sa_type=JSON)
    status: EventStatus = Field(default=EventStatus.pending)


class Event(EventBase, table=True):
    __tablename__ = "events"


class EventSearch(EventBase, table=True):
    """Denormalized copy of ``events`` carrying a text search token."""

    __tablename__ = "events_search"

    search_token: Optional[str] = Field(default=None, sa_type=Text)


class EventEndpoint(SQLModel, table=True):
    __tablename__ = "events_endpoints"

    event_id: str = Field(foreign_key="events.id", ondelete="CASCADE", primary_key=True)
    endpoint_id: str = Field(primary_key=True, index=True)
