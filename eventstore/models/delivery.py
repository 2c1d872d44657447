from sqlmodel import Field

from eventstore.models.base import SoftDeleteModel, new_ulid
from eventstore.models.enums import EventDeliveryStatus


class EventDelivery(SoftDeleteModel, table=True):
    """Only consulted to keep delivered events out of hard deletes."""

    __tablename__ = "event_deliveries"

    id: str = Field(default_factory=new_ulid, primary_key=True)
    project_id: str = Field(index=True)
    event_id: str = Field(foreign_key="events.id", index=True)
    endpoint_id: str = Field(index=True)
    status: EventDeliveryStatus = Field(default=EventDeliveryStatus.scheduled)
