from eventstore.models.event import Event, EventEndpoint, EventSearch
from eventstore.models.source import Source
from eventstore.models.delivery import EventDelivery

__all__ = [
    "Event",
    "EventEndpoint",
    "EventSearch",
    "Source",
    "EventDelivery",
]
