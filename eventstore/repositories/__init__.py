from eventstore.repositories.event_repository import EventRepository

__all__ = [
    "EventRepository",
]
