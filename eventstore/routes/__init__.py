from eventstore.routes import events

__all__ = [
    "events",
]
