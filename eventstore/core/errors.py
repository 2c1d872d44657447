"""Error kinds surfaced by the event store.

Store failures (``sqlalchemy.exc.SQLAlchemyError``, timeouts, cancellation) are
not wrapped: they reach the caller unchanged.
"""

from typing import Dict, Optional


class EventStoreError(Exception):
    """Base exception for event store errors."""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class EventNotFoundError(EventStoreError):
    def __init__(self, project_id: str, event_id: str | None = None, **details: str):
        context = {"project_id": project_id, **details}
        if event_id is not None:
            context["event_id"] = event_id
        super().__init__("event not found", context)


class FilterValidationError(EventStoreError):
    """Raised for malformed filter input, before any query is issued."""
