from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from eventstore.core.errors import FilterValidationError
from eventstore.models.enums import PageDirection, SortOrder


def _split_ids(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",") if value.strip() else []
    if not isinstance(value, (list, tuple, set)):
        raise ValueError("expected a list of ids")

    ids: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"id must be a string, got {type(item).__name__}")
        item = item.strip()
        if not item or any(ch.isspace() for ch in item):
            raise ValueError(f"malformed id {item!r}")
        if item not in ids:
            ids.append(item)
    return ids


# 9999-12-31T23:59:59Z, the last second datetime can represent
MAX_TIMESTAMP = 253402300799


def _to_naive_utc(timestamp: int) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


class Pageable(BaseModel):
    model_config = ConfigDict(frozen=True)

    per_page: int = Field(default=20, ge=1)
    direction: PageDirection = PageDirection.next
    sort: SortOrder = SortOrder.desc
    next_page_cursor: Optional[str] = None
    prev_page_cursor: Optional[str] = None

    @field_validator("direction", "sort", mode="before")
    @classmethod
    def _lowercase(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("next_page_cursor", "prev_page_cursor", mode="before")
    @classmethod
    def _blank_cursor(cls, value: object) -> object:
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    def cursor(self) -> Optional[str]:
        if self.direction == PageDirection.next:
            return self.next_page_cursor
        return self.prev_page_cursor

    def limit(self) -> int:
        # one extra row tells whether more data exists in the fetch direction
        return self.per_page + 1


class SearchParams(BaseModel):
    """Creation-time window in unix seconds. A missing end means "now"."""

    model_config = ConfigDict(frozen=True)

    created_at_start: int = Field(default=0, ge=0, le=MAX_TIMESTAMP)
    created_at_end: Optional[int] = Field(default=None, ge=0, le=MAX_TIMESTAMP)

    @model_validator(mode="after")
    def _ordered(self) -> "SearchParams":
        if self.created_at_end is not None and self.created_at_start > self.created_at_end:
            raise ValueError("created_at_start must not be after created_at_end")
        return self

    def window(self) -> tuple[datetime, datetime]:
        start = _to_naive_utc(self.created_at_start)
        if self.created_at_end is None:
            end = datetime.utcnow()
        else:
            end = _to_naive_utc(self.created_at_end)
        return start, end


class EventFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str = Field(min_length=1)
    endpoint_ids: list[str] = Field(default_factory=list)
    source_ids: list[str] = Field(default_factory=list)
    idempotency_key: Optional[str] = None
    query: Optional[str] = None
    search_params: SearchParams = Field(default_factory=SearchParams)
    pageable: Pageable = Field(default_factory=Pageable)

    @model_validator(mode="before")
    @classmethod
    def _merge_single_endpoint(cls, data: Any) -> Any:
        if isinstance(data, dict) and "endpoint_id" in data:
            data = dict(data)
            endpoint_id = data.pop("endpoint_id")
            if endpoint_id:
                data["endpoint_ids"] = _split_ids(data.get("endpoint_ids")) + _split_ids([endpoint_id])
        return data

    @field_validator("endpoint_ids", "source_ids", mode="before")
    @classmethod
    def _parse_ids(cls, value: Any) -> list[str]:
        return _split_ids(value)

    @field_validator("idempotency_key", "query", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @classmethod
    def parse(cls, **raw: Any) -> "EventFilter":
        """Build a filter from loose input, failing before any query runs."""
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            details = {
                ".".join(str(part) for part in error["loc"]) or "filter": error["msg"]
                for error in exc.errors()
            }
            raise FilterValidationError("invalid event filter", details) from exc


class PaginationData(BaseModel):
    per_page: int
    has_next_page: bool = False
    has_prev_page: bool = False
    next_page_cursor: str = ""
    prev_page_cursor: str = ""
