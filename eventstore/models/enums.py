from enum import Enum


class EventStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    success = "success"
    failure = "failure"
    retry = "retry"
    discarded = "discarded"


class EventDeliveryStatus(str, Enum):
    scheduled = "scheduled"
    processing = "processing"
    success = "success"
    failure = "failure"
    retry = "retry"
    discarded = "discarded"


class PageDirection(str, Enum):
    next = "next"
    prev = "prev"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"

