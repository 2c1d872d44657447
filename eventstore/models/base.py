from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel
from ulid import ULID


def new_ulid() -> str:
    return str(ULID())


class TimestampedModel(SQLModel):
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False, index=True)
    updated_at: Optional[datetime] = Field(default=None)


class SoftDeleteModel(TimestampedModel):
    deleted_at: Optional[datetime] = Field(default=None)
