from typing import Optional

from sqlmodel import Field

from eventstore.models.base import SoftDeleteModel, new_ulid


class Source(SoftDeleteModel, table=True):
    __tablename__ = "sources"

    id: str = Field(default_factory=new_ulid, primary_key=True)
    project_id: str = Field(index=True)
    name: str
    mask_id: Optional[str] = Field(default=None, index=True)
