"""Row streaming export used for project backups."""

import json
from datetime import datetime
from enum import Enum
from typing import Any, TextIO

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


async def export_records(
    session: AsyncSession,
    table_name: str,
    project_id: str,
    since: datetime,
    writer: TextIO,
) -> int:
    """Write live rows of ``table_name`` created at or after ``since`` as a JSON array.

    Returns the number of rows written.
    """
    table = SQLModel.metadata.tables[table_name]
    stmt = (
        select(table)
        .where(table.c.project_id == project_id, table.c.created_at >= since)
        .order_by(table.c.id)
    )
    if "deleted_at" in table.c:
        stmt = stmt.where(table.c.deleted_at.is_(None))

    count = 0
    writer.write("[")
    result = await session.stream(stmt)
    async for row in result:
        if count:
            writer.write(",")
        writer.write(json.dumps(dict(row._mapping), default=_encode, ensure_ascii=False))
        count += 1
    writer.write("]")
    return count
