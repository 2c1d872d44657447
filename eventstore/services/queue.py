import json
from typing import Any, Dict

import redis.asyncio as redis

from eventstore.core.config import settings

COPY_ROWS = "search.copy_rows"
DELETE_TOKENIZED = "search.delete_tokenized"


class TaskQueue:
    queue_name = "eventstore:tasks"
    _client: redis.Redis | None = None

    @classmethod
    def client(cls) -> redis.Redis:
        if cls._client is None:
            cls._client = redis.from_url(settings.redis_url, decode_responses=True)
        return cls._client

    @classmethod
    async def enqueue(cls, task_type: str, payload: Dict[str, Any]) -> None:
        client = cls.client()
        await client.rpush(cls.queue_name, json.dumps({"type": task_type, "payload": payload}))

    @classmethod
    async def dequeue(cls, timeout: int = 5) -> Dict[str, Any] | None:
        client = cls.client()
        item = await client.blpop(cls.queue_name, timeout=timeout)
        if not item:
            return None
        _, data = item
        return json.loads(data)

    @classmethod
    async def schedule_copy_rows(cls, project_id: str, interval: int | None = None) -> None:
        await cls.enqueue(
            COPY_ROWS,
            {"project_id": project_id, "interval": interval or settings.search_tokenization_interval},
        )

    @classmethod
    async def schedule_delete_tokenized(
        cls,
        project_id: str,
        *,
        created_at_start: int = 0,
        created_at_end: int | None = None,
    ) -> None:
        await cls.enqueue(
            DELETE_TOKENIZED,
            {
                "project_id": project_id,
                "created_at_start": created_at_start,
                "created_at_end": created_at_end,
            },
        )
