import asyncio
from typing import Any, Dict

from loguru import logger

from eventstore.core.config import settings
from eventstore.db.session import database
from eventstore.repositories.event_repository import EventRepository
from eventstore.schemas.pagination import SearchParams
from eventstore.services.queue import COPY_ROWS, DELETE_TOKENIZED, TaskQueue


async def handle_task(task: Dict[str, Any], repo: EventRepository) -> None:
    task_type = task.get("type")
    payload = task.get("payload") or {}
    project_id = payload.get("project_id")
    if not project_id:
        logger.warning("Task payload missing project_id", task_type=task_type, payload=payload)
        return

    if task_type == COPY_ROWS:
        interval = int(payload.get("interval") or settings.search_tokenization_interval)
        await repo.copy_rows(project_id, interval)
    elif task_type == DELETE_TOKENIZED:
        search_params = SearchParams(
            created_at_start=payload.get("created_at_start") or 0,
            created_at_end=payload.get("created_at_end"),
        )
        count = await repo.delete_project_tokenized_events(project_id, search_params)
        logger.info("Deleted tokenized events", project_id=project_id, count=count)
    else:
        logger.warning("Unknown task type: {task_type}", task_type=task_type)


async def main() -> None:
    logger.info("Search tokenization worker started")
    repo = EventRepository(database)
    while True:
        task = await TaskQueue.dequeue(timeout=5)
        if task is None:
            await asyncio.sleep(1)
            continue
        logger.info("Processing task {task_type}", task_type=task.get("type"))
        try:
            await handle_task(task, repo)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to process task", error=str(exc), task=task)


if __name__ == "__main__":
    asyncio.run(main())
