from fastapi import Depends

from eventstore.db.session import Database, database
from eventstore.repositories.event_repository import EventRepository


def get_database() -> Database:
    return database


def get_event_repository(db: Database = Depends(get_database)) -> EventRepository:
    return EventRepository(db)
