from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventstore.core.config import settings
from eventstore.db.session import database, init_db
from eventstore.routes import events


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await database.dispose()


app = FastAPI(title="Event Store API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(events.router, prefix="/api/projects/{project_id}/events", tags=["events"])


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}
