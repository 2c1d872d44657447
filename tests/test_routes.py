from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from eventstore.api import deps
from eventstore.db.session import Database
from eventstore import main
from eventstore.main import app
from tests.helpers import PROJECT_ID

BASE = f"/api/projects/{PROJECT_ID}/events"


@pytest_asyncio.fixture
async def client(db: Database) -> AsyncGenerator[httpx.AsyncClient, None]:
    app.dependency_overrides[deps.get_database] = lambda: db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def _create(client: httpx.AsyncClient, **body) -> dict:
    body.setdefault("event_type", "invoice.paid")
    body.setdefault("data", {"amount": 100})
    response = await client.post(BASE, json=body)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client: httpx.AsyncClient):
    response = await client.get("/health")

    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_create_and_fetch_event(client: httpx.AsyncClient):
    created = await _create(client, endpoint_ids=["ep-1", "ep-2"], headers={"X-Id": ["1"]})

    response = await client.get(f"{BASE}/{created['id']}")

    assert response.status_code == 200
    event = response.json()
    assert event["project_id"] == PROJECT_ID
    assert event["endpoints"] == ["ep-1", "ep-2"]
    assert event["status"] == "pending"
    assert event["raw"] == '{"amount": 100}'
    assert event["headers"] == {"X-Id": ["1"]}


@pytest.mark.asyncio
async def test_repeated_idempotency_key_marks_duplicate(client: httpx.AsyncClient):
    first = await _create(client, idempotency_key="key-1")
    second = await _create(client, idempotency_key="key-1")

    assert first["is_duplicate_event"] is False
    assert second["is_duplicate_event"] is True


@pytest.mark.asyncio
async def test_missing_event_is_404(client: httpx.AsyncClient):
    response = await client.get(f"{BASE}/does-not-exist")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_pages_and_filters(client: httpx.AsyncClient):
    created = [
        await _create(client, endpoint_ids=["ep-1"]),
        await _create(client, endpoint_ids=["ep-2"]),
        await _create(client, endpoint_ids=["ep-1"]),
    ]
    # ids generated within one millisecond are not ordered by creation
    ids = sorted(event["id"] for event in created)

    response = await client.get(BASE, params={"perPage": 2})
    page = response.json()

    assert response.status_code == 200
    assert [event["id"] for event in page["content"]] == [ids[2], ids[1]]
    assert page["pagination"]["has_next_page"] is True
    assert page["pagination"]["next_page_cursor"] == ids[0]

    response = await client.get(BASE, params={"perPage": 2, "next_page_cursor": ids[0]})
    page = response.json()

    assert [event["id"] for event in page["content"]] == [ids[0]]
    assert page["pagination"]["has_prev_page"] is True
    assert page["pagination"]["has_next_page"] is False

    response = await client.get(BASE, params={"endpointId": "ep-1", "sort": "asc"})

    ep_1 = sorted(event["id"] for event in created if event["endpoints"] == ["ep-1"])
    assert [event["id"] for event in response.json()["content"]] == ep_1


@pytest.mark.asyncio
async def test_count(client: httpx.AsyncClient):
    await _create(client, endpoint_ids=["ep-1"])
    await _create(client, endpoint_ids=["ep-2"])

    total = await client.get(f"{BASE}/count")
    filtered = await client.get(f"{BASE}/count", params=[("endpointId", "ep-1"), ("endpointId", "ep-9")])

    assert total.json() == {"count": 2}
    assert filtered.json() == {"count": 1}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params",
    [
        {"perPage": 0},
        {"direction": "sideways"},
        {"endpointId": "ep 1"},
        {"startDate": 200, "endDate": 100},
        {"endDate": 10_000_000_000_000},
    ],
)
async def test_malformed_filters_are_400(client: httpx.AsyncClient, params):
    response = await client.get(BASE, params=params)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_count_rejects_out_of_range_window(client: httpx.AsyncClient):
    response = await client.get(f"{BASE}/count", params={"startDate": 10_000_000_000_000})

    assert response.status_code == 400
    assert "search_params.created_at_start" in response.json()["detail"]


@pytest.mark.asyncio
async def test_lifespan_creates_tables_and_disposes_engines(monkeypatch):
    calls: list[str] = []

    async def fake_init_db():
        calls.append("init_db")

    class FakeDatabase:
        async def dispose(self):
            calls.append("dispose")

    monkeypatch.setattr(main, "init_db", fake_init_db)
    monkeypatch.setattr(main, "database", FakeDatabase())

    async with main.lifespan(app):
        assert calls == ["init_db"]

    assert calls == ["init_db", "dispose"]
