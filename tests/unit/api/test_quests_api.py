"""
Tests for the quests HTTP API.
"""
import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from mango_quests.api.routes.quests import get_generative_client, require_debug_routes
from mango_quests.infra.db.session import get_db
from mango_quests.main import create_app

from tests.conftest import OTHER_USER_ID, USER_ID, FakeGenerativeClient, generated_quest

HEADERS = {"X-User-Id": USER_ID, "X-User-Timezone": "Europe/Madrid"}


@pytest.fixture
def fake_client() -> FakeGenerativeClient:
    return FakeGenerativeClient({"quests": [generated_quest("Walk", 20), generated_quest("Stroll", 15)]})


@pytest.fixture
def app(session_factory, fake_client):
    app = create_app()
    
    async def override_get_db():
        async with session_factory() as session:
            yield session
    
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_generative_client] = lambda: fake_client
    return app


@pytest_asyncio.fixture
async def client(app):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_missing_user_is_unauthorized(client):
    resp = await client.get("/api/v1/quests")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_generate_activate_cancel_flow(client):
    resp = await client.post("/api/v1/quests/generate", json={"type": "daily"}, headers=HEADERS)
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert len(body["quests"]) == 2
    quest_id = body["quests"][0]["id"]
    assert body["quests"][0]["criteria"][0]["type"] == "steps_reach"
    
    resp = await client.post(f"/api/v1/quests/{quest_id}/activate", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["status"] == "active"
    
    resp = await client.get("/api/v1/quests", params={"status": "active"}, headers=HEADERS)
    assert [q["id"] for q in resp.json()["items"]] == [quest_id]
    
    resp = await client.post(f"/api/v1/quests/{quest_id}/cancel", headers=HEADERS)
    assert resp.json()["status"] == "cancelled"
    
    resp = await client.post(f"/api/v1/quests/{quest_id}/cancel", headers=HEADERS)
    assert resp.status_code == 400
    assert resp.json() == {
        "success": False,
        "error": {
            "code": "VALIDATION_ERROR",
            "message": resp.json()["error"]["message"],
            "details": {"quest_id": quest_id, "status": "cancelled"},
        },
    }


@pytest.mark.asyncio
async def test_generate_requires_timezone(client, fake_client):
    resp = await client.post("/api/v1/quests/generate", json={"type": "daily"}, headers={"X-User-Id": USER_ID})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
    assert fake_client.prompts == []


@pytest.mark.asyncio
async def test_generate_rejects_unknown_type(client):
    resp = await client.post("/api/v1/quests/generate", json={"type": "monthly"}, headers=HEADERS)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_generate_cooldown_is_429(client):
    await client.post("/api/v1/quests/generate", json={"type": "daily"}, headers=HEADERS)
    resp = await client.post("/api/v1/quests/generate", json={"type": "daily"}, headers=HEADERS)
    assert resp.status_code == 429
    error = resp.json()["error"]
    assert error["code"] == "COOLDOWN"
    assert error["details"]["next_allowed_at"]


@pytest.mark.asyncio
async def test_upstream_failure_is_502(client, fake_client):
    fake_client.error = httpx.ReadTimeout("slow")
    resp = await client.post("/api/v1/quests/generate", json={"type": "weekly"}, headers=HEADERS)
    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "UPSTREAM_ERROR"


@pytest.mark.asyncio
async def test_activation_limit_and_ownership(client, make_quest):
    quests = [await make_quest() for _ in range(3)]
    foreign = await make_quest(user_id=OTHER_USER_ID)
    
    for quest in quests[:2]:
        assert (await client.post(f"/api/v1/quests/{quest.id}/activate", headers=HEADERS)).status_code == 200
    
    resp = await client.post(f"/api/v1/quests/{quests[2].id}/activate", headers=HEADERS)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "ACTIVE_LIMIT_REACHED"
    
    resp = await client.post(f"/api/v1/quests/{foreign.id}/activate", headers=HEADERS)
    assert resp.status_code == 403
    
    resp = await client.post("/api/v1/quests/nope/activate", headers=HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_progress_then_claim(client, make_quest):
    quest = await make_quest(status="active", xp_reward=40, criteria=[{"type": "todo_complete", "target_count": 2}])
    
    resp = await client.post(
        "/api/v1/quests/progress", json={"type": "todo_complete", "payload": {"count": 2}}, headers=HEADERS
    )
    assert resp.status_code == 200
    assert resp.json()["claimable"] == [quest.id]
    
    resp = await client.post(f"/api/v1/quests/{quest.id}/claim", headers=HEADERS)
    assert resp.status_code == 200
    body = resp.json()
    assert body["quest"]["status"] == "completed"
    assert body["xp_award"] == {"awarded": 40, "new_xp": 40, "new_level": 1, "level_up": False}
    
    resp = await client.post(f"/api/v1/quests/{quest.id}/claim", headers=HEADERS)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_debug_routes_disabled_by_default(client, make_quest):
    quest = await make_quest(status="active")
    resp = await client.post(f"/api/v1/quests/{quest.id}/set-claimable", headers=HEADERS)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_debug_routes_when_enabled(app, client, make_quest):
    app.dependency_overrides[require_debug_routes] = lambda: None
    quest = await make_quest(status="active", criteria=[
        {"type": "pomodoro_session", "target_count": 4},
        {"type": "todo_complete", "target_count": 1},
    ])
    
    resp = await client.get("/api/v1/quests", headers=HEADERS)
    criteria = resp.json()["items"][0]["criteria"]
    
    resp = await client.post(f"/api/v1/quests/criteria/{criteria[0]['id']}/set-met", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["claimable"] == []
    
    resp = await client.post(f"/api/v1/quests/{quest.id}/set-claimable", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["status"] == "claimable"
