"""Tests for the FastAPI surface (anemone/api/agent_api.py)."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from anemone.config.settings import Settings
from anemone.di_container import AgentContainer


@pytest.fixture
def container(tmp_path):
    settings = Settings(
        environment="test",
        db_path=str(tmp_path / "agent.db"),
        event_log_path=str(tmp_path / "events.jsonl"),
        command_selection_mode="keyword",
        wallet_address="0xwallet",
        chat_wait_timeout_ms=5000,
    )
    container = AgentContainer(settings)

    provider = MagicMock()
    provider.generate_chat_response = AsyncMock(return_value="Your role health is fine.")
    chain = MagicMock()
    chain.get_role_data = AsyncMock(return_value={"id": "0xrole", "health": 90, "skills": []})
    chain.get_skill_details = AsyncMock(return_value=None)
    container._completion_provider = provider
    container._chain_client = chain
    container._token_client = MagicMock()
    container.start()
    return container


@pytest.fixture
async def client(container):
    from anemone.api import create_app

    app = create_app(container=container)
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await container.shutdown()


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["services"]["started"] is True


async def test_chat_round_trip(client):
    resp = await client.post("/chat", json={"message": "how is my role health", "userId": "alice"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["response"] == "Your role health is fine."
    assert body["data"]["pending"] is False

    history = (await client.get("/chat/history", params={"userId": "alice"})).json()["data"]
    assert [m["role"] for m in history] == ["user", "assistant"]


async def test_chat_rejects_empty_message(client):
    resp = await client.post("/chat", json={"message": ""})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


async def test_chat_rejects_blank_message(client):
    resp = await client.post("/chat", json={"message": "   "})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Message must not be empty"}


async def test_profile_init_and_read(client):
    resp = await client.post("/profile/init", json={"roleId": "0xrole", "packageId": "0xpkg"})
    assert resp.status_code == 200
    assert resp.json()["data"]["role_id"] == "0xrole"

    profile = (await client.get("/profile")).json()
    assert profile["data"]["package_id"] == "0xpkg"


async def test_profile_init_requires_fields(client):
    resp = await client.post("/profile/init", json={"roleId": "0xrole"})
    assert resp.status_code == 400


async def test_wallet_recorded_at_startup(client):
    assert (await client.get("/wallet")).json()["data"]["address"] == "0xwallet"


async def test_role_requires_profile(client):
    resp = await client.get("/role")
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Profile is not initialised"}


async def test_role_data(client):
    await client.post("/profile/init", json={"roleId": "0xrole", "packageId": "0xpkg"})
    resp = await client.get("/role")
    assert resp.json()["data"] == {"id": "0xrole", "health": "90", "skills": []}


async def test_unexpected_error_is_500(client, container):
    await client.post("/profile/init", json={"roleId": "0xrole", "packageId": "0xpkg"})
    container.chain_client.get_role_data.side_effect = RuntimeError("rpc exploded")

    resp = await client.get("/role")

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "An error occurred. Please try again."
    assert "rpc exploded" not in body["error"]
    assert body["errorId"]


async def test_unexpected_timeout_is_504(client, container):
    await client.post("/profile/init", json={"roleId": "0xrole", "packageId": "0xpkg"})
    container.chain_client.get_role_data.side_effect = TimeoutError("rpc too slow")

    resp = await client.get("/role")

    assert resp.status_code == 504
    assert resp.json()["error"] == "The request took too long. Please try again."


async def test_events_endpoint(client):
    await client.post("/chat", json={"message": "hello", "userId": "alice"})

    body = (await client.get("/events", params={"limit": 500})).json()

    types = [e["event_type"] for e in body["data"]]
    assert types[0] == "MESSAGE_RECEIVED"
    assert "TASK_PLAN_COMPLETED" in types
    assert body["summary"]["MESSAGE_RECEIVED"] == 1
