import json

import httpx
import pytest
from fastapi.testclient import TestClient

from gateway import build_gateway
from main import create_app


@pytest.fixture
def client(config):
    cfg = config.model_copy(update={"owner_bypass_id": "owner"})

    def handler(request: httpx.Request):
        prompt = json.loads(request.content)["prompt"]
        return httpx.Response(200, json={"response": f"echo {prompt.splitlines()[-2]}"})

    gateway = build_gateway(cfg, llm_transport=httpx.MockTransport(handler))
    with TestClient(create_app(gateway=gateway)) as c:
        yield c


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_post_turn_and_window(client):
    r = client.post("/api/conversations/c1/turns", json={"author_name": "alice", "content": "hi"})
    assert r.status_code == 200
    body = r.json()
    assert body["outcome"] == "delivered"
    assert body["text"] == "echo User: hi"

    window = client.get("/api/conversations/c1/window").json()
    assert window["size"] == 2
    assert [t["speaker_role"] for t in window["turns"]] == ["user", "assistant"]


def test_post_turn_requires_content(client):
    r = client.post("/api/conversations/c1/turns", json={"author_name": "alice", "content": "  "})
    assert r.status_code == 400


def test_messages_endpoint_dispatches(client):
    r = client.post(
        "/api/messages",
        json={"author_id": "u1", "author_name": "alice", "channel_id": "d1", "is_direct": True, "content": "yo"},
    )
    assert r.status_code == 200
    assert r.json()["messages"] == ["echo User: yo"]
    assert r.json()["conversation_id"] == "u1"


def test_filter_admin_flow(client):
    add = client.post("/api/filters/add", json={"user_id": "g-owner", "guild_owner_id": "g-owner", "scope_id": "g1", "term": "Bad"})
    assert add.status_code == 200
    assert add.json()["result"] == "added"

    again = client.post("/api/filters/add", json={"user_id": "owner", "scope_id": "g1", "term": "bad"})
    assert again.json()["result"] == "already_present"

    listed = client.post("/api/filters/list", json={"user_id": "owner", "scope_id": "g1"})
    assert listed.json()["terms"] == ["bad"]

    removed = client.post("/api/filters/remove", json={"user_id": "owner", "scope_id": "g1", "term": "nope"})
    assert removed.json()["result"] == "not_found"


def test_filter_permissions_and_validation(client):
    denied = client.post("/api/filters/add", json={"user_id": "rando", "guild_owner_id": "g-owner", "scope_id": "g1", "term": "x"})
    assert denied.status_code == 403

    dm_denied = client.post("/api/filters/list", json={"user_id": "rando"})
    assert dm_denied.status_code == 403

    blank = client.post("/api/filters/add", json={"user_id": "owner", "term": "   "})
    assert blank.status_code == 400


def test_search_without_credentials(client):
    body = client.get("/api/search", params={"q": "cats"}).json()
    assert body["query"] == "cats"
    assert body["result"].startswith('Search result for "cats": [search_error:')


def test_outbox_and_telemetry(client):
    assert client.get("/api/outbox").json() == {"messages": []}
    summary = client.get("/api/telemetry/summary").json()
    assert summary["status"] == "ok"
    assert summary["telemetry_enabled"] is False
