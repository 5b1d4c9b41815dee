"""Tests for the agent HTTP API."""

import pytest
from fastapi.testclient import TestClient

from agent_lifecycle.agents import AgentLifecycle
from agent_lifecycle.config import LifecycleConfig, CleanupConfig
from agent_lifecycle.server import create_app


@pytest.fixture
def client(lifecycle):
    config = LifecycleConfig(cleanup=CleanupConfig(auto_start=False))
    with TestClient(create_app(config, lifecycle=lifecycle)) as client:
        yield client


def _register(client, **fields):
    response = client.post("/v1/agents", json={"name": "worker", "model": "claude-3", **fields})
    assert response.status_code == 201
    return response.json()["id"]


def test_root_and_health(client):
    assert client.get("/health").json() == {"status": "healthy"}

    data = client.get("/").json()
    assert data["name"] == "agent-lifecycle"
    assert data["agents"] == 0
    assert data["cleanup_scheduled"] is False


def test_register_and_get(client, clock):
    response = client.post("/v1/agents", json={
        "name": "builder",
        "model": "claude-3-opus",
        "type": "worker",
        "capabilities": ["coding"],
    })

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "registered"
    agent = body["agent"]
    assert agent["id"] == body["id"]
    assert agent["status"] == "pending"
    assert agent["registered_at"] == clock()
    assert agent["metadata"] == {"capabilities": ["coding"]}
    assert agent["history"][0]["state"] == "pending"

    fetched = client.get(f"/v1/agents/{body['id']}").json()
    assert fetched == agent


def test_get_unknown_agent(client):
    response = client.get("/v1/agents/missing")

    assert response.status_code == 404
    assert "missing" in response.json()["detail"]


def test_list_with_filters(client):
    _register(client, type="worker", status="running")
    _register(client, type="orchestrator")
    _register(client, model="gpt-4", type="worker", status="running")

    assert client.get("/v1/agents").json()["count"] == 3
    assert client.get("/v1/agents", params={"status": "running"}).json()["count"] == 2
    assert client.get("/v1/agents", params={"type": "worker", "model": "gpt-4"}).json()["count"] == 1
    assert client.get("/v1/agents", params={"status": "idle"}).json() == {"agents": [], "count": 0}


def test_patch(client):
    agent_id = _register(client)

    response = client.patch(f"/v1/agents/{agent_id}", json={"name": "renamed", "tokens": 42})
    assert response.status_code == 200
    assert response.json()["name"] == "renamed"
    assert response.json()["metadata"]["tokens"] == 42


def test_patch_error_mapping(client):
    agent_id = _register(client)

    assert client.patch(f"/v1/agents/{agent_id}", json={"id": "other"}).status_code == 400
    assert client.patch(f"/v1/agents/{agent_id}", json={"status": "completed"}).status_code == 409
    assert client.patch("/v1/agents/missing", json={"name": "x"}).status_code == 404


def test_delete(client):
    agent_id = _register(client)

    assert client.delete(f"/v1/agents/{agent_id}").json() == {"status": "removed", "id": agent_id}
    assert client.delete(f"/v1/agents/{agent_id}").status_code == 404


def test_touch(client, clock):
    agent_id = _register(client)
    clock.advance(5000)

    response = client.post(f"/v1/agents/{agent_id}/touch")

    assert response.json()["last_activity"] == clock()
    assert client.post("/v1/agents/missing/touch").status_code == 404


def test_transition_fires_hook(client, lifecycle):
    seen = []
    lifecycle.hooks.register_hook("onStart", lambda ctx: seen.append(ctx["taskId"]))
    agent_id = _register(client)

    response = client.post(f"/v1/agents/{agent_id}/transition", json={
        "status": "running",
        "context": {"taskId": "t-9"},
    })

    assert response.status_code == 200
    assert response.json()["agent"]["status"] == "running"
    assert response.json()["hooks"] == [{"ok": True, "error": None}]
    assert seen == ["t-9"]


def test_transition_errors(client):
    agent_id = _register(client)

    response = client.post(f"/v1/agents/{agent_id}/transition", json={"status": "completed"})
    assert response.status_code == 409
    assert "Invalid transition" in response.json()["detail"]

    response = client.post(f"/v1/agents/{agent_id}/transition", json={"status": "nonsense"})
    assert response.status_code == 409

    response = client.post("/v1/agents/missing/transition", json={"status": "running"})
    assert response.status_code == 404


def test_cancel(client, lifecycle):
    def broken(ctx):
        raise RuntimeError("notify failed")

    lifecycle.hooks.register_hook("onCancel", broken)
    agent_id = _register(client, status="running")

    response = client.post(f"/v1/agents/{agent_id}/cancel", json={"reason": "Operator stop"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["agent"]["status"] == "cancelled"
    assert body["agent"]["history"][-1]["context"] == {"reason": "Operator stop"}
    assert body["hooks"] == [{"ok": False, "error": "notify failed"}]


def test_cancel_errors(client):
    agent_id = _register(client)
    client.post(f"/v1/agents/{agent_id}/cancel")

    response = client.post(f"/v1/agents/{agent_id}/cancel")
    assert response.status_code == 409
    assert "Cannot cancel agent" in response.json()["detail"]

    assert client.post("/v1/agents/missing/cancel").status_code == 404


def test_cleanup_endpoints(client, clock):
    stuck = _register(client, status="running", last_activity=clock() - 31 * 60 * 1000)
    _register(client, status="running", last_activity=clock() - 10 * 60 * 1000)

    response = client.post("/v1/agents/cleanup")

    assert response.status_code == 200
    body = response.json()
    assert [a["id"] for a in body["cleaned"]] == [stuck]
    assert body["errors"] == []
    assert body["stats"]["total_cleaned"] == 1

    response = client.post("/v1/agents/cleanup", json={"timeout": 5 * 60 * 1000})
    assert len(response.json()["cleaned"]) == 1

    stats = client.get("/v1/agents/cleanup/stats").json()
    assert stats["total_cleaned"] == 2
    assert stats["cleanup_runs"] == 2
    assert stats["last_cleanup_at"] == clock()
    assert stats["scheduled"] is False


def test_cleanup_rejects_negative_timeout(client):
    assert client.post("/v1/agents/cleanup", json={"timeout": -1}).status_code == 422


def test_lifespan_schedules_cleanup(clock):
    lifecycle = AgentLifecycle(clock=clock)
    app = create_app(LifecycleConfig(), lifecycle=lifecycle)

    with TestClient(app) as client:
        assert client.get("/").json()["cleanup_scheduled"] is True

    assert not lifecycle.reclaimer.is_scheduled
