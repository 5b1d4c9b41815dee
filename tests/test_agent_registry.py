"""Tests for the agent registry."""

import pytest

from agent_lifecycle.agents import (
    AgentRegistry,
    AgentCreate,
    AgentFilter,
    AgentStatus,
    InvalidTransition,
)


def _register_fleet(registry):
    registry.register_agent({"name": "a", "model": "claude-3", "type": "worker", "status": "running"})
    registry.register_agent({"name": "b", "model": "claude-3", "type": "orchestrator"})
    registry.register_agent({"name": "c", "model": "gpt-4", "type": "worker", "status": "running"})
    registry.register_agent({"name": "d", "model": "gpt-4", "type": "worker", "status": "completed"})


def test_agent_crud(registry, clock):
    """Register, get, update and remove one agent."""
    agent_id = registry.register_agent({
        "name": "test-agent",
        "model": "claude-3-opus",
        "type": "orchestrator",
        "capabilities": ["planning", "coding"],
        "maxConcurrency": 5,
    })

    agent = registry.get_agent(agent_id)
    assert agent is not None
    assert agent.id == agent_id
    assert agent.name == "test-agent"
    assert agent.model == "claude-3-opus"
    assert agent.type == "orchestrator"
    assert agent.status == AgentStatus.PENDING
    assert agent.registered_at == clock()
    assert agent.last_activity == agent.registered_at
    assert agent.metadata == {"capabilities": ["planning", "coding"], "maxConcurrency": 5}
    assert registry.count() == 1

    assert registry.update_agent(agent_id, {"name": "renamed", "tokens": 120}) is True
    agent = registry.get_agent(agent_id)
    assert agent.name == "renamed"
    assert agent.metadata["tokens"] == 120
    assert agent.metadata["capabilities"] == ["planning", "coding"]

    assert registry.remove_agent(agent_id) is True
    assert registry.get_agent(agent_id) is None
    assert registry.list_agents() == []
    assert registry.count() == 0


def test_register_accepts_request_model(registry):
    agent_id = registry.register_agent(AgentCreate(
        name="typed",
        model="claude-3",
        grace_period=60_000,
        metadata={"phase": "build"},
        taskNumber=3,
    ))

    agent = registry.get_agent(agent_id)
    assert agent.grace_period == 60_000
    assert agent.metadata == {"phase": "build", "taskNumber": 3}


def test_register_keeps_supplied_last_activity(registry, clock):
    agent_id = registry.register_agent({"name": "old", "last_activity": clock() - 5000})
    assert registry.get_agent(agent_id).last_activity == clock() - 5000


def test_register_ignores_caller_supplied_id(registry):
    agent_id = registry.register_agent({"name": "x", "id": "mine"})
    agent = registry.get_agent(agent_id)
    assert agent_id != "mine"
    assert "id" not in agent.metadata


def test_ids_are_unique(registry):
    ids = {registry.register_agent({"name": f"agent-{i}"}) for i in range(50)}
    assert len(ids) == 50
    assert {a.id for a in registry.list_agents()} == ids


def test_list_filters(registry):
    _register_fleet(registry)

    assert len(registry.list_agents()) == 4
    assert {a.name for a in registry.list_agents(status="running")} == {"a", "c"}
    assert {a.name for a in registry.list_agents(model="gpt-4")} == {"c", "d"}
    assert {a.name for a in registry.list_agents(type="orchestrator")} == {"b"}
    assert {a.name for a in registry.list_agents(status="running", model="claude-3")} == {"a"}
    assert {a.name for a in registry.list_agents(AgentFilter(model="gpt-4", type="worker"))} == {"c", "d"}


def test_list_with_unmatched_filter_is_empty(registry):
    _register_fleet(registry)

    assert registry.list_agents(status="idle") == []
    assert registry.list_agents(model="unknown-model") == []
    assert registry.list_agents(status="completed", model="claude-3") == []


def test_list_rejects_unknown_constraint(registry):
    registry.register_agent({"name": "a"})

    with pytest.raises(ValueError):
        registry.list_agents(stauts="running")
    with pytest.raises(ValueError):
        AgentFilter(owner="someone")


def test_unknown_ids(registry):
    assert registry.get_agent("missing") is None
    assert registry.update_agent("missing", {"name": "x"}) is False
    assert registry.remove_agent("missing") is False
    assert registry.transition("missing", "running") is None
    assert registry.touch("missing") is False


def test_update_rejects_immutable_fields(registry):
    agent_id = registry.register_agent({"name": "x"})

    with pytest.raises(ValueError, match="immutable"):
        registry.update_agent(agent_id, {"id": "other"})
    with pytest.raises(ValueError, match="immutable"):
        registry.update_agent(agent_id, {"history": []})

    assert registry.get_agent(agent_id).id == agent_id


def test_update_status_goes_through_state_machine(registry):
    agent_id = registry.register_agent({"name": "x"})

    assert registry.update_agent(agent_id, {"status": "running", "name": "y"}) is True
    agent = registry.get_agent(agent_id)
    assert agent.status == AgentStatus.RUNNING
    assert agent.history[-1].state == AgentStatus.RUNNING

    with pytest.raises(InvalidTransition):
        registry.update_agent(agent_id, {"status": "pending", "name": "z"})

    # Nothing applied from the rejected patch
    assert agent.name == "y"
    assert agent.status == AgentStatus.RUNNING


def test_update_validates_before_mutating(registry):
    agent_id = registry.register_agent({"name": "x"})

    with pytest.raises(ValueError):
        registry.update_agent(agent_id, {"name": "y", "last_activity": "not-a-number"})

    assert registry.get_agent(agent_id).name == "x"


def test_transition_and_touch(registry, clock):
    agent_id = registry.register_agent({"name": "x"})

    clock.advance(5000)
    agent = registry.transition(agent_id, "running", {"taskId": "t-1"})
    assert agent.status == AgentStatus.RUNNING
    assert agent.history[-1].timestamp == clock()
    assert agent.history[-1].context == {"taskId": "t-1"}

    clock.advance(1000)
    assert registry.touch(agent_id) is True
    assert agent.last_activity == clock()


def test_clear_and_stats(registry):
    _register_fleet(registry)

    stats = registry.stats()
    assert stats["agents"] == 4
    assert stats["by_status"]["running"] == 2
    assert stats["by_status"]["pending"] == 1
    assert stats["by_status"]["completed"] == 1

    registry.clear()
    assert registry.count() == 0


def test_registries_are_independent():
    first = AgentRegistry()
    second = AgentRegistry()
    first.register_agent({"name": "only-in-first"})

    assert first.count() == 1
    assert second.count() == 0
