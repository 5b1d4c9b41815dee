"""Shared fixtures for agent lifecycle tests."""

import pytest

from agent_lifecycle.agents import AgentHooks, AgentLifecycle, AgentRegistry, OrphanReclaimer

MINUTE = 60 * 1000


class FakeClock:
    """Controllable millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return AgentRegistry(clock=clock)


@pytest.fixture
def hooks():
    return AgentHooks()


@pytest.fixture
def reclaimer(registry, hooks, clock):
    return OrphanReclaimer(registry, hooks, clock=clock)


@pytest.fixture
def lifecycle(clock):
    return AgentLifecycle(clock=clock)
