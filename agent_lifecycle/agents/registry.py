"""
Agent Registry

Authoritative in-memory store of tracked agents: register, list, get,
update, remove. Status changes go through the state machine.
"""

import logging
import uuid
from typing import Optional, List, Dict, Any, Callable, Union

from .models import (
    AgentRecord, AgentCreate, AgentFilter,
    IMMUTABLE_FIELDS, RECORD_FIELDS,
)
from .state import AgentStatus, StateTransition, InvalidTransition, can_transition, now_ms
from . import state as state_machine
from ..telemetry import LifecycleSpan

logger = logging.getLogger("agent_lifecycle.agents.registry")


class AgentRegistry:
    """
    Agent Registry

    Holds one record per registered agent, keyed by a generated id.
    Construct one per process and pass it to collaborators.
    """

    def __init__(self, clock: Callable[[], int] = None):
        self._agents: Dict[str, AgentRecord] = {}
        self._clock = clock or now_ms

    def _new_id(self) -> str:
        while True:
            agent_id = f"agent-{uuid.uuid4().hex[:12]}"
            if agent_id not in self._agents:
                return agent_id

    # =========================================================================
    # Agent CRUD
    # =========================================================================

    def register_agent(self, data: Union[AgentCreate, Dict[str, Any]]) -> str:
        """Register an agent and return its new id."""
        request = data if isinstance(data, AgentCreate) else AgentCreate.model_validate(data)

        metadata = request.collected_metadata()
        for key in IMMUTABLE_FIELDS & metadata.keys():
            logger.debug(f"Ignoring caller-supplied '{key}' on registration")
            metadata.pop(key)

        now = self._clock()
        agent_id = self._new_id()
        record = AgentRecord(
            id=agent_id,
            name=request.name,
            model=request.model,
            type=request.type,
            status=request.status,
            registered_at=now,
            last_activity=request.last_activity if request.last_activity is not None else now,
            grace_period=request.grace_period,
            history=[StateTransition(state=request.status, timestamp=now)],
            metadata=metadata,
        )
        self._agents[agent_id] = record

        logger.info(f"Registered agent: {agent_id} ({record.name or '-'}, status: {record.status.value})")
        return agent_id

    def list_agents(self, filter: Optional[AgentFilter] = None, **constraints) -> List[AgentRecord]:
        """
        List agents, optionally filtered.

        Accepts an `AgentFilter` or keyword constraints (status, model,
        type). Constraints are AND-ed; unmatched values give an empty list
        and an unknown constraint name raises ValueError.
        """
        if filter is None and constraints:
            filter = AgentFilter(**constraints)
        if filter is None:
            return list(self._agents.values())
        return [a for a in self._agents.values() if filter.matches(a)]

    def get_agent(self, agent_id: str) -> Optional[AgentRecord]:
        """Get an agent by ID."""
        return self._agents.get(agent_id)

    def update_agent(self, agent_id: str, patch: Dict[str, Any]) -> bool:
        """
        Merge `patch` into a stored agent.

        Record fields are assigned, unknown keys land in metadata, and a
        `status` key is applied through the state machine. Everything is
        validated before the record is touched.
        """
        record = self._agents.get(agent_id)
        if record is None:
            return False

        forbidden = IMMUTABLE_FIELDS & patch.keys()
        if forbidden:
            raise ValueError(f"Cannot update immutable field(s): {', '.join(sorted(forbidden))}")

        fields = dict(patch)
        target = fields.pop("status", None)
        metadata = dict(record.metadata)
        metadata.update(fields.pop("metadata", None) or {})
        for key in list(fields):
            if key not in RECORD_FIELDS:
                metadata[key] = fields.pop(key)

        if target is not None and not can_transition(record.status, target):
            raise InvalidTransition(record.status, target)

        # Validate the merged record before mutating the stored one
        candidate = AgentRecord.model_validate({
            **record.model_dump(),
            **fields,
            "metadata": metadata,
        })
        for key in fields:
            setattr(record, key, getattr(candidate, key))
        record.metadata = candidate.metadata

        if target is not None:
            state_machine.transition(record, target, now=self._clock())
        return True

    def transition(
        self,
        agent_id: str,
        status: Union[AgentStatus, str],
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[AgentRecord]:
        """Move a stored agent to `status`. Returns None for unknown ids."""
        record = self._agents.get(agent_id)
        if record is None:
            return None
        previous = record.status
        with LifecycleSpan.transition(agent_id, previous.value, str(getattr(status, "value", status))):
            state_machine.transition(record, status, context=context, now=self._clock())
        logger.debug(f"Agent {agent_id}: {previous.value} -> {record.status.value}")
        return record

    def touch(self, agent_id: str) -> bool:
        """Record activity for an agent."""
        record = self._agents.get(agent_id)
        if record is None:
            return False
        record.last_activity = self._clock()
        return True

    def remove_agent(self, agent_id: str) -> bool:
        """Delete an agent."""
        removed = self._agents.pop(agent_id, None) is not None
        if removed:
            logger.info(f"Removed agent: {agent_id}")
        return removed

    def count(self) -> int:
        return len(self._agents)

    def clear(self):
        """Drop every record (test/reset use)."""
        self._agents.clear()

    # =========================================================================
    # Stats
    # =========================================================================

    def stats(self) -> Dict[str, Any]:
        """Agent counts by status."""
        by_status = {status.value: 0 for status in AgentStatus}
        for record in self._agents.values():
            by_status[record.status.value] += 1
        return {"agents": len(self._agents), "by_status": by_status}
