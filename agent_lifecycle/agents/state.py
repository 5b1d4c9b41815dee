"""
Agent State Machine

Lifecycle statuses, the legal transition table, and the single
`transition()` entry point that updates an agent's status and history.

    PENDING ──► RUNNING ──► COMPLETED
       │           ├──────► FAILED
       └───────────┴──────► CANCELLED
"""

import time
from enum import Enum
from typing import Optional, Dict, List, Any, Union

from pydantic import BaseModel, Field


class AgentStatus(str, Enum):
    """Lifecycle status of a tracked agent."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


VALID_TRANSITIONS: Dict[AgentStatus, List[AgentStatus]] = {
    AgentStatus.PENDING: [AgentStatus.RUNNING, AgentStatus.CANCELLED],
    AgentStatus.RUNNING: [AgentStatus.COMPLETED, AgentStatus.FAILED, AgentStatus.CANCELLED],
    AgentStatus.COMPLETED: [],
    AgentStatus.FAILED: [],
    AgentStatus.CANCELLED: [],
}

TERMINAL_STATES = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class InvalidTransition(Exception):
    """Raised when a requested status change is not a legal edge."""

    def __init__(self, current: Any, requested: Any, message: str = None):
        self.current = current
        self.requested = requested
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        super().__init__(
            message or f"Invalid transition: {current_value} -> {requested_value}"
        )


class StateTransition(BaseModel):
    """One entry in an agent's append-only status history."""
    state: AgentStatus
    timestamp: int
    previous: Optional[AgentStatus] = None
    context: Dict[str, Any] = Field(default_factory=dict)


def parse_status(value: Union[AgentStatus, str]) -> AgentStatus:
    """Coerce a status name into `AgentStatus`, or raise ValueError."""
    if isinstance(value, AgentStatus):
        return value
    return AgentStatus(value)


def can_transition(current: Union[AgentStatus, str], target: Union[AgentStatus, str]) -> bool:
    """Check whether `current -> target` is a legal edge."""
    try:
        current = parse_status(current)
        target = parse_status(target)
    except ValueError:
        return False
    return target in VALID_TRANSITIONS[current]


def is_terminal(status: Union[AgentStatus, str]) -> bool:
    return parse_status(status) in TERMINAL_STATES


def transition(
    record,
    to: Union[AgentStatus, str],
    context: Optional[Dict[str, Any]] = None,
    now: Optional[int] = None,
) -> StateTransition:
    """
    Move `record` to status `to`.

    The new history entry is built before anything is assigned, so a failed
    validation leaves the record untouched. The context is stored with the
    history entry but not interpreted here.
    """
    current = record.status
    try:
        target = parse_status(to)
    except ValueError:
        raise InvalidTransition(current, to, f"Unknown state: {to}")

    if target not in VALID_TRANSITIONS[current]:
        raise InvalidTransition(current, target)

    entry = StateTransition(
        state=target,
        timestamp=now if now is not None else now_ms(),
        previous=current,
        context=dict(context or {}),
    )
    record.history.append(entry)
    record.status = target
    return entry


def elapsed_time(
    record,
    state: Optional[Union[AgentStatus, str]] = None,
    now: Optional[int] = None,
) -> int:
    """
    Milliseconds spent in `state`, summed over every visit.

    Without a state, returns the time since the record's first history
    entry. A state never entered yields 0.
    """
    now = now if now is not None else now_ms()
    history = record.history
    if not history:
        return 0

    if state is None:
        return now - history[0].timestamp

    state = parse_status(state)
    total = 0
    for i, entry in enumerate(history):
        if entry.state != state:
            continue
        end = history[i + 1].timestamp if i + 1 < len(history) else now
        total += end - entry.timestamp
    return total
