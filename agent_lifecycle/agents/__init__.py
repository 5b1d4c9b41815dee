"""
Agent Lifecycle

Tracks dispatched agent executions: registry, state machine, lifecycle
hooks and automatic reclamation of orphaned agents.
"""

from .state import (
    AgentStatus, StateTransition, InvalidTransition,
    VALID_TRANSITIONS, can_transition, is_terminal, transition, elapsed_time,
)
from .models import (
    AgentRecord, AgentCreate, AgentFilter,
    CleanupError, CleanupResult, CleanupStats,
)
from .registry import AgentRegistry
from .hooks import AgentHooks, HookType, HookHandle, HookResult, InvalidHookType, HOOK_TYPES
from .cleanup import OrphanReclaimer, DEFAULT_TIMEOUT, DEFAULT_INTERVAL, ORPHAN_REASON
from .service import AgentLifecycle

__all__ = [
    "AgentStatus",
    "StateTransition",
    "InvalidTransition",
    "VALID_TRANSITIONS",
    "can_transition",
    "is_terminal",
    "transition",
    "elapsed_time",
    "AgentRecord",
    "AgentCreate",
    "AgentFilter",
    "CleanupError",
    "CleanupResult",
    "CleanupStats",
    "AgentRegistry",
    "AgentHooks",
    "HookType",
    "HookHandle",
    "HookResult",
    "InvalidHookType",
    "HOOK_TYPES",
    "OrphanReclaimer",
    "DEFAULT_TIMEOUT",
    "DEFAULT_INTERVAL",
    "ORPHAN_REASON",
    "AgentLifecycle",
]
