"""
Agent Lifecycle Service

The one object a process constructs and hands to its collaborators:
registry, hook dispatcher and reclaimer sharing a single clock.
"""

import logging
from typing import Optional, Dict, List, Any, Callable, Tuple, Union

from .cleanup import OrphanReclaimer, DEFAULT_TIMEOUT, DEFAULT_INTERVAL
from .hooks import AgentHooks, HookResult, HookType
from .models import AgentRecord
from .registry import AgentRegistry
from .state import AgentStatus, InvalidTransition, now_ms

logger = logging.getLogger("agent_lifecycle.agents.service")

# Hook fired after a successful transition into each status
STATUS_HOOKS: Dict[AgentStatus, HookType] = {
    AgentStatus.RUNNING: HookType.ON_START,
    AgentStatus.COMPLETED: HookType.ON_COMPLETE,
    AgentStatus.FAILED: HookType.ON_ERROR,
    AgentStatus.CANCELLED: HookType.ON_CANCEL,
}

CANCELLABLE_STATES = (AgentStatus.PENDING, AgentStatus.RUNNING)


class AgentLifecycle:
    """
    Agent lifecycle service.

    Usage:
        lifecycle = AgentLifecycle.from_config(config.cleanup)
        agent_id = lifecycle.registry.register_agent({"name": "worker-1"})
        await lifecycle.transition(agent_id, "running")
    """

    def __init__(
        self,
        registry: AgentRegistry = None,
        hooks: AgentHooks = None,
        reclaimer: OrphanReclaimer = None,
        clock: Callable[[], int] = None,
        timeout: int = DEFAULT_TIMEOUT,
        interval: int = DEFAULT_INTERVAL,
    ):
        self.clock = clock or now_ms
        self.registry = registry or AgentRegistry(clock=self.clock)
        self.hooks = hooks or AgentHooks()
        self.reclaimer = reclaimer or OrphanReclaimer(
            self.registry,
            self.hooks,
            timeout=timeout,
            interval=interval,
            clock=self.clock,
        )

    @classmethod
    def from_config(cls, cleanup_config, clock: Callable[[], int] = None) -> "AgentLifecycle":
        """Build from a `CleanupConfig`."""
        return cls(
            clock=clock,
            timeout=cleanup_config.timeout_ms,
            interval=cleanup_config.interval_ms,
        )

    async def transition(
        self,
        agent_id: str,
        status: Union[AgentStatus, str],
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[Tuple[AgentRecord, List[HookResult]]]:
        """
        Transition an agent and fire the matching lifecycle hook.

        Returns None for an unknown id; raises InvalidTransition for an
        illegal edge, in which case no hook fires.
        """
        record = self.registry.transition(agent_id, status, context)
        if record is None:
            return None

        hook_type = STATUS_HOOKS.get(record.status)
        results: List[HookResult] = []
        if hook_type is not None:
            # The record always wins over a caller-supplied "agent" key
            results = await self.hooks.trigger_hook(hook_type, {
                **(context or {}),
                "agent": record,
            })
        return record, results

    async def cancel_agent(
        self,
        agent_id: str,
        reason: str = "User requested cancellation",
    ) -> Optional[Tuple[AgentRecord, List[HookResult]]]:
        """Cancel a pending or running agent."""
        record = self.registry.get_agent(agent_id)
        if record is None:
            return None

        if record.status not in CANCELLABLE_STATES:
            raise InvalidTransition(
                record.status,
                AgentStatus.CANCELLED,
                f"Cannot cancel agent in '{record.status.value}' state. "
                "Only pending or running agents can be cancelled.",
            )

        logger.info(f"Cancelling agent {agent_id}: {reason}")
        return await self.transition(agent_id, AgentStatus.CANCELLED, {"reason": reason})

    def reset(self):
        """Clear all agents, handlers and cleanup state (test/reset use)."""
        self.reclaimer.reset_cleanup()
        self.hooks.clear_hooks()
        self.registry.clear()
