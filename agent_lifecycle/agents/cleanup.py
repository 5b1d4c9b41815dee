"""
Orphaned Agent Cleanup

Finds running agents that have gone quiet for longer than their timeout,
cancels them through the state machine, and notifies `onCancel`
handlers. Passes can be run on demand or on a repeating asyncio schedule.
"""

import asyncio
import logging
from contextvars import ContextVar
from typing import Optional, List, Set, Callable

from .hooks import AgentHooks, HookType
from .models import AgentRecord, CleanupError, CleanupResult, CleanupStats
from .registry import AgentRegistry
from .state import AgentStatus, now_ms
from ..telemetry import LifecycleSpan

logger = logging.getLogger("agent_lifecycle.agents.cleanup")

DEFAULT_TIMEOUT = 30 * 60 * 1000   # 30 minutes
DEFAULT_INTERVAL = 5 * 60 * 1000   # 5 minutes
ORPHAN_REASON = "orphaned"

# Reclaimer whose pass owns the current task (and tasks spawned from it)
_active_pass: ContextVar[Optional["OrphanReclaimer"]] = ContextVar("agent_cleanup_pass", default=None)


class OrphanReclaimer:
    """
    Cleanup scheduler for orphaned agents.

    An agent is orphaned when it is RUNNING and
    `now - last_activity` is strictly greater than its effective timeout:
    the agent's own grace period, else the per-call timeout, else the
    configured default.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        hooks: AgentHooks,
        timeout: int = DEFAULT_TIMEOUT,
        interval: int = DEFAULT_INTERVAL,
        clock: Callable[[], int] = None,
    ):
        self.registry = registry
        self.hooks = hooks
        self.timeout = timeout
        self.interval = interval
        self._clock = clock or now_ms

        self._stats = CleanupStats()
        # One pass at a time; overlapping callers queue behind it
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None
        # Stopped schedules that may still be finishing a pass
        self._draining: Set[asyncio.Task] = set()

    # =========================================================================
    # Detection
    # =========================================================================

    def effective_timeout(self, agent: AgentRecord, timeout: Optional[int] = None) -> int:
        if agent.grace_period is not None:
            return agent.grace_period
        if timeout is not None:
            return timeout
        return self.timeout

    def find_orphaned_agents(self, timeout: Optional[int] = None) -> List[AgentRecord]:
        """Running agents whose inactivity exceeds their effective timeout."""
        now = self._clock()
        return [
            agent
            for agent in self.registry.list_agents(status=AgentStatus.RUNNING.value)
            if now - agent.last_activity > self.effective_timeout(agent, timeout)
        ]

    # =========================================================================
    # Cleanup
    # =========================================================================

    async def cleanup_orphans(self, timeout: Optional[int] = None, scheduled: bool = False) -> CleanupResult:
        """
        Cancel every orphan and notify `onCancel` handlers.

        Failures are collected per agent in `errors` and never abort the
        pass. A failing handler does not undo the cancellation, so the
        agent is still reported as cleaned.

        A call made from inside a running pass (an `onCancel` handler, or
        a task it spawned) returns an empty result instead of waiting on
        the pass it is part of.
        """
        if _active_pass.get() is self:
            logger.debug("Cleanup requested from inside a running pass; skipping")
            return CleanupResult()

        async with self._lock:
            token = _active_pass.set(self)
            try:
                with LifecycleSpan.cleanup_run(timeout, scheduled) as span:
                    result = await self._run_pass(timeout)

                    self._stats.cleanup_runs += 1
                    self._stats.total_cleaned += len(result.cleaned)
                    self._stats.last_cleanup_at = self._clock()

                    span.set_attribute("cleanup.cleaned", len(result.cleaned))
                    span.set_attribute("cleanup.errors", len(result.errors))
            finally:
                _active_pass.reset(token)

        logger.info(
            f"Agent cleanup run #{self._stats.cleanup_runs}: "
            f"cleaned {len(result.cleaned)} orphan(s), {len(result.errors)} error(s)"
        )
        return result

    async def _run_pass(self, timeout: Optional[int]) -> CleanupResult:
        result = CleanupResult()

        for agent in self.find_orphaned_agents(timeout):
            # A handler earlier in this pass may have finished or removed it
            if self.registry.get_agent(agent.id) is not agent or agent.status != AgentStatus.RUNNING:
                logger.debug(f"Skipping {agent.id}: no longer a running agent")
                continue

            effective = self.effective_timeout(agent, timeout)
            try:
                self.registry.transition(agent.id, AgentStatus.CANCELLED, {"reason": ORPHAN_REASON})
            except Exception as e:
                logger.warning(f"Failed to cancel orphaned agent {agent.id}: {e}")
                result.errors.append(CleanupError(id=agent.id, error=str(e), type="transition"))
                continue

            result.cleaned.append(agent)
            logger.info(f"Cancelled orphaned agent {agent.id} (inactive > {effective}ms)")

            hook_results = await self.hooks.trigger_hook(HookType.ON_CANCEL, {
                "agent": agent,
                "reason": ORPHAN_REASON,
                "timeout": effective,
            })
            for hook_result in hook_results:
                if not hook_result.ok:
                    result.errors.append(CleanupError(id=agent.id, error=hook_result.error, type="hook"))

        return result

    # =========================================================================
    # Scheduling
    # =========================================================================

    def schedule_cleanup(self, interval: Optional[int] = None, timeout: Optional[int] = None):
        """
        Run `cleanup_orphans` every `interval` ms on the running event loop.

        Any previous schedule is stopped first.
        """
        self.stop_cleanup()

        interval = interval if interval is not None else self.interval
        if interval <= 0:
            raise ValueError(f"Cleanup interval must be positive, got {interval}")

        loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        self._task = loop.create_task(
            self._run_schedule(interval, timeout, self._stop),
            name="agent-cleanup",
        )
        logger.info(f"Agent cleanup scheduled every {interval}ms")

    async def _run_schedule(self, interval: int, timeout: Optional[int], stop: asyncio.Event):
        # Stop is only observed between passes; a pass in flight always completes
        while True:
            try:
                await asyncio.wait_for(stop.wait(), interval / 1000)
                return
            except asyncio.TimeoutError:
                pass
            try:
                await self.cleanup_orphans(timeout, scheduled=True)
            except Exception:
                logger.exception("Scheduled agent cleanup failed")

    def stop_cleanup(self):
        """
        Stop the schedule. Safe to call when nothing is scheduled.

        A pass that is already running finishes, including its `onCancel`
        handlers; `shutdown()` waits for it.
        """
        if self._task is None:
            return

        self._stop.set()
        if not self._task.done():
            self._draining.add(self._task)
            self._task.add_done_callback(self._draining.discard)
        self._task = None
        self._stop = None
        logger.info("Agent cleanup schedule stopped")

    async def shutdown(self):
        """Stop the schedule and wait for any pass in flight to finish."""
        self.stop_cleanup()
        if self._draining:
            await asyncio.gather(*self._draining)

    @property
    def is_scheduled(self) -> bool:
        return self._task is not None and not self._task.done()

    # =========================================================================
    # Stats
    # =========================================================================

    def get_cleanup_stats(self) -> CleanupStats:
        """Snapshot of the cleanup counters."""
        return self._stats.model_copy()

    def reset_cleanup(self):
        """Stop the schedule and zero the counters (test/reset use)."""
        self.stop_cleanup()
        self._stats = CleanupStats()
