"""
Lifecycle span helpers.

Creates structured spans for transitions, hook dispatch and cleanup passes.
"""

from enum import Enum
from typing import Optional
from contextlib import contextmanager

from .tracer import get_tracer


class SpanKind(Enum):
    """Types of lifecycle spans."""

    TRANSITION = "transition"
    HOOK_DISPATCH = "hook_dispatch"
    CLEANUP_RUN = "cleanup_run"


class LifecycleSpan:
    """
    Helper for creating lifecycle spans.

    Usage:
        with LifecycleSpan.cleanup_run(timeout=1800000) as span:
            span.set_attribute("cleanup.cleaned", 3)
    """

    @staticmethod
    @contextmanager
    def transition(agent_id: str, from_state: str, to_state: str):
        """Create a span for an agent status change."""
        tracer = get_tracer()

        with tracer.start_as_current_span(
            f"agent.transition.{to_state}",
            attributes={
                "lifecycle.span_kind": SpanKind.TRANSITION.value,
                "agent.id": agent_id,
                "agent.from_state": from_state,
                "agent.to_state": to_state,
            }
        ) as span:
            yield span

    @staticmethod
    @contextmanager
    def hook_dispatch(hook_type: str, handler_count: int):
        """Create a span around one `trigger_hook` call."""
        tracer = get_tracer()

        with tracer.start_as_current_span(
            f"agent.hook.{hook_type}",
            attributes={
                "lifecycle.span_kind": SpanKind.HOOK_DISPATCH.value,
                "hook.type": hook_type,
                "hook.handler_count": handler_count,
            }
        ) as span:
            yield span

    @staticmethod
    @contextmanager
    def cleanup_run(timeout: Optional[int] = None, scheduled: bool = False):
        """Create a span for one orphan cleanup pass."""
        tracer = get_tracer()

        with tracer.start_as_current_span(
            "agent.cleanup.run",
            attributes={
                "lifecycle.span_kind": SpanKind.CLEANUP_RUN.value,
                "cleanup.timeout_ms": timeout if timeout is not None else -1,
                "cleanup.scheduled": scheduled,
            }
        ) as span:
            yield span
