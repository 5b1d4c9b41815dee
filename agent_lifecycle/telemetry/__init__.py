"""
Agent Lifecycle Telemetry Module

OpenTelemetry integration for tracing transitions, hook dispatch and
cleanup passes.
"""

from .tracer import init_telemetry, get_tracer, TracingConfig
from .spans import LifecycleSpan, SpanKind

__all__ = [
    "init_telemetry",
    "get_tracer",
    "TracingConfig",
    "LifecycleSpan",
    "SpanKind",
]
