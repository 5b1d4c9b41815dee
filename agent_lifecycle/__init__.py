"""
Agent Lifecycle - registry, state machine, hooks and orphan reclamation
for dispatched agent executions.
"""

__version__ = "0.1.0"

from .config import LifecycleConfig, load_config
from .agents import AgentLifecycle
from .server import create_app

__all__ = [
    "__version__",
    "LifecycleConfig",
    "load_config",
    "AgentLifecycle",
    "create_app",
]
