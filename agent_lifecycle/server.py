"""
Agent Lifecycle Server

FastAPI application hosting one `AgentLifecycle` service.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .agents import AgentLifecycle
from .agents.routes import create_agent_router
from .config import LifecycleConfig, load_config
from .telemetry import init_telemetry, TracingConfig

logger = logging.getLogger("agent_lifecycle.server")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(config: LifecycleConfig = None, lifecycle: AgentLifecycle = None) -> FastAPI:
    """Create FastAPI application."""
    config = config or LifecycleConfig()
    lifecycle = lifecycle or AgentLifecycle.from_config(config.cleanup)

    if config.telemetry.enabled:
        init_telemetry(TracingConfig(
            service_name=config.telemetry.service_name,
            service_version=__version__,
            otlp_endpoint=config.telemetry.otlp_endpoint,
            console_export=config.telemetry.console_export,
        ))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        logger.info("Agent lifecycle service starting...")
        if config.cleanup.auto_start:
            lifecycle.reclaimer.schedule_cleanup(interval=config.cleanup.interval_ms)

        yield

        logger.info("Agent lifecycle service shutting down...")
        await lifecycle.reclaimer.shutdown()

    app = FastAPI(
        title="Agent Lifecycle",
        description="Agent registry, lifecycle hooks and orphan reclamation",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.lifecycle = lifecycle
    app.include_router(create_agent_router(lifecycle))

    @app.get("/")
    async def root():
        """Service info."""
        return {
            "name": "agent-lifecycle",
            "version": __version__,
            **lifecycle.registry.stats(),
            "cleanup": lifecycle.reclaimer.get_cleanup_stats().model_dump(),
            "cleanup_scheduled": lifecycle.reclaimer.is_scheduled,
        }

    @app.get("/health")
    async def health():
        """Health check."""
        return {"status": "healthy"}

    return app


# =============================================================================
# Main
# =============================================================================

def main(config_path: str = None, host: str = None, port: int = None):
    """Run the agent lifecycle server."""
    import uvicorn

    config = load_config(config_path) if config_path else LifecycleConfig()
    logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))

    app = create_app(config)

    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
