"""
Agent Lifecycle API Routes

FastAPI router exposing registry, transitions and cleanup to
collaborators such as the CLI and the dashboard.
"""

import logging
from typing import Optional, Dict, List, Any
from fastapi import APIRouter, HTTPException, Query, Body

from .hooks import HookResult
from .models import (
    AgentCreate, AgentFilter,
    TransitionRequest, CancelRequest, CleanupRequest,
)
from .service import AgentLifecycle
from .state import InvalidTransition

logger = logging.getLogger("agent_lifecycle.agents.routes")


def _hook_summary(results: List[HookResult]) -> List[Dict[str, Any]]:
    return [{"ok": r.ok, "error": r.error} for r in results]


def create_agent_router(lifecycle: AgentLifecycle) -> APIRouter:
    """Create FastAPI router for agent lifecycle operations."""

    router = APIRouter(prefix="/v1/agents", tags=["agents"])
    registry = lifecycle.registry
    reclaimer = lifecycle.reclaimer

    def _get_or_404(agent_id: str):
        agent = registry.get_agent(agent_id)
        if agent is None:
            raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")
        return agent

    # =========================================================================
    # Cleanup
    # =========================================================================

    @router.post("/cleanup")
    async def run_cleanup(request: Optional[CleanupRequest] = None):
        """Run one orphan cleanup pass now."""
        timeout = request.timeout if request else None
        result = await reclaimer.cleanup_orphans(timeout=timeout)
        return {
            **result.to_dict(),
            "stats": reclaimer.get_cleanup_stats().model_dump(),
        }

    @router.get("/cleanup/stats")
    async def cleanup_stats():
        """Cleanup counters and schedule state."""
        return {
            **reclaimer.get_cleanup_stats().model_dump(),
            "scheduled": reclaimer.is_scheduled,
        }

    # =========================================================================
    # Agent CRUD
    # =========================================================================

    @router.get("")
    async def list_agents(
        status: Optional[str] = Query(default=None),
        model: Optional[str] = Query(default=None),
        agent_type: Optional[str] = Query(default=None, alias="type"),
    ):
        """List agents, filtered by status, model and type."""
        agents = registry.list_agents(AgentFilter(status=status, model=model, type=agent_type))
        return {
            "agents": [a.to_dict() for a in agents],
            "count": len(agents),
        }

    @router.post("", status_code=201)
    async def register_agent(request: AgentCreate):
        """Register a new agent."""
        agent_id = registry.register_agent(request)
        return {
            "status": "registered",
            "id": agent_id,
            "agent": registry.get_agent(agent_id).to_dict(),
        }

    @router.get("/{agent_id}")
    async def get_agent(agent_id: str):
        """Get an agent by ID."""
        return _get_or_404(agent_id).to_dict()

    @router.patch("/{agent_id}")
    async def update_agent(agent_id: str, patch: Dict[str, Any] = Body(...)):
        """Merge fields into an agent."""
        try:
            updated = registry.update_agent(agent_id, patch)
        except InvalidTransition as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        if not updated:
            raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")
        return registry.get_agent(agent_id).to_dict()

    @router.delete("/{agent_id}")
    async def remove_agent(agent_id: str):
        """Remove an agent from the registry."""
        if not registry.remove_agent(agent_id):
            raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")
        return {"status": "removed", "id": agent_id}

    @router.post("/{agent_id}/touch")
    async def touch_agent(agent_id: str):
        """Record activity for an agent."""
        if not registry.touch(agent_id):
            raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")
        return {"id": agent_id, "last_activity": registry.get_agent(agent_id).last_activity}

    # =========================================================================
    # Transitions
    # =========================================================================

    @router.post("/{agent_id}/transition")
    async def transition_agent(agent_id: str, request: TransitionRequest):
        """Move an agent to a new status and fire its hook."""
        try:
            outcome = await lifecycle.transition(agent_id, request.status, request.context)
        except InvalidTransition as e:
            raise HTTPException(status_code=409, detail=str(e))

        if outcome is None:
            raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")

        agent, results = outcome
        return {"agent": agent.to_dict(), "hooks": _hook_summary(results)}

    @router.post("/{agent_id}/cancel")
    async def cancel_agent(agent_id: str, request: Optional[CancelRequest] = None):
        """Cancel a pending or running agent."""
        _get_or_404(agent_id)
        kwargs = {"reason": request.reason} if request and request.reason else {}
        try:
            agent, results = await lifecycle.cancel_agent(agent_id, **kwargs)
        except InvalidTransition as e:
            raise HTTPException(status_code=409, detail=str(e))

        return {
            "status": "cancelled",
            "agent": agent.to_dict(),
            "hooks": _hook_summary(results),
        }

    return router
