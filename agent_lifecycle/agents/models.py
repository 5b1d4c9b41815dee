"""
Agent Lifecycle Models

Pydantic models for tracked agent records, registration requests,
listing filters, and cleanup results.
"""

from typing import Optional, Dict, List, Any
from pydantic import BaseModel, ConfigDict, Field

from .state import AgentStatus, StateTransition


class AgentRecord(BaseModel):
    """One tracked agent execution."""
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(..., description="Registry-assigned identifier")
    name: Optional[str] = None
    model: Optional[str] = None
    type: Optional[str] = None

    status: AgentStatus = AgentStatus.PENDING

    # Timestamps (ms since epoch)
    registered_at: int
    last_activity: int

    # Per-agent override of the orphan timeout (ms)
    grace_period: Optional[int] = None

    # Append-only, owned by the state machine
    history: List[StateTransition] = Field(default_factory=list)

    # Caller-supplied fields this core does not interpret
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json")


# Fields a caller may never patch directly
IMMUTABLE_FIELDS = frozenset({"id", "registered_at", "history"})

# Fields stored on the record itself rather than in metadata
RECORD_FIELDS = frozenset(AgentRecord.model_fields) - {"metadata"}


# =============================================================================
# Request Models
# =============================================================================

class AgentCreate(BaseModel):
    """
    Request to register an agent.

    Any extra keys (capabilities, token counters, ...) are collected into
    the record's metadata.
    """
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    model: Optional[str] = None
    type: Optional[str] = None
    status: AgentStatus = AgentStatus.PENDING
    last_activity: Optional[int] = None
    grace_period: Optional[int] = Field(None, ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def collected_metadata(self) -> Dict[str, Any]:
        """Explicit metadata merged with any extra fields."""
        merged = dict(self.metadata)
        merged.update(self.model_extra or {})
        return merged


class AgentFilter(BaseModel):
    """Equality constraints for listing; set fields are AND-ed."""
    model_config = ConfigDict(extra="forbid")

    status: Optional[str] = None
    model: Optional[str] = None
    type: Optional[str] = None

    def matches(self, record: AgentRecord) -> bool:
        if self.status is not None and record.status != self.status:
            return False
        if self.model is not None and record.model != self.model:
            return False
        if self.type is not None and record.type != self.type:
            return False
        return True


class TransitionRequest(BaseModel):
    """Request to move an agent to a new status."""
    status: str
    context: Dict[str, Any] = Field(default_factory=dict)


class CancelRequest(BaseModel):
    """Request to cancel an agent."""
    reason: Optional[str] = None


class CleanupRequest(BaseModel):
    """Request to run a cleanup pass."""
    timeout: Optional[int] = Field(None, ge=0, description="Timeout override (ms)")


# =============================================================================
# Cleanup Results
# =============================================================================

class CleanupError(BaseModel):
    """A per-agent failure captured during a cleanup pass."""
    id: str
    error: str
    type: str  # transition | hook


class CleanupResult(BaseModel):
    """Outcome of one cleanup pass."""
    cleaned: List[AgentRecord] = Field(default_factory=list)
    errors: List[CleanupError] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class CleanupStats(BaseModel):
    """Counters accumulated across cleanup passes."""
    total_cleaned: int = 0
    cleanup_runs: int = 0
    last_cleanup_at: Optional[int] = None
