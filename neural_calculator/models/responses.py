"""Response models for the API."""

from typing import Dict, List, Optional
from pydantic import BaseModel

from ..core.operations import ModelState, Operation, Provenance


class SessionState(BaseModel):
    """Snapshot of a calculator session."""

    session_id: str
    operation: Optional[Operation] = None
    state: ModelState
    provenance: Optional[Provenance] = None
    badge: str
    can_compute: bool
    result: Optional[str] = None
    generation: int


class CalculationResponse(BaseModel):
    """Result of a calculation."""

    result: str
    value: float
    operation: Operation
    provenance: Provenance


class HealthResponse(BaseModel):
    """Service health."""

    status: str = "healthy"
    device: str
    gpu_available: bool
    active_sessions: int
    available_memory: str
    memory_type: str


class StatsResponse(BaseModel):
    """Service statistics."""

    sessions: List[str]
    session_count: int
    by_state: Dict[str, int]
    by_provenance: Dict[str, int]
    model_origin: str
    device: str
    max_concurrent_predictions: int
