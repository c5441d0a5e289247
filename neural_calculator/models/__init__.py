"""Pydantic models for API requests and responses."""

from .requests import OperationRequest, CalculateRequest
from .responses import (
    SessionState,
    CalculationResponse,
    HealthResponse,
    StatsResponse,
)

__all__ = [
    "OperationRequest",
    "CalculateRequest",
    "SessionState",
    "CalculationResponse",
    "HealthResponse",
    "StatsResponse",
]
