"""Health check endpoint."""

import torch
from fastapi import APIRouter

from ..config import config
from ..core.session import SessionManager
from ..models.responses import HealthResponse
from ..utils import memory


def create_health_router(session_manager: SessionManager) -> APIRouter:
    """
    Create health check router with session manager dependency.

    Args:
        session_manager: Session manager instance

    Returns:
        APIRouter with health endpoints
    """
    router = APIRouter()

    @router.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        available_gb, memory_type = memory.get_available_memory()
        return HealthResponse(
            device=config.DEVICE,
            gpu_available=torch.cuda.is_available(),
            active_sessions=len(session_manager.list_sessions()),
            available_memory=memory.format_memory_size(available_gb),
            memory_type=memory_type,
        )

    return router
