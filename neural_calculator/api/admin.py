"""Admin endpoints for service management."""

from fastapi import APIRouter, HTTPException, status

from ..config import config
from ..core.session import SessionManager
from ..models.responses import StatsResponse


def create_admin_router(session_manager: SessionManager) -> APIRouter:
    """
    Create admin router with session manager dependency.

    Args:
        session_manager: Session manager instance

    Returns:
        APIRouter with admin endpoints
    """
    router = APIRouter()

    @router.get("/admin/stats", response_model=StatsResponse)
    async def get_stats():
        """Session counts and serving configuration."""
        sessions = session_manager.list_sessions()
        counts = session_manager.stats()
        return StatsResponse(
            sessions=sessions,
            session_count=len(sessions),
            by_state=counts["by_state"],
            by_provenance=counts["by_provenance"],
            model_origin=session_manager.resolver.artifact_store.origin,
            device=config.DEVICE,
            max_concurrent_predictions=config.get_max_concurrent(),
        )

    @router.delete("/admin/sessions/{session_id}")
    async def remove_session(session_id: str):
        """Drop a session and release its model."""
        if not session_manager.remove(session_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Session {session_id} not found",
            )
        return {"message": f"Session {session_id} removed"}

    return router
