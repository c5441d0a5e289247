"""FastAPI application factory and setup."""

from contextlib import asynccontextmanager
from typing import Optional

import torch
from fastapi import FastAPI

from ..config import config
from ..core.artifact_store import ArtifactStore
from ..core.inference_runner import InferenceRunner
from ..core.model_resolver import ModelResolver
from ..core.session import SessionManager
from ..utils.logging import setup_logging, get_logger
from .admin import create_admin_router
from .calculator import create_calculator_router
from .health import create_health_router

# Setup logging
setup_logging()
logger = get_logger(__name__)


def create_app(
    model_origin: Optional[str] = None,
    session_manager: Optional[SessionManager] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        model_origin: Artifact origin overriding MODEL_ORIGIN
        session_manager: Prebuilt session manager (takes precedence over model_origin)

    Returns:
        Configured FastAPI application
    """
    # Initialize core components
    if session_manager is None:
        resolver = ModelResolver(ArtifactStore(origin=model_origin))
        session_manager = SessionManager(resolver=resolver, runner=InferenceRunner())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        logger.info("Starting neural calculator...")
        logger.info(f"Local dev mode: {config.IS_LOCAL}")
        logger.info(f"Device: {config.DEVICE}")
        logger.info(f"Dtype: {config.TORCH_DTYPE}")
        logger.info(f"CUDA available: {torch.cuda.is_available()}")
        logger.info(f"Model origin: {session_manager.resolver.artifact_store.origin}")
        logger.info(f"Max concurrent predictions: {config.get_max_concurrent()}")
        yield
        logger.info("Shutting down neural calculator...")
        for session_id in session_manager.list_sessions():
            session_manager.remove(session_id)

    app = FastAPI(
        title="Neural Calculator",
        description="Adds and subtracts with a single dense layer",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.session_manager = session_manager

    # Register routers
    app.include_router(create_calculator_router(session_manager), tags=["Calculator"])
    app.include_router(create_health_router(session_manager), tags=["Health"])
    app.include_router(create_admin_router(session_manager), tags=["Admin"])

    return app
