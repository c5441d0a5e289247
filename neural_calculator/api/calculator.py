"""Calculator page and session endpoints."""

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import HTMLResponse

from ..config import config
from ..core.errors import (
    InferenceError,
    ModelNotReadyError,
    StaleResultError,
    ValidationError,
)
from ..core.session import CalculatorSession, SessionManager
from ..models.requests import CalculateRequest, OperationRequest
from ..models.responses import CalculationResponse, SessionState

PAGE_PATH = Path(__file__).resolve().parent.parent / "static" / "index.html"


def _set_session_cookie(response: Response, session: CalculatorSession) -> None:
    response.set_cookie(
        config.SESSION_COOKIE,
        session.session_id,
        httponly=True,
        samesite="lax",
    )


def create_calculator_router(session_manager: SessionManager) -> APIRouter:
    """
    Create the calculator router with session manager dependency.

    Args:
        session_manager: Session manager instance

    Returns:
        APIRouter with the page and session endpoints
    """
    router = APIRouter()
    page = PAGE_PATH.read_text(encoding="utf-8")

    def get_session(request: Request, response: Response) -> CalculatorSession:
        """Resolve the caller's session from its cookie, creating one if needed."""
        session = session_manager.get_or_create(request.cookies.get(config.SESSION_COOKIE))
        _set_session_cookie(response, session)
        return session

    @router.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def index(request: Request):
        """Calculator page."""
        session = session_manager.get_or_create(request.cookies.get(config.SESSION_COOKIE))
        response = HTMLResponse(page)
        _set_session_cookie(response, session)
        return response

    @router.get("/api/session", response_model=SessionState)
    async def get_state(session: CalculatorSession = Depends(get_session)):
        """Current operation, model state and last result."""
        return SessionState(**session.snapshot())

    @router.post("/api/session/operation", response_model=SessionState)
    async def select_operation(
        request: OperationRequest,
        session: CalculatorSession = Depends(get_session),
    ):
        """
        Switch operation and resolve its model.

        Falls back to the in-memory model when no artifact can be loaded, so
        this always ends with a usable model unless a newer selection
        superseded it.
        """
        await session.select_operation(request.operation)
        return SessionState(**session.snapshot())

    @router.post("/api/session/calculate", response_model=CalculationResponse)
    async def calculate(
        request: CalculateRequest,
        session: CalculatorSession = Depends(get_session),
    ):
        """Run the current model on the two operands."""
        try:
            prediction = await session.calculate(request.a, request.b)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except (ModelNotReadyError, StaleResultError) as e:
            raise HTTPException(status_code=409, detail=str(e))
        except InferenceError as e:
            raise HTTPException(
                status_code=500,
                detail=f"Calculation failed: {e}",
            )

        resolved = session.resolved
        return CalculationResponse(
            result=prediction.display,
            value=prediction.value,
            operation=resolved.operation,
            provenance=resolved.provenance,
        )

    return router
