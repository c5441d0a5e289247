"""Per-session model slot, lifecycle and result tracking."""

import time
import uuid
from collections import OrderedDict
from typing import Dict, List, Optional

from ..config import config
from ..utils import memory
from ..utils.logging import get_logger
from .errors import ModelNotReadyError, StaleResultError
from .inference_runner import InferenceRunner, Number, Prediction, validate_operands
from .model_resolver import ModelResolver, ResolvedModel
from .operations import ModelState, Operation

logger = get_logger(__name__)


class CalculatorSession:
    """
    One user's calculator.

    Holds at most one model, replaced wholesale whenever the operation
    changes. Every change bumps a generation counter; loads and predictions
    that finish under an older generation are discarded.
    """

    def __init__(
        self,
        session_id: str,
        resolver: ModelResolver,
        runner: InferenceRunner,
    ):
        self.session_id = session_id
        self.resolver = resolver
        self.runner = runner

        self.operation: Optional[Operation] = None
        self.state = ModelState.IDLE
        self.generation = 0
        self.last_result: Optional[str] = None
        self.last_access = time.time()

        self._resolved: Optional[ResolvedModel] = None

    @property
    def resolved(self) -> Optional[ResolvedModel]:
        return self._resolved

    @property
    def can_compute(self) -> bool:
        return self.state == ModelState.READY and self._resolved is not None

    def _discard_model(self) -> None:
        if self._resolved is not None:
            logger.debug(f"Session {self.session_id}: releasing {self._resolved.operation.value} model")
            model = self._resolved.model
            self._resolved = None
            memory.release_model(model, device=config.DEVICE)

    async def select_operation(self, operation: Operation) -> Optional[ResolvedModel]:
        """
        Switch to an operation and resolve its model.

        Args:
            operation: Newly selected operation

        Returns:
            The installed model, or None if a newer selection superseded this one
        """
        self.generation += 1
        generation = self.generation

        self.operation = operation
        self.state = ModelState.LOADING
        self.last_result = None
        self._discard_model()

        logger.info(f"Session {self.session_id}: loading {operation.value} model (generation {generation})")
        resolved = await self.resolver.resolve(operation)

        if generation != self.generation:
            logger.info(
                f"Session {self.session_id}: dropping {operation.value} model from "
                f"superseded generation {generation}"
            )
            memory.release_model(resolved.model, device=config.DEVICE)
            return None

        self._resolved = resolved
        self.state = ModelState.READY
        return resolved

    async def calculate(self, a: Number, b: Number) -> Prediction:
        """
        Run the current model on (a, b) and record the displayed result.

        Raises:
            ModelNotReadyError: If no model is installed
            ValidationError: If an operand is not a finite number
            InferenceError: If the forward pass fails
            StaleResultError: If the operation changed while predicting
        """
        self.last_access = time.time()

        if not self.can_compute:
            raise ModelNotReadyError(f"Model is not ready (state: {self.state.value})")

        validate_operands(a, b)

        generation = self.generation
        try:
            prediction = await self.runner.predict(self._resolved.model, a, b)
        except Exception:
            if generation == self.generation:
                self.last_result = "Error"
            raise

        if generation != self.generation:
            raise StaleResultError(
                f"Operation changed to {self.operation.value} while predicting; result discarded"
            )

        self.last_result = prediction.display
        return prediction

    def close(self) -> None:
        """Release the session's model."""
        self.generation += 1
        self._discard_model()
        self.state = ModelState.IDLE

    def snapshot(self) -> dict:
        """Current state for display."""
        provenance = self._resolved.provenance if self._resolved else None
        if self.state == ModelState.LOADING:
            badge = "Loading"
        elif provenance is not None:
            badge = provenance.value
        else:
            badge = "Idle"

        return {
            "session_id": self.session_id,
            "operation": self.operation,
            "state": self.state,
            "provenance": provenance,
            "badge": badge,
            "can_compute": self.can_compute,
            "result": self.last_result,
            "generation": self.generation,
        }


class SessionManager:
    """
    Keeps one CalculatorSession per client.

    Evicts the least recently used session when MAX_SESSIONS is exceeded.
    """

    def __init__(
        self,
        resolver: Optional[ModelResolver] = None,
        runner: Optional[InferenceRunner] = None,
        max_sessions: Optional[int] = None,
    ):
        self.resolver = resolver or ModelResolver()
        self.runner = runner or InferenceRunner()
        self.max_sessions = max_sessions or config.MAX_SESSIONS
        self.sessions: "OrderedDict[str, CalculatorSession]" = OrderedDict()

    def get(self, session_id: Optional[str]) -> Optional[CalculatorSession]:
        if session_id is None or session_id not in self.sessions:
            return None
        self.sessions.move_to_end(session_id)
        session = self.sessions[session_id]
        session.last_access = time.time()
        return session

    def create(self) -> CalculatorSession:
        """Create a new idle session, evicting the oldest if needed."""
        while len(self.sessions) >= self.max_sessions:
            self._evict_lru_session()

        session_id = uuid.uuid4().hex
        session = CalculatorSession(session_id, self.resolver, self.runner)
        self.sessions[session_id] = session
        logger.info(f"Created session {session_id} ({len(self.sessions)} active)")
        return session

    def get_or_create(self, session_id: Optional[str]) -> CalculatorSession:
        return self.get(session_id) or self.create()

    def _evict_lru_session(self) -> None:
        session_id, session = self.sessions.popitem(last=False)
        idle_for = time.time() - session.last_access
        logger.info(f"Evicting least recently used session {session_id} (idle {idle_for:.0f}s)")
        session.close()

    def remove(self, session_id: str) -> bool:
        """
        Drop a session and release its model.

        Returns:
            True if the session existed
        """
        session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"Removed session {session_id}")
        return True

    def list_sessions(self) -> List[str]:
        return list(self.sessions.keys())

    def stats(self) -> Dict[str, Dict[str, int]]:
        """Session counts by lifecycle state and by model provenance."""
        by_state: Dict[str, int] = {}
        by_provenance: Dict[str, int] = {}
        for session in self.sessions.values():
            by_state[session.state.value] = by_state.get(session.state.value, 0) + 1
            if session.resolved is not None:
                key = session.resolved.provenance.value
                by_provenance[key] = by_provenance.get(key, 0) + 1
        return {"by_state": by_state, "by_provenance": by_provenance}
