"""Operation, provenance and lifecycle enums shared across the service."""

from enum import Enum


class Operation(str, Enum):
    """Arithmetic operation a model computes."""

    ADD = "add"
    SUBTRACT = "subtract"

    @property
    def coefficients(self) -> tuple:
        """Dense-layer kernel computing this operation: output = w1*a + w2*b."""
        return (1.0, 1.0) if self is Operation.ADD else (1.0, -1.0)

    @property
    def artifact_dir(self) -> str:
        """Directory name of this operation's artifact under the origin."""
        return f"model_{self.value}"


class Provenance(str, Enum):
    """Where the active model came from."""

    LOADED = "Loaded"
    SYNTHETIC = "Synthetic"


class ModelState(str, Enum):
    """Lifecycle of a session's model slot."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
