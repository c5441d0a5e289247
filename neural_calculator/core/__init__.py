"""Core business logic for model resolution and inference."""

from .operations import Operation, Provenance, ModelState
from .model_resolver import ModelResolver, ResolvedModel, build_synthetic_model
from .inference_runner import InferenceRunner, Prediction
from .session import CalculatorSession, SessionManager

__all__ = [
    "Operation",
    "Provenance",
    "ModelState",
    "ModelResolver",
    "ResolvedModel",
    "build_synthetic_model",
    "InferenceRunner",
    "Prediction",
    "CalculatorSession",
    "SessionManager",
]
