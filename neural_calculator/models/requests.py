"""Request models for the API."""

from typing import Optional, Union
from pydantic import BaseModel

from ..core.operations import Operation


class OperationRequest(BaseModel):
    """Select the calculator operation."""

    operation: Operation


class CalculateRequest(BaseModel):
    """Operands as typed by the user; validated by the inference runner."""

    a: Optional[Union[str, float]] = None
    b: Optional[Union[str, float]] = None
