"""Inference runner: validate inputs, run the forward pass, extract the scalar."""

import asyncio
import math
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import torch

from ..config import config
from ..utils import memory
from ..utils.logging import get_logger
from .errors import InferenceError, ValidationError

logger = get_logger(__name__)

Number = Union[int, float, str, None]

# A forward pass yields either a single tensor or a collection of them
PredictionOutput = Union[torch.Tensor, Sequence[torch.Tensor]]

# Plain ASCII decimal or scientific notation, no digit separators
NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


@dataclass(frozen=True)
class Prediction:
    """Scalar produced by a forward pass."""

    value: float

    @property
    def display(self) -> str:
        return format_result(self.value)


def format_result(value: float, decimals: Optional[int] = None) -> str:
    """
    Format a prediction for display.

    Args:
        value: Raw scalar
        decimals: Number of decimals (defaults to RESULT_DECIMALS)

    Returns:
        Fixed-point string, with negative zero shown unsigned
    """
    if decimals is None:
        decimals = config.RESULT_DECIMALS
    text = f"{value:.{decimals}f}"
    if text.startswith("-") and float(text) == 0:
        text = text[1:]
    return text


def parse_operand(raw: Number, name: str) -> float:
    """
    Parse a user-supplied operand.

    Args:
        raw: String or number from the UI
        name: Operand name used in the error message

    Returns:
        Finite float

    Raises:
        ValidationError: If the value is empty, non-numeric or not finite
    """
    if raw is None or isinstance(raw, bool):
        raise ValidationError(f"Operand {name} is required")

    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            raise ValidationError(f"Operand {name} is required")
        if not NUMBER_PATTERN.fullmatch(raw):
            raise ValidationError(f"Operand {name} is not a valid number: {raw!r}")

    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Operand {name} is not a valid number: {raw!r}")

    if not math.isfinite(value):
        raise ValidationError(f"Operand {name} must be finite, got {raw!r}")
    return value


def validate_operands(a: Number, b: Number) -> Tuple[float, float]:
    """Parse both operands, raising ValidationError on the first bad one."""
    return parse_operand(a, "A"), parse_operand(b, "B")


def first_output(outputs: PredictionOutput) -> torch.Tensor:
    """
    Normalize a forward-pass result to its first tensor.

    Raises:
        InferenceError: If the output holds no tensor
    """
    if isinstance(outputs, torch.Tensor):
        return outputs
    if isinstance(outputs, (list, tuple)) and outputs and isinstance(outputs[0], torch.Tensor):
        return outputs[0]
    raise InferenceError(f"Model returned no tensor output: {type(outputs).__name__}")


class InferenceRunner:
    """
    Runs forward passes for the calculator.

    Bounds the number of concurrent forward passes and executes them off the
    event loop.
    """

    def __init__(self, max_concurrent: Optional[int] = None):
        """
        Initialize the inference runner.

        Args:
            max_concurrent: Maximum concurrent forward passes (defaults to config)
        """
        self.semaphore = asyncio.Semaphore(max_concurrent or config.get_max_concurrent())

    def _forward(self, model: torch.nn.Module, a: float, b: float) -> float:
        with memory.tensor_scope() as scope:
            param = next(model.parameters(), None)
            device = param.device if param is not None else torch.device(config.DEVICE)
            dtype = param.dtype if param is not None else config.TORCH_DTYPE

            input_tensor = torch.tensor([[a, b]], dtype=dtype, device=device)
            scope.append(input_tensor)

            with torch.no_grad():
                outputs = model(input_tensor)
            output = first_output(outputs)
            scope.append(output)

            if output.numel() == 0:
                raise InferenceError("Model returned an empty tensor")
            return float(output.reshape(-1)[0].item())

    async def predict(self, model: torch.nn.Module, a: Number, b: Number) -> Prediction:
        """
        Run the model on (a, b).

        Args:
            model: Resolved model
            a: First operand (string or number)
            b: Second operand (string or number)

        Returns:
            Prediction holding the raw scalar

        Raises:
            ValidationError: If an operand is not a finite number
            InferenceError: If the forward pass or extraction fails
        """
        value_a, value_b = validate_operands(a, b)

        async with self.semaphore:
            try:
                value = await asyncio.to_thread(self._forward, model, value_a, value_b)
            except InferenceError:
                logger.error(f"Inference failed for ({value_a}, {value_b})", exc_info=True)
                raise
            except Exception as e:
                logger.error(f"Inference failed for ({value_a}, {value_b}): {e}", exc_info=True)
                raise InferenceError(str(e)) from e

        logger.debug(f"Prediction for ({value_a}, {value_b}): {value}")
        return Prediction(value=value)
