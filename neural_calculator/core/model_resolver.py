"""Model resolution: load the per-operation artifact or synthesize the model."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import torch

from ..config import config
from ..utils import memory
from ..utils.logging import get_logger
from .artifact_store import ArtifactStore, read_manifest
from .errors import LoadFailure
from .operations import Operation, Provenance

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedModel:
    """A usable model together with where it came from."""

    model: torch.nn.Module
    provenance: Provenance
    operation: Operation


def build_synthetic_model(
    operation: Operation,
    device: Optional[str] = None,
    dtype: Optional[torch.dtype] = None,
) -> torch.nn.Linear:
    """
    Construct a one-neuron dense layer that computes the operation exactly.

    Kernel is [1, 1] for addition and [1, -1] for subtraction, bias 0.
    Construction does no I/O and cannot fail for a valid Operation.

    Args:
        operation: Operation the model should compute
        device: Target device (defaults to DEVICE)
        dtype: Parameter dtype (defaults to TORCH_DTYPE)

    Returns:
        Linear model in eval mode
    """
    model = torch.nn.Linear(2, 1)
    with torch.no_grad():
        model.weight.copy_(torch.tensor([operation.coefficients]))
        model.bias.zero_()

    model = model.to(device=device or config.DEVICE, dtype=dtype or config.TORCH_DTYPE)
    model.eval()
    return model


def load_model_from_directory(
    model_dir: Path,
    device: Optional[str] = None,
    dtype: Optional[torch.dtype] = None,
) -> torch.nn.Linear:
    """
    Deserialize a linear model from a manifest + state-dict directory.

    Args:
        model_dir: Directory holding model.json and the weights file
        device: Target device (defaults to DEVICE)
        dtype: Parameter dtype (defaults to TORCH_DTYPE)

    Returns:
        Loaded model in eval mode

    Raises:
        ValueError: If the manifest or state dict does not fit a 2->1 layer
        RuntimeError: If the state dict cannot be applied
    """
    manifest = read_manifest(model_dir)
    state_dict = torch.load(
        Path(model_dir) / manifest["weights"], map_location="cpu", weights_only=True
    )
    if not isinstance(state_dict, dict):
        raise ValueError(f"Weights file in {model_dir} does not hold a state dict")

    model = torch.nn.Linear(manifest["in_features"], manifest["out_features"])
    # strict=True rejects missing/unexpected keys and shape mismatches
    model.load_state_dict(state_dict, strict=True)

    model = model.to(device=device or config.DEVICE, dtype=dtype or config.TORCH_DTYPE)
    model.eval()
    return model


class ModelResolver:
    """
    Resolves an Operation to a model.

    Tries the artifact at `{origin}/model_<operation>/model.json` first and
    falls back to the synthetic model on any failure. Resolution never
    fails.
    """

    def __init__(self, artifact_store: Optional[ArtifactStore] = None):
        """
        Initialize the resolver.

        Args:
            artifact_store: Store used to locate artifacts (defaults to MODEL_ORIGIN)
        """
        self.artifact_store = artifact_store or ArtifactStore()

    async def _load(self, operation: Operation) -> torch.nn.Module:
        """
        Load the operation's artifact.

        Raises:
            LoadFailure: If the artifact is absent, unreachable or malformed
        """
        location = self.artifact_store.artifact_location(operation)
        logger.info(f"Trying to load {operation.value} model from: {location}")

        try:
            async with self.artifact_store.open(operation) as model_dir:
                return await asyncio.to_thread(load_model_from_directory, model_dir)
        except Exception as e:
            raise LoadFailure(f"Could not load {location}: {e}") from e

    async def resolve(self, operation: Operation) -> ResolvedModel:
        """
        Obtain a usable model for the operation.

        Args:
            operation: Selected operation

        Returns:
            ResolvedModel tagged Loaded or Synthetic
        """
        try:
            model = await self._load(operation)
        except LoadFailure as e:
            logger.warning(f"{e}; generating {operation.value} model in memory")
            model = build_synthetic_model(operation)
            provenance = Provenance.SYNTHETIC
        else:
            provenance = Provenance.LOADED

        logger.info(
            f"Resolved {operation.value} model ({provenance.value}, "
            f"{memory.format_memory_size(memory.get_model_actual_memory(model))})"
        )
        return ResolvedModel(model=model, provenance=provenance, operation=operation)
