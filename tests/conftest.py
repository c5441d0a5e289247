"""
Pytest configuration and shared fixtures for the neural calculator tests.
"""

from pathlib import Path

import pytest
import torch

from neural_calculator.core.artifact_store import ArtifactStore, write_artifact
from neural_calculator.core.inference_runner import InferenceRunner
from neural_calculator.core.model_resolver import ModelResolver, ResolvedModel
from neural_calculator.core.operations import Operation, Provenance


class FixedResolver:
    """Resolver stand-in that always returns the given model."""

    def __init__(self, model: torch.nn.Module, provenance: Provenance = Provenance.SYNTHETIC):
        self.model = model
        self.provenance = provenance
        self.artifact_store = ArtifactStore(origin="unused")
        self.calls = []

    async def resolve(self, operation: Operation) -> ResolvedModel:
        self.calls.append(operation)
        return ResolvedModel(model=self.model, provenance=self.provenance, operation=operation)


class BrokenModel(torch.nn.Module):
    """Expects three inputs, so a two-value batch fails with a shape mismatch."""

    def __init__(self):
        super().__init__()
        self.layer = torch.nn.Linear(3, 1)

    def forward(self, x):
        return self.layer(x)


def make_linear(w1: float, w2: float, bias: float = 0.0) -> torch.nn.Linear:
    """2->1 linear layer with explicit weights."""
    model = torch.nn.Linear(2, 1)
    with torch.no_grad():
        model.weight.copy_(torch.tensor([[w1, w2]]))
        model.bias.fill_(bias)
    return model


@pytest.fixture
def empty_origin(tmp_path: Path) -> str:
    """Origin directory with no artifacts."""
    origin = tmp_path / "public"
    origin.mkdir()
    return str(origin)


@pytest.fixture
def artifact_origin(tmp_path: Path) -> str:
    """
    Origin directory holding artifacts that differ from the synthetic models.

    The add artifact computes 2a + 3b + 1 so a loaded model is distinguishable.
    """
    origin = tmp_path / "artifacts"
    write_artifact(make_linear(2.0, 3.0, 1.0), origin / Operation.ADD.artifact_dir)
    write_artifact(make_linear(1.0, -1.0), origin / Operation.SUBTRACT.artifact_dir)
    return str(origin)


@pytest.fixture
def resolver(empty_origin: str) -> ModelResolver:
    """Resolver whose artifacts are always missing."""
    return ModelResolver(ArtifactStore(origin=empty_origin))


@pytest.fixture
def runner() -> InferenceRunner:
    return InferenceRunner(max_concurrent=1)
