"""
Tests for ModelResolver - artifact loading and the synthetic fallback.
"""

import asyncio
import json
import random
from pathlib import Path

import pytest
import torch

from neural_calculator.config import config
from neural_calculator.core.artifact_store import ArtifactStore, write_artifact
from neural_calculator.core.model_resolver import (
    ModelResolver,
    build_synthetic_model,
    load_model_from_directory,
)
from neural_calculator.core.operations import Operation, Provenance

from .conftest import make_linear


def _run(model: torch.nn.Module, a: float, b: float) -> float:
    with torch.no_grad():
        x = torch.tensor([[a, b]], dtype=next(model.parameters()).dtype)
        return model(x).item()


class TestSyntheticModel:
    """Test the in-memory fallback model."""

    def test_add_weights(self) -> None:
        model = build_synthetic_model(Operation.ADD)

        assert model.weight.tolist() == [[1.0, 1.0]]
        assert model.bias.tolist() == [0.0]

    def test_subtract_weights(self) -> None:
        model = build_synthetic_model(Operation.SUBTRACT)

        assert model.weight.tolist() == [[1.0, -1.0]]
        assert model.bias.tolist() == [0.0]

    def test_uses_configured_device_and_dtype(self) -> None:
        model = build_synthetic_model(Operation.ADD)

        assert model.weight.dtype == config.TORCH_DTYPE
        assert model.weight.device.type == torch.device(config.DEVICE).type
        assert not model.training

    def test_add_matches_arithmetic(self) -> None:
        model = build_synthetic_model(Operation.ADD)
        rng = random.Random(7)

        for _ in range(50):
            a, b = rng.uniform(-1e6, 1e6), rng.uniform(-1e6, 1e6)
            assert _run(model, a, b) == pytest.approx(a + b)

    def test_subtract_matches_arithmetic(self) -> None:
        model = build_synthetic_model(Operation.SUBTRACT)
        rng = random.Random(11)

        for _ in range(50):
            a, b = rng.uniform(-1e6, 1e6), rng.uniform(-1e6, 1e6)
            assert _run(model, a, b) == pytest.approx(a - b)


class TestLoadModelFromDirectory:
    """Test deserializing an artifact directory."""

    def test_round_trips_weights(self, tmp_path: Path) -> None:
        write_artifact(make_linear(0.5, -2.0, 3.0), tmp_path / "model_add")

        model = load_model_from_directory(tmp_path / "model_add")

        assert model.weight.tolist() == [[0.5, -2.0]]
        assert model.bias.tolist() == [3.0]
        assert not model.training

    def test_rejects_wrong_shape(self, tmp_path: Path) -> None:
        model_dir = tmp_path / "model_add"
        write_artifact(make_linear(1.0, 1.0), model_dir)
        torch.save({"weight": torch.ones(1, 3), "bias": torch.zeros(1)}, model_dir / "weights.pt")

        with pytest.raises(RuntimeError):
            load_model_from_directory(model_dir)

    def test_rejects_missing_keys(self, tmp_path: Path) -> None:
        model_dir = tmp_path / "model_add"
        write_artifact(make_linear(1.0, 1.0), model_dir)
        torch.save({"weight": torch.ones(1, 2)}, model_dir / "weights.pt")

        with pytest.raises(RuntimeError):
            load_model_from_directory(model_dir)


class TestModelResolver:
    """Test resolve() provenance and fallback."""

    def test_missing_artifact_falls_back_to_synthetic(self, resolver: ModelResolver) -> None:
        resolved = asyncio.run(resolver.resolve(Operation.ADD))

        assert resolved.provenance == Provenance.SYNTHETIC
        assert resolved.operation == Operation.ADD
        assert _run(resolved.model, 2, 3) == 5.0

    def test_missing_subtract_artifact(self, resolver: ModelResolver) -> None:
        resolved = asyncio.run(resolver.resolve(Operation.SUBTRACT))

        assert resolved.provenance == Provenance.SYNTHETIC
        assert _run(resolved.model, 10, 4) == 6.0

    def test_existing_artifact_is_loaded(self, artifact_origin: str) -> None:
        resolver = ModelResolver(ArtifactStore(origin=artifact_origin))

        resolved = asyncio.run(resolver.resolve(Operation.ADD))

        assert resolved.provenance == Provenance.LOADED
        # 2a + 3b + 1 from the artifact, not the synthetic a + b
        assert _run(resolved.model, 2, 3) == 14.0

    def test_malformed_manifest_falls_back(self, tmp_path: Path) -> None:
        model_dir = tmp_path / Operation.ADD.artifact_dir
        model_dir.mkdir()
        (model_dir / "model.json").write_text("{not json")
        resolver = ModelResolver(ArtifactStore(origin=str(tmp_path)))

        resolved = asyncio.run(resolver.resolve(Operation.ADD))

        assert resolved.provenance == Provenance.SYNTHETIC

    def test_corrupt_weights_fall_back(self, tmp_path: Path) -> None:
        model_dir = tmp_path / Operation.SUBTRACT.artifact_dir
        write_artifact(make_linear(1.0, -1.0), model_dir)
        (model_dir / "weights.pt").write_bytes(b"not a checkpoint")
        resolver = ModelResolver(ArtifactStore(origin=str(tmp_path)))

        resolved = asyncio.run(resolver.resolve(Operation.SUBTRACT))

        assert resolved.provenance == Provenance.SYNTHETIC
        assert _run(resolved.model, 10, 4) == 6.0

    def test_wrong_format_falls_back(self, tmp_path: Path) -> None:
        model_dir = tmp_path / Operation.ADD.artifact_dir
        model_dir.mkdir()
        (model_dir / "model.json").write_text(json.dumps({"format": "layers-model"}))
        resolver = ModelResolver(ArtifactStore(origin=str(tmp_path)))

        resolved = asyncio.run(resolver.resolve(Operation.ADD))

        assert resolved.provenance == Provenance.SYNTHETIC

    def test_unreachable_http_origin_falls_back(self, tmp_path: Path) -> None:
        store = ArtifactStore(origin="http://127.0.0.1:9", cache_dir=str(tmp_path), timeout=0.5)
        resolver = ModelResolver(store)

        resolved = asyncio.run(resolver.resolve(Operation.ADD))

        assert resolved.provenance == Provenance.SYNTHETIC
