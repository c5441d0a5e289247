"""Locating and materializing per-operation model artifacts."""

import asyncio
import json
import os
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional
from urllib.parse import urlparse

import requests
import torch

from ..config import config
from ..utils.logging import get_logger
from .operations import Operation

logger = get_logger(__name__)

MANIFEST_NAME = "model.json"
DEFAULT_WEIGHTS_NAME = "weights.pt"
ARTIFACT_FORMAT = "linear"
STAGING_SUFFIX = ".partial"


def read_manifest(model_dir: Path) -> dict:
    """
    Read and validate a model.json manifest.

    Args:
        model_dir: Directory containing model.json

    Returns:
        Parsed manifest

    Raises:
        FileNotFoundError: If model.json is missing
        ValueError: If the manifest does not describe a 2->1 linear model
    """
    manifest_path = Path(model_dir) / MANIFEST_NAME
    with open(manifest_path, "r", encoding="utf-8") as f:
        manifest = json.load(f)

    if not isinstance(manifest, dict):
        raise ValueError(f"{manifest_path} must contain a JSON object")

    if manifest.get("format") != ARTIFACT_FORMAT:
        raise ValueError(f"Unsupported artifact format: {manifest.get('format')!r}")

    if manifest.get("in_features") != 2 or manifest.get("out_features") != 1:
        raise ValueError(
            f"Expected a 2->1 layer, got {manifest.get('in_features')}->{manifest.get('out_features')}"
        )

    weights = manifest.setdefault("weights", DEFAULT_WEIGHTS_NAME)
    if not isinstance(weights, str) or not weights or os.path.basename(weights) != weights:
        raise ValueError(f"Weights entry must be a plain file name, got {weights!r}")

    return manifest


def write_artifact(model: torch.nn.Linear, model_dir: Path) -> Path:
    """
    Write a linear model as a model.json manifest plus a state-dict weights file.

    Args:
        model: 2->1 linear layer to export
        model_dir: Target directory (created if needed)

    Returns:
        Path to the written manifest
    """
    model_dir = Path(model_dir)
    model_dir.mkdir(parents=True, exist_ok=True)

    state_dict = {k: v.detach().cpu() for k, v in model.state_dict().items()}
    torch.save(state_dict, model_dir / DEFAULT_WEIGHTS_NAME)

    manifest = {
        "format": ARTIFACT_FORMAT,
        "in_features": model.in_features,
        "out_features": model.out_features,
        "weights": DEFAULT_WEIGHTS_NAME,
    }
    manifest_path = model_dir / MANIFEST_NAME
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2)

    logger.info(f"Wrote model artifact to {model_dir}")
    return manifest_path


class ArtifactStore:
    """
    Resolves `{origin}/model_<operation>/model.json` to a local directory.

    The origin is a local directory, an http(s):// origin, or a
    gs://bucket/prefix location. Remote artifacts are downloaded into the
    local model cache before loading.
    """

    def __init__(
        self,
        origin: Optional[str] = None,
        cache_dir: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the artifact store.

        Args:
            origin: Artifact origin (defaults to MODEL_ORIGIN)
            cache_dir: Local cache for remote artifacts (defaults to LOCAL_MODEL_CACHE)
            timeout: HTTP timeout in seconds (defaults to ARTIFACT_TIMEOUT)
        """
        self.origin = origin if origin is not None else config.MODEL_ORIGIN
        self.cache_dir = Path(cache_dir or config.LOCAL_MODEL_CACHE)
        self.timeout = timeout if timeout is not None else config.ARTIFACT_TIMEOUT

        parsed = urlparse(self.origin)
        self.scheme = parsed.scheme if parsed.scheme in ("http", "https", "gs") else "file"
        if parsed.scheme == "file":
            self.origin = parsed.path

        self.http = None
        self.bucket = None
        self.gcs_prefix = ""

        if self.scheme in ("http", "https"):
            self.http = requests.Session()
            logger.info(f"Artifacts will be fetched from HTTP origin: {self.origin}")
        elif self.scheme == "gs":
            self.gcs_prefix = parsed.path.strip("/")
            try:
                from google.cloud import storage

                self.bucket = storage.Client().bucket(parsed.netloc)
                logger.info(f"Connected to GCS bucket: {parsed.netloc}")
            except Exception as e:
                # Without a client every load fails over to the synthetic model
                logger.warning(f"GCS client initialization failed: {e}")
                self.bucket = None
        else:
            logger.info(f"Artifacts will be read from local directory: {self.origin}")

    def artifact_location(self, operation: Operation) -> str:
        """
        Get the conventional manifest location for an operation.

        Args:
            operation: Selected operation

        Returns:
            URL, gs:// URI or filesystem path of model.json
        """
        if self.scheme == "file":
            return os.path.join(self.origin, operation.artifact_dir, MANIFEST_NAME)
        return f"{self.origin.rstrip('/')}/{operation.artifact_dir}/{MANIFEST_NAME}"

    def _get_local_cache_path(self, operation: Operation) -> Path:
        return self.cache_dir / operation.artifact_dir

    def _make_staging_dir(self, operation: Operation) -> Path:
        """Create a fresh download directory private to one fetch."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return Path(
            tempfile.mkdtemp(
                prefix=f"{operation.artifact_dir}-",
                suffix=STAGING_SUFFIX,
                dir=self.cache_dir,
            )
        )

    def _is_valid_artifact_dir(self, path: Path) -> bool:
        """
        Check that a directory holds a readable manifest and its weights file.

        Args:
            path: Directory to check

        Returns:
            True if the artifact is complete
        """
        try:
            manifest = read_manifest(path)
        except (OSError, ValueError) as e:
            logger.warning(f"Validation failed for {path}: {e}")
            return False

        if not (path / manifest["weights"]).is_file():
            logger.warning(f"Validation failed: weights file {manifest['weights']} missing in {path}")
            return False
        return True

    async def fetch(self, operation: Operation) -> Path:
        """
        Materialize the artifact directory for an operation.

        Remote artifacts may come back in a staging directory owned by the
        caller; pass the result to release() once loaded, or use open().

        Args:
            operation: Selected operation

        Returns:
            Local directory containing model.json and its weights file

        Raises:
            FileNotFoundError: If the artifact is absent
            requests.RequestException: If the HTTP origin is unreachable
            ValueError: If the manifest is malformed
        """
        if self.scheme == "file":
            return self._fetch_local(operation)
        if self.scheme == "gs":
            return await asyncio.to_thread(self._download_from_gcs, operation)
        return await asyncio.to_thread(self._download_from_http, operation)

    def release(self, model_dir: Path) -> None:
        """
        Delete a staging directory returned by fetch().

        Local-origin and cached directories are left in place.
        """
        model_dir = Path(model_dir)
        in_cache = model_dir.parent.resolve() == self.cache_dir.resolve()
        if in_cache and model_dir.name.endswith(STAGING_SUFFIX):
            if model_dir.exists():
                shutil.rmtree(model_dir)
            logger.debug(f"Removed staging directory {model_dir}")

    @asynccontextmanager
    async def open(self, operation: Operation) -> AsyncIterator[Path]:
        """
        Fetch an operation's artifact for the duration of a block.

        Each caller gets a directory no concurrent fetch writes to.
        """
        model_dir = await self.fetch(operation)
        try:
            yield model_dir
        finally:
            self.release(model_dir)

    def _fetch_local(self, operation: Operation) -> Path:
        model_dir = Path(self.origin) / operation.artifact_dir
        if not (model_dir / MANIFEST_NAME).is_file():
            raise FileNotFoundError(f"No artifact at {model_dir / MANIFEST_NAME}")

        manifest = read_manifest(model_dir)
        if not (model_dir / manifest["weights"]).is_file():
            raise FileNotFoundError(f"Weights file {manifest['weights']} missing in {model_dir}")
        return model_dir

    def _download_from_http(self, operation: Operation) -> Path:
        """
        Download model.json and its weights file from the HTTP origin.

        Args:
            operation: Selected operation

        Returns:
            Staging directory holding the artifact
        """
        base_url = f"{self.origin.rstrip('/')}/{operation.artifact_dir}"

        logger.info(f"Fetching artifact from {base_url}/{MANIFEST_NAME}")
        response = self.http.get(f"{base_url}/{MANIFEST_NAME}", timeout=self.timeout)
        response.raise_for_status()

        staging = self._make_staging_dir(operation)
        try:
            (staging / MANIFEST_NAME).write_bytes(response.content)
            manifest = read_manifest(staging)

            response = self.http.get(f"{base_url}/{manifest['weights']}", timeout=self.timeout)
            response.raise_for_status()
            (staging / manifest["weights"]).write_bytes(response.content)

        except Exception:
            # Cleanup partial download
            shutil.rmtree(staging)
            raise

        logger.info(f"Artifact for {operation.value} downloaded to {staging}")
        return staging

    def _download_from_gcs(self, operation: Operation) -> Path:
        """
        Get the artifact directory from the local cache or download it from GCS.

        An incomplete cache entry is discarded and downloaded again.

        Args:
            operation: Selected operation

        Returns:
            Cache directory, or a staging directory if another fetch filled
            the cache first
        """
        local_path = self._get_local_cache_path(operation)

        if local_path.is_dir():
            if self._is_valid_artifact_dir(local_path):
                logger.info(f"Artifact for {operation.value} found in local cache")
                return local_path
            logger.warning(f"Discarding incomplete cache entry {local_path}")
            try:
                shutil.rmtree(local_path)
            except FileNotFoundError:
                pass  # removed by a concurrent fetch

        if not self.bucket:
            raise FileNotFoundError(
                f"Artifact for {operation.value} not cached and GCS client not available"
            )

        gcs_path = "/".join(p for p in (self.gcs_prefix, operation.artifact_dir) if p)
        logger.info(f"Downloading artifact from gs://{self.bucket.name}/{gcs_path}")

        blobs = list(self.bucket.list_blobs(prefix=f"{gcs_path}/"))
        if not blobs:
            raise FileNotFoundError(f"Artifact not found in GCS at {gcs_path}")

        staging = self._make_staging_dir(operation)
        try:
            for blob in blobs:
                relative_path = blob.name[len(gcs_path):].lstrip("/")
                if not relative_path:
                    continue
                local_file_path = staging / relative_path
                local_file_path.parent.mkdir(parents=True, exist_ok=True)
                blob.download_to_filename(str(local_file_path))
                logger.debug(f"Downloaded {blob.name}")

            if not self._is_valid_artifact_dir(staging):
                raise ValueError(f"Incomplete artifact in GCS at {gcs_path}")

        except Exception:
            shutil.rmtree(staging)
            raise

        try:
            os.replace(staging, local_path)
        except OSError:
            # Another fetch populated the cache first; serve this copy once
            logger.debug(f"Cache entry {local_path} already present, keeping {staging}")
            return staging

        logger.info(f"Artifact for {operation.value} downloaded to {local_path}")
        return local_path
