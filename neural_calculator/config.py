"""
Configuration management for the neural calculator service.

Loads configuration from environment variables with sensible defaults.
"""

import os
import torch
from dotenv import load_dotenv

# Load environment variables from .env file for local development
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Artifact origin: local directory, http(s):// origin or gs://bucket/prefix
    MODEL_ORIGIN = os.getenv("MODEL_ORIGIN", "./public")

    # Remote artifacts are materialized here before loading
    LOCAL_MODEL_CACHE = os.getenv("LOCAL_MODEL_CACHE", "/tmp/calculator_model_cache")

    # Timeout (seconds) for fetching artifacts from an HTTP origin
    ARTIFACT_TIMEOUT = float(os.getenv("ARTIFACT_TIMEOUT", "30"))

    # Server Configuration
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "8080"))
    MAX_CONCURRENT_PREDICTIONS = int(os.getenv("MAX_CONCURRENT_PREDICTIONS", "1"))

    # Sessions
    SESSION_COOKIE = os.getenv("SESSION_COOKIE", "calculator_session")
    MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "1000"))

    # Result formatting
    RESULT_DECIMALS = 2

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Local development mode flag
    IS_LOCAL = os.getenv("LOCAL_DEV", "false").lower() == "true"

    # Device Configuration
    # A 2x1 layer gains nothing from an accelerator, so CPU unless asked otherwise
    DEVICE = os.getenv("DEVICE", "cpu")
    if DEVICE == "mps":
        TORCH_DTYPE = torch.float32  # MPS has no float64 support
    elif DEVICE == "cuda" and not torch.cuda.is_available():
        DEVICE = "cpu"
        TORCH_DTYPE = torch.float64
    else:
        TORCH_DTYPE = torch.float64

    @staticmethod
    def get_max_concurrent() -> int:
        """Get max concurrent predictions based on environment."""
        if Config.IS_LOCAL:
            return 1
        return max(1, Config.MAX_CONCURRENT_PREDICTIONS)


# Global config instance
config = Config()
