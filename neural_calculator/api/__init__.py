"""HTTP API for the neural calculator."""

from .app import create_app

__all__ = ["create_app"]
