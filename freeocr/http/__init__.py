"""HTTP API layer for FreeOCR.

This module provides the FastAPI application exposing the relay endpoint
and, optionally, the static application shell.
"""

from .app import create_app

__all__ = ["create_app"]
