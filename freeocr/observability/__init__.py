"""Observability helpers (structured logging)."""

from .logging import StructuredLogger, new_request_id

__all__ = [
    "StructuredLogger",
    "new_request_id",
]
