"""
Relay error types.

Every error carries the HTTP status and JSON body that the HTTP layer sends
back to the caller, so the endpoint can render them without inspecting the
error kind.
"""

from typing import Any, Dict, Optional

from ..config.constants import INVALID_BASE64_MESSAGE, UPSTREAM_FAILURE_MESSAGE


class RelayError(Exception):
    """
    Base exception for relay failures surfaced to the caller.

    Attributes:
        message: Error message
        status_code: HTTP status to answer with
        body: JSON-serialisable body to answer with
    """

    def __init__(self, message: str, status_code: int, body: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def to_body(self) -> Any:
        """Body to send to the caller; defaults to ``{"error": message}``."""
        if self.body is None:
            return {"error": self.message}
        return self.body


class InvalidInputError(RelayError):
    """The inbound request body is missing or malformed."""

    def __init__(self, message: str = INVALID_BASE64_MESSAGE):
        super().__init__(message, status_code=400)


class UpstreamError(RelayError):
    """
    The upstream model service failed.

    Raised for non-success statuses (status and JSON error body are forwarded
    as-is) and for transport failures (connect errors, timeouts), which have no
    upstream status of their own.
    """

    def __init__(
        self,
        status_code: int,
        body: Optional[Any] = None,
        message: str = UPSTREAM_FAILURE_MESSAGE,
        original_error: Optional[BaseException] = None
    ):
        super().__init__(message, status_code=status_code, body=body)
        self.original_error = original_error

    def get_classification(self) -> Dict[str, Any]:
        """Summary used for logging."""
        return {
            'status_code': self.status_code,
            'has_upstream_body': self.body is not None,
            'error_type': type(self.original_error).__name__ if self.original_error else None,
        }
