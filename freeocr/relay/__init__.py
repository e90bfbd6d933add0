"""Relay layer between the browser and the upstream vision model.

This layer handles:
- Validation of inbound transcription requests
- Construction of the streaming chat completion request
- Mapping of upstream failures to structured errors
- Piping the upstream event stream through one StreamDecoder
"""

from .errors import InvalidInputError, RelayError, UpstreamError
from .handler import RelayHandler, TextStream
from .models import OcrRequest
from .payloads import build_completion_payload, extract_text

__all__ = [
    "RelayHandler",
    "TextStream",
    "RelayError",
    "InvalidInputError",
    "UpstreamError",
    "OcrRequest",
    "build_completion_payload",
    "extract_text",
]
