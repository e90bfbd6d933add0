"""Streaming layer for upstream chat-completion event streams.

This layer handles:
- Incremental decoding of ``data:`` records split at arbitrary byte boundaries
- Extraction of text deltas from each record
- Detection of the end-of-stream sentinel
"""

from .decoder import StreamDecoder, is_sentinel, parse_record
from .types import DecodeResult

__all__ = [
    "StreamDecoder",
    "DecodeResult",
    "is_sentinel",
    "parse_record",
]
