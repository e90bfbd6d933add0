"""
FreeOCR - image-to-text relay with an offline-capable application shell.

This package provides:
- A streaming relay to a hosted vision-language model
- An incremental decoder for chat-completion event streams
- An offline cache router (CacheFirst / NetworkFirst / StaleWhileRevalidate)
  over a versioned response store
"""

__version__ = "0.1.0"

from .config import Settings
from .offline import AssetManifest, CacheRouter, CacheStorage, Strategy
from .relay import InvalidInputError, RelayError, RelayHandler, UpstreamError
from .streaming import DecodeResult, StreamDecoder

__all__ = [
    # Configuration
    "Settings",

    # Streaming
    "StreamDecoder",
    "DecodeResult",

    # Relay
    "RelayHandler",
    "RelayError",
    "InvalidInputError",
    "UpstreamError",

    # Offline cache
    "CacheRouter",
    "CacheStorage",
    "AssetManifest",
    "Strategy",
]
