"""Offline cache layer for the installed application.

This layer handles:
- Classification of outbound fetches (build asset / navigation / other)
- CacheFirst, NetworkFirst and StaleWhileRevalidate strategies
- A versioned response store with pruning of superseded generations
"""

from .errors import NetworkTimeoutError, TerminalNetworkError
from .manifest import AssetManifest
from .router import CacheRouter
from .store import CacheEntry, CacheStorage, CacheStore, cache_name, request_key, url_key
from .strategies import Strategy, classify

__all__ = [
    "CacheRouter",
    "CacheStorage",
    "CacheStore",
    "CacheEntry",
    "AssetManifest",
    "Strategy",
    "classify",
    "cache_name",
    "request_key",
    "url_key",
    "NetworkTimeoutError",
    "TerminalNetworkError",
]
