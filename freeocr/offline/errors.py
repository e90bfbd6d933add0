"""
Offline cache error types.

Both errors subclass httpx transport errors so that an ``httpx.AsyncClient``
using the cache router reports them like any other failed fetch.
"""

import httpx


class NetworkTimeoutError(httpx.TimeoutException):
    """The network did not answer within the NetworkFirst time budget."""


class TerminalNetworkError(httpx.NetworkError):
    """The network failed and no cached fallback exists for the request."""
