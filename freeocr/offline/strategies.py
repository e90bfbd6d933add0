"""
Cache strategies for intercepted fetches.

Each strategy is a plain coroutine taking the request, an explicitly opened
store handle and the network fetch function. The router picks one through
``classify`` and dispatches on the resulting ``Strategy`` value.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

from ..observability.logging import StructuredLogger
from .errors import NetworkTimeoutError, TerminalNetworkError
from .manifest import AssetManifest
from .store import CacheEntry, CacheStore, request_key

Fetch = Callable[[httpx.Request], Awaitable[httpx.Response]]
Schedule = Callable[[Awaitable[Optional[CacheEntry]]], "asyncio.Task[Optional[CacheEntry]]"]

log = StructuredLogger("offline")


class Strategy(str, Enum):
    """How an intercepted request is served."""
    CACHE_FIRST = "cache-first"
    NETWORK_FIRST = "network-first"
    STALE_WHILE_REVALIDATE = "stale-while-revalidate"


def is_same_origin(url: httpx.URL, origin: httpx.URL) -> bool:
    return (url.scheme, url.host, url.port) == (origin.scheme, origin.host, origin.port)


def classify(request: httpx.Request, manifest: AssetManifest, origin: httpx.URL) -> Optional[Strategy]:
    """
    Pick the strategy for a request; None means pass through untouched.

    Only GET requests without a Range header over http(s) are intercepted.
    Manifest assets come first, then same-origin navigations, then the rest.
    """
    if request.method != "GET" or "range" in request.headers:
        return None
    if request.url.scheme not in ("http", "https"):
        return None

    if request.url in manifest:
        return Strategy.CACHE_FIRST
    if request.headers.get("sec-fetch-mode") == "navigate" and is_same_origin(request.url, origin):
        return Strategy.NETWORK_FIRST
    return Strategy.STALE_WHILE_REVALIDATE


# Shared helpers -----------------------------------------------------------
async def try_cache(store: CacheStore, key: str) -> Optional[CacheEntry]:
    entry = await store.get(key)
    log.debug("Cache lookup", key=key, hit=entry is not None)
    return entry


async def fetch_and_capture(fetch: Fetch, request: httpx.Request) -> CacheEntry:
    """Fetch from the network and read the full body into an entry."""
    response = await fetch(request)
    return await CacheEntry.capture(request, response)


async def fetch_with_timeout(fetch: Fetch, request: httpx.Request, timeout: float) -> CacheEntry:
    """
    ``fetch_and_capture`` bounded by ``timeout`` seconds.

    Raises:
        NetworkTimeoutError: If headers and body did not arrive in time; the
            pending fetch is cancelled
    """
    try:
        return await asyncio.wait_for(fetch_and_capture(fetch, request), timeout)
    except asyncio.TimeoutError as e:
        raise NetworkTimeoutError(
            f"No network response within {timeout}s", request=request
        ) from e


# Strategies ---------------------------------------------------------------
async def cache_first(request: httpx.Request, store: CacheStore, fetch: Fetch) -> httpx.Response:
    """Serve from cache; on a miss fetch once, store and serve. No revalidation."""
    key = request_key(request)
    cached = await try_cache(store, key)
    if cached is not None:
        log.cache_event(Strategy.CACHE_FIRST.value, key, "cache")
        return cached.to_response()

    entry = await fetch_and_capture(fetch, request)
    await store.put(entry)
    log.cache_event(Strategy.CACHE_FIRST.value, key, "network")
    return entry.to_response()


async def network_first(
    request: httpx.Request,
    store: CacheStore,
    fetch: Fetch,
    timeout: float,
    fallback_key: str
) -> httpx.Response:
    """
    Prefer a fresh network response within ``timeout`` seconds.

    On failure falls back to the cached entry for the request, then to the
    cached entry under ``fallback_key`` (the application root).

    Raises:
        TerminalNetworkError: If the network failed and neither entry exists
    """
    try:
        entry = await fetch_with_timeout(fetch, request, timeout)
    except httpx.HTTPError as e:
        log.warning(
            "Network failed, falling back to cache",
            url=str(request.url),
            error_type=type(e).__name__
        )
        key = request_key(request)
        source = "cache"
        cached = await try_cache(store, key)
        if cached is None:
            key, source = fallback_key, "root-fallback"
            cached = await try_cache(store, key)
        if cached is None:
            raise TerminalNetworkError(
                "Network unavailable and no cached response", request=request
            ) from e
        log.cache_event(Strategy.NETWORK_FIRST.value, key, source)
        return cached.to_response()

    await store.put(entry)
    log.cache_event(Strategy.NETWORK_FIRST.value, entry.key, "network")
    return entry.to_response()


async def revalidate(request: httpx.Request, store: CacheStore, fetch: Fetch) -> Optional[CacheEntry]:
    """Refresh the entry for a request; returns None instead of raising."""
    try:
        entry = await fetch_and_capture(fetch, request)
        await store.put(entry)
    except Exception as e:  # noqa: BLE001
        log.debug(
            "Revalidation failed",
            url=str(request.url),
            error_type=type(e).__name__
        )
        return None
    return entry


async def stale_while_revalidate(
    request: httpx.Request,
    store: CacheStore,
    fetch: Fetch,
    schedule: Schedule
) -> httpx.Response:
    """
    Serve the cached entry at once and refresh it in the background.

    Without a cached entry the caller waits for that same refresh; if it
    failed, one direct network attempt is made and its outcome propagates.
    """
    key = request_key(request)
    cached = await try_cache(store, key)
    refresh = schedule(revalidate(request, store, fetch))
    if cached is not None:
        log.cache_event(Strategy.STALE_WHILE_REVALIDATE.value, key, "cache")
        return cached.to_response()

    # Unbounded: a miss waits as long as the network does
    entry = await refresh
    if entry is not None:
        return entry.to_response()
    return await fetch(request)
