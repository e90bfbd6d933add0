"""
Offline cache router.

``CacheRouter`` is an httpx transport that sits in front of the real network
transport of the installed application. Every intercepted request is
classified and served by one of the strategies in ``strategies``; requests
that are not intercepted go straight to the wrapped transport.

Typical use::

    storage = CacheStorage("data/freeocr-cache.db")
    router = CacheRouter.from_settings(settings, storage)
    await router.install()
    await router.activate()
    async with httpx.AsyncClient(transport=router) as client:
        response = await client.get(settings.origin + "/")
"""

import asyncio
from typing import Awaitable, List, Optional, Set

import httpx

from ..config.constants import DEFAULT_ORIGIN, NETWORK_TIMEOUT_SECONDS
from ..config.settings import Settings
from ..observability.logging import StructuredLogger
from .manifest import AssetManifest
from .store import CacheEntry, CacheStorage, request_key, url_key
from .strategies import (
    Strategy,
    cache_first,
    classify,
    fetch_and_capture,
    network_first,
    stale_while_revalidate,
)


class CacheRouter(httpx.AsyncBaseTransport):
    """
    Arbitrates between the cache and the network for each request.

    The router keeps no open store between requests: each intercepted request
    opens the current generation's store and hands it to the strategy.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        storage: CacheStorage,
        generation: str,
        manifest: Optional[AssetManifest] = None,
        origin: str = DEFAULT_ORIGIN,
        network_timeout: float = NETWORK_TIMEOUT_SECONDS
    ):
        """
        Initialize the router.

        Args:
            transport: Network transport used for every real fetch
            storage: Cache database (not closed by the router)
            generation: Build identifier of the current deployment
            manifest: Build assets served cache-first
            origin: Origin of the application shell
            network_timeout: Time budget for navigations, in seconds
        """
        self.transport = transport
        self.storage = storage
        self.generation = generation
        self.manifest = manifest or AssetManifest()
        self.origin = httpx.URL(origin)
        self.root_url = self.origin.join("/")
        self.network_timeout = network_timeout
        self.log = StructuredLogger("offline", generation=generation)
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        storage: CacheStorage,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "CacheRouter":
        """Build a router whose manifest lists every file of the static dir."""
        if settings.static_dir:
            manifest = AssetManifest.from_directory(settings.static_dir, settings.origin)
        else:
            manifest = AssetManifest()
        return cls(
            transport=transport or httpx.AsyncHTTPTransport(),
            storage=storage,
            generation=settings.build_version,
            manifest=manifest,
            origin=settings.origin,
            network_timeout=settings.network_timeout,
        )

    def classify(self, request: httpx.Request) -> Optional[Strategy]:
        return classify(request, self.manifest, self.origin)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        strategy = self.classify(request)
        if strategy is None:
            return await self._fetch(request)

        store = await self.storage.open(self.generation)
        with self.log.timed(strategy.value, key=request_key(request)) as outcome:
            if strategy is Strategy.CACHE_FIRST:
                response = await cache_first(request, store, self._fetch)
            elif strategy is Strategy.NETWORK_FIRST:
                response = await network_first(
                    request, store, self._fetch, self.network_timeout, url_key(self.root_url)
                )
            else:
                response = await stale_while_revalidate(request, store, self._fetch, self._schedule)
            outcome["status"] = response.status_code
        return response

    async def _fetch(self, request: httpx.Request) -> httpx.Response:
        return await self.transport.handle_async_request(request)

    def _schedule(self, coro: Awaitable[Optional[CacheEntry]]) -> "asyncio.Task[Optional[CacheEntry]]":
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # Lifecycle -----------------------------------------------------------
    async def install(self) -> bool:
        """
        Pre-cache every manifest asset into the current generation.

        All-or-nothing: if any asset fails to download or answers with a
        non-success status, nothing is stored and False is returned. Runtime
        fetches will populate the cache instead.
        """
        store = await self.storage.open(self.generation)
        requests = [httpx.Request("GET", url) for url in self.manifest]
        results = await asyncio.gather(
            *(fetch_and_capture(self._fetch, request) for request in requests),
            return_exceptions=True
        )

        failed = [
            str(request.url)
            for request, result in zip(requests, results)
            if isinstance(result, BaseException) or not 200 <= result.status_code < 300
        ]
        if failed:
            self.log.warning(
                "Asset pre-cache skipped",
                failed=len(failed),
                first_failure=failed[0]
            )
            return False

        for entry in results:
            await store.put(entry)
        self.log.info("Assets pre-cached", assets=len(results))
        return True

    async def activate(self) -> List[str]:
        """Delete every other generation; returns the deleted store names."""
        deleted = await self.storage.delete_all_except(self.generation)
        if deleted:
            self.log.info("Pruned old caches", deleted=",".join(deleted))
        return deleted

    async def aclose(self) -> None:
        """Wait for background revalidations, then close the network transport."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        await self.transport.aclose()
