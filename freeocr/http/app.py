"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .. import __version__
from ..config.settings import Settings
from ..relay.handler import RelayHandler
from .api import router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, relay: Optional[RelayHandler] = None) -> FastAPI:
    """
    Build the FreeOCR application.

    Args:
        settings: Configuration (read from the environment if omitted)
        relay: Pre-built relay handler; when omitted one is created on
            startup with its own upstream client, closed on shutdown

    Returns:
        FastAPI app serving ``POST /api/ocr`` and, if ``static_dir`` is set,
        the built application shell at ``/``
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "relay", None) is not None:
            yield
            return

        if not settings.api_key:
            logger.warning("No upstream API key configured; requests are sent unauthenticated")

        client = httpx.AsyncClient(timeout=settings.upstream_timeout)
        app.state.relay = RelayHandler(client, settings)
        logger.info(f"Relay ready (upstream={settings.upstream_url}, model={settings.model})")
        try:
            yield
        finally:
            await client.aclose()

    app = FastAPI(title="FreeOCR", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.relay = relay
    app.include_router(router)

    if settings.static_dir:
        static_dir = Path(settings.static_dir)
        if static_dir.is_dir():
            app.mount("/", StaticFiles(directory=static_dir, html=True), name="shell")
        else:
            logger.warning(f"Static directory not found: {static_dir}")

    return app
