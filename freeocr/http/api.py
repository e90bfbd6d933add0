"""FastAPI HTTP endpoints for the FreeOCR relay."""

from typing import AsyncGenerator

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ..observability.logging import StructuredLogger
from ..relay.errors import RelayError
from ..relay.handler import RelayHandler, TextStream


# Create router instance
router = APIRouter()
log = StructuredLogger("http")


def get_relay(request: Request) -> RelayHandler:
    """Relay handler shared by the application."""
    return request.app.state.relay


async def response_body(stream: TextStream) -> AsyncGenerator[str, None]:
    """
    Response body for a relayed stream.

    An upstream failure after the first byte ends the body cleanly, so the
    client keeps the partial text instead of seeing an aborted response.
    """
    try:
        async for fragment in stream:
            yield fragment
    except httpx.HTTPError as e:
        log.warning("Response ended early", error_type=type(e).__name__)
    finally:
        await stream.aclose()


@router.post("/api/ocr")
async def ocr(request: Request, relay: RelayHandler = Depends(get_relay)):
    """Stream the text found in a base64-encoded image as plain text."""
    try:
        body = await request.json()
    except ValueError:
        # Reported as invalid input by the relay
        body = None

    try:
        stream = await relay.handle(body)
    except RelayError as e:
        return JSONResponse(e.to_body(), status_code=e.status_code)

    return StreamingResponse(
        response_body(stream),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache"}
    )
