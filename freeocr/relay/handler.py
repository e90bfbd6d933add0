"""
Relay between the browser and the upstream vision model.

The handler validates the inbound body, sends one streaming chat completion
request upstream and turns the upstream event stream into plain text through
a single StreamDecoder. It never retries: a failed upstream call is surfaced
to the caller as an UpstreamError carrying the upstream status and body.
"""

import time
from typing import Any, AsyncGenerator, AsyncIterator, List, Optional

import httpx

from ..config.constants import (
    DEFAULT_IMAGE_MIME_TYPE,
    INVALID_MIME_TYPE_MESSAGE,
    UPSTREAM_TIMEOUT_STATUS,
    UPSTREAM_UNREACHABLE_STATUS,
)
from ..config.settings import Settings
from ..observability.logging import StructuredLogger, new_request_id
from ..streaming.decoder import StreamDecoder
from .errors import InvalidInputError, UpstreamError
from .models import OcrRequest
from .payloads import build_completion_payload, build_headers, extract_text


class RelayHandler:
    """
    Streams OCR text from the upstream model to the caller.

    The handler is safe to share between concurrent requests: all per-request
    state (decoder, upstream response) lives inside ``handle`` and the
    TextStream it returns.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        """
        Initialize the relay.

        Args:
            client: HTTP client used for the upstream call (owned by the caller)
            settings: Upstream URL, model and credentials
        """
        self.client = client
        self.settings = settings
        self.log = StructuredLogger("relay")

    def validate(self, body: Any) -> OcrRequest:
        """
        Validate an inbound JSON body.

        Raises:
            InvalidInputError: If ``base64`` is missing, empty or not a string,
                or if ``mime_type`` is given but is not an image type
        """
        if not isinstance(body, dict):
            raise InvalidInputError()

        image = body.get("base64")
        if not image or not isinstance(image, str):
            raise InvalidInputError()

        mime_type = body.get("mime_type", DEFAULT_IMAGE_MIME_TYPE)
        if not isinstance(mime_type, str) or not mime_type.startswith("image/"):
            raise InvalidInputError(INVALID_MIME_TYPE_MESSAGE)

        return OcrRequest(image_base64=image, mime_type=mime_type)

    async def handle(self, body: Any) -> "TextStream":
        """
        Validate the body, open the upstream stream and return the text stream.

        Args:
            body: Decoded JSON body of the inbound request

        Returns:
            TextStream of text fragments in upstream order. Closing or
            exhausting it releases the upstream response, even if iteration
            never started.

        Raises:
            InvalidInputError: For a malformed body
            UpstreamError: If the upstream call fails before streaming starts
        """
        ocr_request = self.validate(body)
        request_id = new_request_id()
        response = await self._open_upstream(ocr_request, request_id)
        return TextStream(self._relay(response, request_id), response)

    async def _open_upstream(self, ocr_request: OcrRequest, request_id: str) -> httpx.Response:
        payload = build_completion_payload(
            self.settings.model, ocr_request.image_base64, ocr_request.mime_type
        )
        upstream_request = self.client.build_request(
            "POST",
            self.settings.upstream_url,
            json=payload,
            headers=build_headers(self.settings.api_key),
        )

        try:
            with self.log.timed("upstream", model=self.settings.model, request_id=request_id) as outcome:
                response = await self.client.send(upstream_request, stream=True)
                outcome["status"] = response.status_code
        except httpx.TimeoutException as e:
            raise UpstreamError(UPSTREAM_TIMEOUT_STATUS, original_error=e) from e
        except httpx.HTTPError as e:
            raise UpstreamError(UPSTREAM_UNREACHABLE_STATUS, original_error=e) from e

        if not response.is_success:
            try:
                upstream_body = await safe_json(response)
            finally:
                await response.aclose()
            error = UpstreamError(response.status_code, upstream_body)
            self.log.warning(
                "Upstream rejected request",
                request_id=request_id,
                **error.get_classification()
            )
            raise error

        self.log.debug(
            "Upstream stream opened",
            request_id=request_id,
            image_chars=ocr_request.data_url_length(),
            content_type=response.headers.get("content-type")
        )
        return response

    async def _relay(self, response: httpx.Response, request_id: str) -> AsyncGenerator[str, None]:
        log = self.log.bind(request_id=request_id)
        decoder = StreamDecoder()
        emitted: List[str] = []
        started = time.monotonic()

        try:
            if is_json_response(response):
                # Upstream ignored the stream flag and sent a whole completion
                text = extract_text(await safe_json(response))
                if text:
                    emitted.append(text)
                    yield text
                return

            async for chunk in response.aiter_bytes():
                result = decoder.feed(chunk)
                for fragment in result.fragments:
                    emitted.append(fragment)
                    yield fragment
                if result.terminated:
                    break

            for fragment in decoder.flush():
                emitted.append(fragment)
                yield fragment

        except httpx.HTTPError as e:
            log.error("Upstream stream interrupted", error=e)
            raise

        finally:
            await response.aclose()
            self.log.relay_summary(
                request_id=request_id,
                fragments=len(emitted),
                chars=sum(len(fragment) for fragment in emitted),
                elapsed=time.monotonic() - started,
                terminated=decoder.terminated
            )


class TextStream:
    """
    Relayed text fragments bound to the upstream response they come from.

    ``aclose`` releases the upstream response whether or not iteration has
    begun; an async generator closed before its first step would skip its
    own ``finally`` block.
    """

    def __init__(self, fragments: AsyncGenerator[str, None], response: httpx.Response):
        self._fragments = fragments
        self.response = response

    def __aiter__(self) -> AsyncIterator[str]:
        return self

    async def __anext__(self) -> str:
        return await self._fragments.__anext__()

    async def aclose(self) -> None:
        try:
            await self._fragments.aclose()
        finally:
            await self.response.aclose()


def is_json_response(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";")[0].strip().lower() == "application/json"


async def safe_json(response: httpx.Response) -> Optional[Any]:
    """Read and parse a JSON body; None if it cannot be read or parsed."""
    try:
        await response.aread()
        return response.json()
    except (httpx.HTTPError, ValueError):
        return None
