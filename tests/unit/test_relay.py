"""Unit tests for the relay handler."""

import json

import httpx
import pytest

from freeocr.config.constants import SYSTEM_PROMPT, USER_PROMPT
from freeocr.relay import InvalidInputError, RelayHandler, UpstreamError
from freeocr.relay.payloads import build_completion_payload, build_headers, extract_text
from tests.helpers.upstream_mocks import (
    ChunkedStream,
    failing_transport,
    sse_record,
    sse_transcript,
    split_every,
    upstream_transport,
)

pytestmark = pytest.mark.unit

IMAGE = "aGVsbG8gd29ybGQ="


async def collect(stream):
    return [fragment async for fragment in stream]


def make_relay(settings, transport):
    return RelayHandler(httpx.AsyncClient(transport=transport), settings)


class TestValidation:
    """Test inbound body validation."""

    @pytest.fixture
    def relay(self, settings):
        return make_relay(settings, upstream_transport([]))

    @pytest.mark.parametrize("body", [
        None,
        {},
        {"base64": ""},
        {"base64": 123},
        {"base64": None},
        {"base64": ["abc"]},
        ["base64"],
        "aGVsbG8=",
    ])
    def test_invalid_base64(self, relay, body):
        with pytest.raises(InvalidInputError) as exc_info:
            relay.validate(body)

        assert exc_info.value.status_code == 400
        assert exc_info.value.to_body() == {"error": "Missing or invalid base64 string."}

    @pytest.mark.parametrize("mime_type", ["text/plain", 42, None, ""])
    def test_invalid_mime_type(self, relay, mime_type):
        with pytest.raises(InvalidInputError) as exc_info:
            relay.validate({"base64": IMAGE, "mime_type": mime_type})

        assert exc_info.value.to_body() == {"error": "Invalid image mime type."}

    def test_defaults_to_jpeg(self, relay):
        request = relay.validate({"base64": IMAGE})

        assert request.image_base64 == IMAGE
        assert request.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_invalid_input_makes_no_upstream_call(self, settings):
        captured = []
        relay = make_relay(settings, upstream_transport([], captured=captured))

        with pytest.raises(InvalidInputError):
            await relay.handle({})

        assert captured == []


class TestPayloads:
    """Test upstream request construction."""

    def test_completion_payload(self):
        payload = build_completion_payload("vision-model", IMAGE, "image/png")

        assert payload["model"] == "vision-model"
        assert payload["stream"] is True
        system, user = payload["messages"]
        assert system == {"role": "system", "content": [{"type": "text", "text": SYSTEM_PROMPT}]}
        assert user["role"] == "user"
        assert user["content"][0] == {"type": "text", "text": USER_PROMPT}
        assert user["content"][1] == {
            "type": "image_url",
            "image_url": {"url": f"data:image/png;base64,{IMAGE}"},
        }

    def test_headers(self):
        assert build_headers("secret")["Authorization"] == "Bearer secret"
        assert "Authorization" not in build_headers(None)

    def test_extract_text(self):
        assert extract_text({"choices": [{"message": {"content": "a"}}, {"text": "b"}]}) == "ab"
        assert extract_text({"choices": []}) == ""
        assert extract_text(None) == ""
        assert extract_text({"choices": [{"message": {"content": None}}]}) == ""

    @pytest.mark.asyncio
    async def test_request_sent_upstream(self, settings):
        captured = []
        relay = make_relay(settings, upstream_transport([sse_transcript(["x"])], captured=captured))

        await collect(await relay.handle({"base64": IMAGE, "mime_type": "image/webp"}))

        (request,) = captured
        assert request.method == "POST"
        assert str(request.url) == "https://upstream.test/openai"
        assert request.headers["Authorization"] == "Bearer test-upstream-key"
        body = json.loads(request.content)
        assert body["model"] == "test-vision-model"
        assert body["stream"] is True
        assert body["messages"][1]["content"][1]["image_url"]["url"].startswith("data:image/webp;base64,")


class TestStreaming:
    """Test relaying of the upstream event stream."""

    @pytest.mark.asyncio
    async def test_fragments_in_order(self, settings):
        chunks = split_every(sse_transcript(["Hello", " World", "!"]), 5)
        relay = make_relay(settings, upstream_transport(chunks))

        fragments = await collect(await relay.handle({"base64": IMAGE}))

        assert fragments == ["Hello", " World", "!"]

    @pytest.mark.asyncio
    async def test_flush_without_sentinel(self, settings):
        body = (sse_record("first") + sse_record("tail").rstrip("\n")).encode()
        relay = make_relay(settings, upstream_transport([body]))

        fragments = await collect(await relay.handle({"base64": IMAGE}))

        assert fragments == ["first", "tail"]

    @pytest.mark.asyncio
    async def test_stops_reading_after_sentinel(self, settings):
        chunks = [sse_transcript(["done"]), sse_record("ignored").encode()]
        relay = make_relay(settings, upstream_transport(chunks))

        fragments = await collect(await relay.handle({"base64": IMAGE}))

        assert fragments == ["done"]

    @pytest.mark.asyncio
    async def test_upstream_closed_after_completion(self, settings):
        stream = ChunkedStream([sse_transcript(["a"])])
        transport = httpx.MockTransport(lambda request: httpx.Response(200, stream=stream))
        relay = make_relay(settings, transport)

        await collect(await relay.handle({"base64": IMAGE}))

        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_upstream_closed_when_consumer_stops_early(self, settings):
        stream = ChunkedStream([sse_record("a").encode(), sse_record("b").encode()])
        transport = httpx.MockTransport(lambda request: httpx.Response(200, stream=stream))
        relay = make_relay(settings, transport)

        text_stream = await relay.handle({"base64": IMAGE})
        assert await text_stream.__anext__() == "a"
        await text_stream.aclose()

        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_upstream_closed_when_consumer_closes_before_reading(self, settings):
        stream = ChunkedStream([sse_transcript(["never read"])])
        transport = httpx.MockTransport(lambda request: httpx.Response(200, stream=stream))
        relay = make_relay(settings, transport)

        text_stream = await relay.handle({"base64": IMAGE})
        await text_stream.aclose()

        assert stream.closed is True
        with pytest.raises(StopAsyncIteration):
            await text_stream.__anext__()

    @pytest.mark.asyncio
    async def test_mid_stream_error_propagates_and_closes(self, settings):
        stream = ChunkedStream([sse_record("partial").encode()], error=httpx.ReadError("reset"))
        transport = httpx.MockTransport(lambda request: httpx.Response(200, stream=stream))
        relay = make_relay(settings, transport)

        fragments = []
        with pytest.raises(httpx.ReadError):
            async for fragment in await relay.handle({"base64": IMAGE}):
                fragments.append(fragment)

        assert fragments == ["partial"]
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_whole_json_completion(self, settings):
        completion = json.dumps({"choices": [{"message": {"content": "Full text"}}]}).encode()
        transport = upstream_transport([completion], headers={"content-type": "application/json"})
        relay = make_relay(settings, transport)

        fragments = await collect(await relay.handle({"base64": IMAGE}))

        assert fragments == ["Full text"]


class TestUpstreamFailures:
    """Test mapping of upstream failures."""

    @pytest.mark.asyncio
    async def test_error_status_forwards_json_body(self, settings):
        error_body = {"error": {"message": "quota exceeded"}}
        stream = ChunkedStream([json.dumps(error_body).encode()])
        transport = httpx.MockTransport(
            lambda request: httpx.Response(429, headers={"content-type": "application/json"}, stream=stream)
        )
        relay = make_relay(settings, transport)

        with pytest.raises(UpstreamError) as exc_info:
            await relay.handle({"base64": IMAGE})

        assert exc_info.value.status_code == 429
        assert exc_info.value.to_body() == error_body
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_error_status_without_json_body(self, settings):
        relay = make_relay(settings, upstream_transport([b"<html>Bad Gateway</html>"], status_code=502))

        with pytest.raises(UpstreamError) as exc_info:
            await relay.handle({"base64": IMAGE})

        assert exc_info.value.status_code == 502
        assert exc_info.value.to_body() == {"error": "Upstream request failed."}

    @pytest.mark.asyncio
    async def test_connect_error(self, settings):
        relay = make_relay(settings, failing_transport(httpx.ConnectError("refused")))

        with pytest.raises(UpstreamError) as exc_info:
            await relay.handle({"base64": IMAGE})

        assert exc_info.value.status_code == 502
        assert exc_info.value.to_body() == {"error": "Upstream request failed."}
        assert isinstance(exc_info.value.original_error, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout(self, settings):
        relay = make_relay(settings, failing_transport(httpx.ReadTimeout("slow")))

        with pytest.raises(UpstreamError) as exc_info:
            await relay.handle({"base64": IMAGE})

        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_no_retry(self, settings):
        captured = []
        relay = make_relay(settings, upstream_transport([b"{}"], status_code=503, captured=captured))

        with pytest.raises(UpstreamError):
            await relay.handle({"base64": IMAGE})

        assert len(captured) == 1
