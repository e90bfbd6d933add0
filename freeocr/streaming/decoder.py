"""
Incremental decoder for chat-completion event streams.

The upstream sends ``data: <json>`` lines terminated by ``data: [DONE]``.
Transport chunks arrive at arbitrary byte boundaries, so this module keeps a
pending buffer of undecoded text and only resolves records once a full line
has been observed (or on an explicit flush).
"""

import codecs
import json
import logging
from typing import Any, List, Optional

from ..config.constants import RECORD_PREFIX, SENTINEL_PAYLOAD
from .types import DecodeResult

logger = logging.getLogger(__name__)


class StreamDecoder:
    """
    Turns raw upstream bytes into text fragments.

    One instance belongs to exactly one upstream response. ``feed`` may be
    called with any slicing of the byte stream; the concatenated fragments are
    the same as if the whole body had been fed at once.
    """

    def __init__(self):
        """Initialize an empty decoder."""
        self.buffer = ""
        self.terminated = False
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data: bytes) -> DecodeResult:
        """
        Decode the next chunk of the upstream body.

        Args:
            data: Raw bytes exactly as delivered by the transport

        Returns:
            DecodeResult with the fragments completed by this chunk and the
            termination flag
        """
        if self.terminated:
            return DecodeResult([], True)

        text = self._text_decoder.decode(data)
        self.buffer += text
        if "\n" not in text:
            # No new line boundary, nothing can have completed
            return DecodeResult([], False)

        return self._process(final=False)

    def flush(self) -> List[str]:
        """
        Resolve whatever is left in the buffer as a final record.

        Safe to call on an empty or whitespace-only buffer, and after
        termination; both yield no fragments.
        """
        if self.terminated:
            return []

        self.buffer += self._text_decoder.decode(b"", final=True)
        return self._process(final=True).fragments

    def _process(self, final: bool) -> DecodeResult:
        lines = self.buffer.split("\n")
        # The last element may be an incomplete line unless we are flushing
        self.buffer = "" if final else lines.pop()

        fragments: List[str] = []
        for line in lines:
            record = line.strip()
            if not record:
                continue
            if is_sentinel(record):
                self.terminated = True
                self.buffer = ""
                break
            delta = parse_record(record)
            if delta:
                fragments.append(delta)

        return DecodeResult(fragments, self.terminated)


def is_sentinel(record: str) -> bool:
    """Check whether a trimmed line is the end-of-stream marker."""
    if not record.startswith(RECORD_PREFIX):
        return False
    return record[len(RECORD_PREFIX):].strip() == SENTINEL_PAYLOAD


def parse_record(record: str) -> Optional[str]:
    """
    Extract the text delta from one trimmed ``data:`` line.

    Returns None for lines without the record prefix, lines whose payload is
    not valid JSON and payloads without a string ``choices[0].delta.content``.
    """
    if not record.startswith(RECORD_PREFIX):
        return None

    payload = record[len(RECORD_PREFIX):].strip()
    try:
        event = json.loads(payload)
    except ValueError as e:
        logger.debug(f"Skipping malformed record: {e}")
        return None

    delta = extract_delta(event)
    if isinstance(delta, str) and delta:
        return delta
    return None


def extract_delta(event: Any) -> Any:
    try:
        return event["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
