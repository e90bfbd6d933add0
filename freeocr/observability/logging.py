"""
Structured logging for the relay and the offline cache.

Every line carries a ``[component=... key=value]`` prefix so relay requests
can be followed by ``request_id`` and cache decisions by ``strategy`` and
``key``.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional


class StructuredLogger:
    """Logger for one FreeOCR component with optional bound fields."""

    def __init__(self, component: str, **bound: Any):
        """
        Args:
            component: Component name ("relay", "offline", "http")
            **bound: Fields repeated on every line (e.g. generation)
        """
        self.component = component
        self.bound = bound
        self.logger = logging.getLogger(f"freeocr.{component}")

    def bind(self, **fields: Any) -> "StructuredLogger":
        """Child logger that adds ``fields`` to every line."""
        return StructuredLogger(self.component, **{**self.bound, **fields})

    def _format_message(self, message: str, **kwargs) -> str:
        fields = [f"component={self.component}"]
        for key, value in {**self.bound, **kwargs}.items():
            if value is not None:
                fields.append(f"{key}={value}")
        return f"[{' '.join(fields)}] {message}"

    def debug(self, message: str, **kwargs):
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs):
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs):
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, error: Optional[BaseException] = None, **kwargs):
        """Log an error; ``error`` adds its type and message as fields."""
        if error is not None:
            kwargs["error_type"] = type(error).__name__
            kwargs["error_msg"] = str(error)
        self.logger.error(self._format_message(message, **kwargs))

    @contextmanager
    def timed(self, operation: str, **fields: Any) -> Iterator[Dict[str, Any]]:
        """
        Time a block and log how it ended.

        The yielded dict collects outcome fields (status code, cache source)
        that are appended to the completion line.

        Args:
            operation: Short name of what is being timed ("upstream", "cache-first")
            **fields: Fields logged on both the start and the end line

        Yields:
            Mutable dict of outcome fields
        """
        outcome: Dict[str, Any] = {}
        started = time.monotonic()
        self.debug(f"{operation} started", **fields)
        try:
            yield outcome
        except Exception as e:
            self.error(f"{operation} failed", error=e, elapsed_ms=_elapsed_ms(started), **fields)
            raise
        self.info(f"{operation} done", elapsed_ms=_elapsed_ms(started), **fields, **outcome)

    def cache_event(self, strategy: str, key: str, source: str):
        """Record where a cached strategy got its response from."""
        self.debug("Served", strategy=strategy, key=key, source=source)

    def relay_summary(self, request_id: str, fragments: int, chars: int,
                      elapsed: float, terminated: bool):
        """One line per relayed request, written when the text stream ends."""
        self.info(
            "Relay finished",
            request_id=request_id,
            fragments=fragments,
            chars=chars,
            elapsed_ms=int(elapsed * 1000),
            chars_per_s=int(chars / elapsed) if elapsed > 0 else 0,
            sentinel=terminated
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def new_request_id() -> str:
    """Short random identifier used to correlate log lines."""
    return uuid.uuid4().hex[:8]
