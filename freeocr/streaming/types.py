from __future__ import annotations

from typing import List, NamedTuple


class DecodeResult(NamedTuple):
    """Outcome of one decode step.

    Attributes:
        fragments: Text deltas completed by this step, in stream order
        terminated: True once the end-of-stream sentinel has been seen
    """
    fragments: List[str]
    terminated: bool

    def get_text(self) -> str:
        """Concatenate the fragments of this step."""
        return "".join(self.fragments)
