"""Build-time asset manifest used to route requests to CacheFirst."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Iterable, Iterator, Union

import httpx


def normalize_url(url: Union[str, httpx.URL]) -> str:
    """Absolute URL without its fragment, as used for matching and keys."""
    return str(httpx.URL(url)).split("#", 1)[0]


@dataclass(frozen=True)
class AssetManifest:
    """
    Immutable set of asset URLs known when the shell was built.

    Attributes:
        urls: Absolute, fragment-free asset URLs
    """
    urls: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_paths(cls, paths: Iterable[str], origin: str) -> "AssetManifest":
        """Resolve site-relative paths (``/app.js``) against the origin."""
        base = httpx.URL(origin)
        return cls(frozenset(normalize_url(base.join(path)) for path in paths))

    @classmethod
    def from_directory(cls, root: Union[str, Path], origin: str) -> "AssetManifest":
        """
        Collect every file below a static build directory.

        Args:
            root: Directory served at the origin root
            origin: Origin the directory is served from

        Returns:
            Manifest with one URL per file, e.g. ``<origin>/assets/app.js``
        """
        root = Path(root)
        paths = [
            "/" + path.relative_to(root).as_posix()
            for path in sorted(root.rglob("*"))
            if path.is_file()
        ]
        return cls.from_paths(paths, origin)

    def __contains__(self, url: object) -> bool:
        if not isinstance(url, (str, httpx.URL)):
            return False
        return normalize_url(url) in self.urls

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.urls))

    def __len__(self) -> int:
        return len(self.urls)
