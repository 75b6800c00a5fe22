"""Watched roots and their per-root configuration."""

import logging
from typing import Any, Iterator

from desktop_uploader.platform_utils import canonicalize, is_under_root

logger = logging.getLogger(__name__)


class PathRegistry:
    """Canonical root path -> opaque caller config.

    The backing dict is shared with the state store so registrations are
    persisted with the next save.
    """

    def __init__(self, roots: dict[str, Any] | None = None):
        self._roots: dict[str, Any] = roots if roots is not None else {}

    def add(self, path, config: Any = None, strict: bool = True) -> str:
        """Register *path*, overwriting any config; return the canonical root."""
        root = canonicalize(path, strict=strict)
        self._roots[root] = {} if config is None else config
        return root

    def remove(self, path) -> str | None:
        """Unregister *path*; return the canonical root if it was registered."""
        root = canonicalize(path)
        if root in self._roots:
            del self._roots[root]
            return root
        return None

    def clear(self) -> list[str]:
        """Unregister every root and return them."""
        roots = list(self._roots)
        self._roots.clear()
        return roots

    def get(self, path=None) -> Any:
        """Config for one root (None when unknown), or a copy of the whole map."""
        if path is None:
            return dict(self._roots)
        return self._roots.get(canonicalize(path))

    def resolve(self, path: str) -> str | None:
        """Return the first registered root containing *path*."""
        for root in self._roots:
            if is_under_root(path, root):
                return root
        return None

    def __contains__(self, root: str) -> bool:
        return root in self._roots

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._roots))

    def __len__(self) -> int:
        return len(self._roots)
