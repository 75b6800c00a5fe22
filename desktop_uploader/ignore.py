"""Pre-delivery filter for watch events."""

import logging
import os
import stat as stat_mod
from typing import Callable

from desktop_uploader.events import EventBus
from desktop_uploader.state import StateStore

logger = logging.getLogger(__name__)


def file_extension(path: str) -> str:
    """Lower-cased suffix of *path* without the leading dot."""
    return os.path.splitext(path)[1].lower().lstrip(".")


class IgnoreFilter:
    """Decides whether a change on a path is uninteresting.

    A path is ignored when an extension allowlist is set and a regular
    file's suffix is not on it, or when the cache already holds an mtime
    at least as new as the file's current one.
    """

    def __init__(
        self,
        state: StateStore,
        bus: EventBus,
        extensions: list[str] | None = None,
        stat: Callable[[str], os.stat_result] = os.stat,
    ):
        self._state = state
        self._bus = bus
        self.extensions = extensions
        self._stat = stat

    def __call__(self, path: str) -> bool:
        return self.should_ignore(path)

    def should_ignore(self, path: str) -> bool:
        """Return True (and notify ``ignore``) when *path* should be skipped."""
        try:
            st = self._stat(path)
        except OSError as exc:
            # Gone already; the removal event will follow.
            logger.debug("Ignoring %s, cannot stat: %s", path, exc)
            return True

        if self.extensions and stat_mod.S_ISREG(st.st_mode):
            if file_extension(path) not in self.extensions:
                self._bus.log("Ignoring %s because of extension", path)
                self._bus.emit("ignore", path)
                return True

        cached = self._state.cached_mtime(path)
        if cached is None or st.st_mtime > cached:
            return False

        self._bus.log("Ignoring %s, not modified", path)
        self._bus.emit("ignore", path)
        return True
