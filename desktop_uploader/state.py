"""Persisted uploader state.

One JSON document per instance, at ``<config_path>/.<name>.json``::

    {
      "cache": {"/abs/file": {"mtime": 1700000000.123}},
      "paths": {"/abs/root": {...root config...}},
      "customConfig": {"name": "value"}
    }

The cache is a "seen" marker: an entry is written when a file is handed
to the upload queue, and answers "have I already queued this version of
this file".
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from desktop_uploader.debounce import Debouncer
from desktop_uploader.errors import StateFileError
from desktop_uploader.platform_utils import normalize_file_path

logger = logging.getLogger(__name__)


def state_file_path(name: str, config_path: str | os.PathLike | None = None) -> Path:
    """Return the state document location for an instance called *name*."""
    filename = f".{name}.json"
    if config_path:
        return Path(config_path) / filename
    return Path(filename)


class StateStore:
    """Cache, watched roots and custom settings, backed by a JSON file."""

    def __init__(self, path: Path, save_interval: float = 10.0):
        """Load state from *path*; *save_interval* is the debounce window in seconds."""
        self._path = Path(path)
        self.cache: dict[str, dict[str, float]] = {}
        self.paths: dict[str, Any] = {}
        self.custom: dict[str, Any] = {}
        self.writes = 0
        self._debounced = Debouncer(self.write, save_interval, max_wait=save_interval)
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    # ---- persistence ----

    def load(self) -> None:
        """Load state from disk; a missing file is a fresh start."""
        if not self._path.exists():
            logger.info("No state file at %s; starting fresh.", self._path)
            return
        try:
            with open(self._path, encoding="utf-8") as fh:
                stored = json.load(fh)
        except (json.JSONDecodeError, OSError) as exc:
            raise StateFileError(self._path, str(exc)) from exc

        if not isinstance(stored, dict):
            raise StateFileError(self._path, "top level is not an object")
        sections = {}
        for key in ("cache", "paths", "customConfig"):
            value = stored.get(key)
            if value is None:
                value = {}
            elif not isinstance(value, dict):
                raise StateFileError(self._path, f"{key!r} is not an object")
            sections[key] = value

        cache = {}
        for path, entry in sections["cache"].items():
            try:
                cache[path] = {"mtime": float(entry["mtime"])}
            except (TypeError, KeyError, ValueError) as exc:
                raise StateFileError(self._path, f"bad cache entry for {path}") from exc

        self.cache = cache
        self.paths = sections["paths"]
        self.custom = sections["customConfig"]
        logger.info(
            "State loaded from %s (%d roots, %d cached files)",
            self._path, len(self.paths), len(self.cache),
        )

    def write(self) -> None:
        """Write the document now, atomically replacing the old one."""
        self._debounced.cancel()
        document = {
            "cache": self.cache,
            "paths": self.paths,
            "customConfig": self.custom,
        }
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self._path.name, suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh)
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        self.writes += 1
        logger.debug("State written to %s", self._path)

    def save(self, immediate: bool = False) -> None:
        """Write now when *immediate*, otherwise schedule a debounced write."""
        if immediate:
            self.write()
        else:
            self._debounced()

    def flush(self) -> None:
        """Write a pending debounced save, if any."""
        self._debounced.flush()

    @property
    def save_pending(self) -> bool:
        return self._debounced.pending

    # ---- cache ----

    def cached_mtime(self, path: str) -> float | None:
        entry = self.cache.get(normalize_file_path(path))
        return entry["mtime"] if entry else None

    def mark_seen(self, path: str, mtime: float) -> None:
        self.cache[normalize_file_path(path)] = {"mtime": mtime}

    def forget(self, path: str) -> bool:
        """Evict the cache entry for *path*; return whether one existed."""
        return self.cache.pop(normalize_file_path(path), None) is not None
