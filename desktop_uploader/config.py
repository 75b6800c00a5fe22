"""Construction-time options for Desktop Uploader.

Options are plain values; the uploader owns everything that changes at
runtime (roots, cache, custom settings) through the persisted state file.
"""

import logging
from dataclasses import dataclass, field, fields
from typing import Any, Mapping

logger = logging.getLogger(__name__)

DEFAULT_NAME = "desktop-uploader"

DEFAULT_OPTIONS: dict[str, Any] = {
    "concurrency": 2,
    "save_interval": 10_000,  # ms, debounce window for state writes
    "name": DEFAULT_NAME,  # state file is ".<name>.json"
    "config_path": None,  # directory of the state file (None = cwd)
    "throttle": 0,  # bytes/sec shared by all uploads (0 = unlimited)
    "extensions": None,  # lower-case suffix allowlist (None = all files)
    "retries": 0,  # extra attempts beyond the first
    "modify_interval": 5_000,  # ms between settle samples
    "paths": [],  # roots to watch on first start
}


def normalize_extensions(value) -> list[str] | None:
    """Lower-case and strip dots; an empty list means no allowlist."""
    if not value:
        return None
    cleaned = [ext.lower().strip().lstrip(".") for ext in value if ext.strip()]
    return cleaned or None


@dataclass
class Options:
    """Recognised construction options, with defaults applied."""

    concurrency: int = DEFAULT_OPTIONS["concurrency"]
    save_interval: int = DEFAULT_OPTIONS["save_interval"]
    name: str = DEFAULT_NAME
    config_path: str | None = None
    throttle: int = 0
    extensions: list[str] | None = None
    retries: int = 0
    modify_interval: int = DEFAULT_OPTIONS["modify_interval"]
    paths: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.concurrency = max(1, int(self.concurrency))
        self.save_interval = max(0, int(self.save_interval))
        self.name = self.name or DEFAULT_NAME
        self.throttle = max(0, int(self.throttle or 0))
        self.extensions = normalize_extensions(self.extensions)
        self.retries = max(0, int(self.retries or 0))
        self.modify_interval = max(0, int(self.modify_interval))
        self.paths = list(self.paths or [])

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> "Options":
        """Build options from a mapping, ignoring (and logging) unknown keys."""
        values = dict(values or {})
        known = {f.name for f in fields(cls)}
        for key in sorted(set(values) - known):
            logger.warning("Ignoring unknown option %r", key)
        return cls(**{k: v for k, v in values.items() if k in known and v is not None})

    # ---- convenience ----

    @property
    def save_interval_seconds(self) -> float:
        return self.save_interval / 1000.0

    @property
    def modify_interval_seconds(self) -> float:
        return self.modify_interval / 1000.0
