"""
Cross-platform path helpers for Desktop Uploader.

Centralises all OS-detection logic so the registry, the settle detector
and the state store agree on how a path is spelled before it is compared
or persisted.

Supported platforms:
  - Windows 10/11 (case-insensitive roots)
  - macOS 12+ (case-insensitive roots)
  - Linux (case-sensitive roots)
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"
IS_LINUX: bool = sys.platform.startswith("linux")

PATH_SEPARATORS = ("/", "\\")

# ---- paths -------------------------------------------------------------


def canonicalize(path: str | os.PathLike, strict: bool = False) -> str:
    """
    Return the real, symlink-free, absolute form of *path*.

    With *strict* a missing path raises ``FileNotFoundError`` instead of
    being resolved as far as possible.
    """
    expanded = os.path.expanduser(os.fspath(path))
    if strict and not os.path.exists(expanded):
        raise FileNotFoundError(f"Path does not exist: {expanded}")
    return os.path.realpath(expanded)


def normalize_file_path(path: str | os.PathLike) -> str:
    """Absolute, normalised spelling used for cache keys.

    Files are not symlink-resolved: an event path reported under a
    canonical root is already canonical, and resolving a link inside a
    root could move it outside every root.
    """
    return os.path.normpath(os.path.abspath(os.fspath(path)))


def case_fold(value: str) -> str:
    """Fold *value* the way the platform filesystem compares names."""
    if IS_WINDOWS or IS_MACOS:
        return value.lower()
    return value


def is_under_root(path: str, root: str) -> bool:
    """
    Return True when *path* lives inside *root*.

    The comparison is case-folded on case-insensitive platforms, and the
    character following the matched prefix in the original *path* must be
    a path separator, so ``/ab/file`` never matches the root ``/a``.
    """
    if not case_fold(path).startswith(case_fold(root)):
        return False
    if root.endswith(PATH_SEPARATORS):
        return len(path) > len(root)
    return path[len(root):len(root) + 1] in PATH_SEPARATORS


# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the default directory for the state file, created if needed.

    - Windows : ``%APPDATA%\\DesktopUploader``
    - macOS   : ``~/Library/Application Support/DesktopUploader``
    - Linux   : ``$XDG_CONFIG_HOME/DesktopUploader`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / "DesktopUploader"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_path() -> Path:
    """Return the path to the default log file (inside the config directory)."""
    return get_config_dir() / "desktop_uploader.log"
