"""Tests for root registration, canonicalization and root resolution."""

import os

import pytest

from desktop_uploader import platform_utils
from desktop_uploader.platform_utils import is_under_root
from desktop_uploader.registry import PathRegistry


def test_get_returns_config_for_symlinked_path(tmp_path):
    real = tmp_path / "real"
    real.mkdir()
    link = tmp_path / "link"
    link.symlink_to(real, target_is_directory=True)

    registry = PathRegistry()
    root = registry.add(str(link), {"bucket": "b1"})

    assert root == os.path.realpath(real)
    assert registry.get(str(link)) == {"bucket": "b1"}
    assert registry.get(str(real)) == {"bucket": "b1"}
    assert list(registry) == [root]


def test_reregistration_overwrites_config(tmp_path):
    registry = PathRegistry()
    registry.add(str(tmp_path), {"a": 1})
    registry.add(str(tmp_path) + os.sep, {"a": 2})

    assert len(registry) == 1
    assert registry.get(str(tmp_path)) == {"a": 2}


def test_missing_path_is_rejected(tmp_path):
    registry = PathRegistry()
    with pytest.raises(FileNotFoundError):
        registry.add(str(tmp_path / "nope"))


def test_clear_removes_every_root(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    registry = PathRegistry()
    registry.add(str(tmp_path / "a"))
    registry.add(str(tmp_path / "b"))

    removed = registry.clear()

    assert len(removed) == 2
    assert registry.get() == {}


def test_get_without_argument_returns_copy(tmp_path):
    registry = PathRegistry()
    registry.add(str(tmp_path), {"x": 1})
    roots = registry.get()
    roots.clear()
    assert len(registry) == 1


def test_prefix_sibling_does_not_match(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "ab").mkdir()
    registry = PathRegistry()
    root_a = registry.add(str(tmp_path / "a"))
    root_ab = registry.add(str(tmp_path / "ab"))

    assert registry.resolve(os.path.join(root_ab, "file.txt")) == root_ab
    assert registry.resolve(os.path.join(root_a, "file.txt")) == root_a
    assert registry.resolve(str(tmp_path / "other" / "file.txt")) is None


def test_resolution_is_case_insensitive_on_case_folding_platforms(monkeypatch):
    monkeypatch.setattr(platform_utils, "IS_MACOS", True)
    assert is_under_root("/Users/Me/Outbox/song.mp3", "/users/me/outbox")
    assert not is_under_root("/Users/Me/OutboxOld/song.mp3", "/users/me/outbox")


def test_resolution_is_case_sensitive_on_linux(monkeypatch):
    monkeypatch.setattr(platform_utils, "IS_MACOS", False)
    monkeypatch.setattr(platform_utils, "IS_WINDOWS", False)
    assert not is_under_root("/Data/file", "/data")


def test_separator_after_prefix_is_required():
    assert is_under_root("/a/file.txt", "/a")
    assert is_under_root("C:\\share\\f.txt", "C:\\share")
    assert not is_under_root("/ab/file.txt", "/a")
    assert not is_under_root("/a", "/a")
    assert is_under_root("/file.txt", "/")
