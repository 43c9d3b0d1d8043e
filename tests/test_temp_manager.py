"""Tests for transient file tracking and cleanup."""

import logging
import os

from flux_server import temp_manager as temp_manager_module
from flux_server.temp_manager import TempManager


def _make_file(path):
    path.write_bytes(b"partial")
    return str(path)


def test_cleanup_removes_tracked_files(tmp_path):
    manager = TempManager()
    first = _make_file(tmp_path / "a.part")
    second = _make_file(tmp_path / "b.part")
    manager.track(first)
    manager.track(second)

    manager.cleanup_all()

    assert not os.path.exists(first)
    assert not os.path.exists(second)
    assert manager.pending == []


def test_cleanup_is_idempotent(tmp_path):
    manager = TempManager()
    manager.track(_make_file(tmp_path / "a.part"))

    manager.cleanup_all()
    manager.cleanup_all()

    assert manager.pending == []


def test_cleanup_with_empty_set_is_noop():
    manager = TempManager()
    manager.cleanup_all()
    assert manager.pending == []


def test_untracked_files_are_kept(tmp_path):
    manager = TempManager()
    path = _make_file(tmp_path / "final.png")
    manager.track(path)
    manager.untrack(path)

    manager.cleanup_all()

    assert os.path.exists(path)


def test_cleanup_ignores_already_missing_files(tmp_path):
    manager = TempManager()
    manager.track(str(tmp_path / "never-created.part"))
    manager.cleanup_all()
    assert manager.pending == []


def test_cleanup_removes_directories(tmp_path):
    manager = TempManager()
    directory = tmp_path / "scratch"
    directory.mkdir()
    (directory / "inner.bin").write_bytes(b"x")
    manager.track(str(directory))

    manager.cleanup_all()

    assert not directory.exists()


def test_deletion_failure_is_logged_not_raised(tmp_path, monkeypatch, caplog):
    manager = TempManager()
    path = _make_file(tmp_path / "stuck.part")
    manager.track(path)

    def refuse(_path):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(temp_manager_module.os, "remove", refuse)

    with caplog.at_level(logging.WARNING, logger="flux_server.temp_manager"):
        manager.cleanup_all()

    assert manager.pending == []
    assert "Failed to remove temp file" in caplog.text
    assert "read-only filesystem" in caplog.text


def test_create_temp_file_tracks_new_file(tmp_path):
    manager = TempManager()
    path = manager.create_temp_file(str(tmp_path), suffix=".part")

    assert os.path.dirname(path) == str(tmp_path)
    assert path.endswith(".part")
    assert os.path.exists(path)
    assert manager.pending == [path]
