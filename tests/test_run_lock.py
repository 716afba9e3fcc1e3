from __future__ import annotations

import os
from pathlib import Path

import pytest

from copy_kvs.domain.errors import AlreadyRunningError, ConfigurationError
from copy_kvs.infrastructure.locking import FileRunLock


def test_acquire_creates_lock_file_with_process_id(tmp_path: Path) -> None:
    lock = FileRunLock(tmp_path / "copy.lock")

    lock.acquire()

    assert lock.held is True
    assert (tmp_path / "copy.lock").read_text(encoding="utf-8") == str(os.getpid())


def test_acquire_fails_when_lock_file_exists(tmp_path: Path) -> None:
    lock_path = tmp_path / "copy.lock"
    lock_path.write_text("12345", encoding="utf-8")

    with pytest.raises(AlreadyRunningError, match="already exists"):
        FileRunLock(lock_path).acquire()

    assert lock_path.read_text(encoding="utf-8") == "12345"


def test_second_lock_on_same_path_is_rejected(tmp_path: Path) -> None:
    first = FileRunLock(tmp_path / "copy.lock")
    first.acquire()

    with pytest.raises(AlreadyRunningError):
        FileRunLock(tmp_path / "copy.lock").acquire()


def test_release_removes_lock_and_is_idempotent(tmp_path: Path) -> None:
    lock = FileRunLock(tmp_path / "copy.lock")
    lock.acquire()

    lock.release()
    lock.release()

    assert not (tmp_path / "copy.lock").exists()
    assert lock.held is False


def test_release_tolerates_lock_removed_by_operator(tmp_path: Path) -> None:
    lock = FileRunLock(tmp_path / "copy.lock")
    lock.acquire()
    (tmp_path / "copy.lock").unlink()

    lock.release()

    assert lock.held is False


def test_release_without_acquire_leaves_foreign_lock(tmp_path: Path) -> None:
    lock_path = tmp_path / "copy.lock"
    lock_path.write_text("12345", encoding="utf-8")

    FileRunLock(lock_path).release()

    assert lock_path.exists()


def test_lock_works_as_context_manager(tmp_path: Path) -> None:
    lock_path = tmp_path / "copy.lock"

    with FileRunLock(lock_path):
        assert lock_path.exists()

    assert not lock_path.exists()


def test_acquire_reports_unusable_lock_location(tmp_path: Path) -> None:
    lock = FileRunLock(tmp_path / "missing-dir" / "copy.lock")

    with pytest.raises(ConfigurationError, match="Unable to create lock file"):
        lock.acquire()

    assert lock.held is False
