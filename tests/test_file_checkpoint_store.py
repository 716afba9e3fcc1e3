from __future__ import annotations

from pathlib import Path

import pytest

from copy_kvs.config import ConnectorSettings
from copy_kvs.domain.errors import CheckpointError, ConfigurationError
from copy_kvs.infrastructure.checkpoints import FileCheckpointStore


def _connector(path: Path | None) -> ConnectorSettings:
    return ConnectorSettings(
        type="LocalDirectory",
        path="/tmp/source",
        last_copied_file=None if path is None else str(path),
    )


def test_load_returns_none_before_first_checkpoint(tmp_path: Path) -> None:
    store = FileCheckpointStore()

    assert store.load("source", _connector(tmp_path / "last.txt")) is None


def test_save_then_load_returns_last_key(tmp_path: Path) -> None:
    store = FileCheckpointStore()
    connector = _connector(tmp_path / "last.txt")

    store.save("source", connector, "downloads/0001")
    store.save("source", connector, "downloads/0002")

    assert store.load("source", connector) == "downloads/0002"
    assert (tmp_path / "last.txt").read_text(encoding="utf-8") == "downloads/0002"


def test_save_leaves_no_temporary_files(tmp_path: Path) -> None:
    store = FileCheckpointStore()

    store.save("source", _connector(tmp_path / "last.txt"), "key")

    assert [path.name for path in tmp_path.iterdir()] == ["last.txt"]


def test_load_strips_trailing_newline(tmp_path: Path) -> None:
    checkpoint = tmp_path / "last.txt"
    checkpoint.write_text("key-42\n", encoding="utf-8")

    assert FileCheckpointStore().load("source", _connector(checkpoint)) == "key-42"


def test_save_rejects_empty_key(tmp_path: Path) -> None:
    with pytest.raises(CheckpointError):
        FileCheckpointStore().save("source", _connector(tmp_path / "last.txt"), "")


def test_load_and_save_require_checkpoint_location() -> None:
    store = FileCheckpointStore()

    with pytest.raises(ConfigurationError, match="Last copied file"):
        store.load("source", _connector(None))
    with pytest.raises(ConfigurationError, match="Last copied file"):
        store.save("source", _connector(None), "key")


def test_load_reports_unreadable_checkpoint(tmp_path: Path) -> None:
    checkpoint = tmp_path / "last.txt"
    checkpoint.mkdir()

    with pytest.raises(CheckpointError, match="Unable to read"):
        FileCheckpointStore().load("source", _connector(checkpoint))


def test_save_reports_unwritable_location(tmp_path: Path) -> None:
    with pytest.raises(CheckpointError, match="Unable to write"):
        FileCheckpointStore().save("source", _connector(tmp_path / "missing" / "last.txt"), "k")
