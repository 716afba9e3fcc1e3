from __future__ import annotations

import multiprocessing
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from copy_kvs import __version__
from copy_kvs.application.services import CancellationToken
from copy_kvs.cli import cancel_on_signals, cli

_SRC_DIR = str(Path(__file__).resolve().parents[1] / "src")


def _write_config_file(tmp_path: Path, config: dict[str, object]) -> Path:
    path = tmp_path / "copy.yaml"
    path.write_text(yaml.safe_dump(config), encoding="utf-8")
    return path


def _write_config(tmp_path: Path, **overrides: object) -> Path:
    source = tmp_path / "source"
    source.mkdir()
    for key in ("a", "b", "c"):
        (source / key).write_bytes(f"payload-{key}".encode())

    config: dict[str, object] = {
        "from_connector": "inbox",
        "to_connector": "archive",
        "worker_threads": 2,
        "job_chunk_size": 2,
        "lock_file": str(tmp_path / "copy.lock"),
        "connectors": {
            "inbox": {
                "type": "LocalDirectory",
                "path": str(source),
                "last_copied_file": str(tmp_path / "inbox.last"),
            },
            "archive": {"type": "LocalDirectory", "path": str(tmp_path / "archive")},
        },
    }
    config.update(overrides)
    return _write_config_file(tmp_path, config)


@pytest.mark.skipif(
    "fork" not in multiprocessing.get_all_start_methods(),
    reason="fork start method is not available",
)
def test_copy_command_copies_all_keys(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path)

    result = CliRunner().invoke(cli, ["copy", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "Copied 3, skipped 0 key(s) from 'inbox' to 'archive'" in result.output
    assert sorted(path.name for path in (tmp_path / "archive").iterdir()) == ["a", "b", "c"]
    assert (tmp_path / "inbox.last").read_text(encoding="utf-8") == "c"
    assert not (tmp_path / "copy.lock").exists()


def test_copy_command_fails_when_lock_exists(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path)
    (tmp_path / "copy.lock").write_text("1", encoding="utf-8")

    result = CliRunner().invoke(cli, ["copy", str(config_path)])

    assert result.exit_code == 1
    assert "already exists" in result.output
    assert not (tmp_path / "archive").exists()


def test_copy_command_reports_unconfigured_connector(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path)

    result = CliRunner().invoke(cli, ["copy", str(config_path), "--from", "missing"])

    assert result.exit_code == 1
    assert "The connector to copy from 'missing' is not configured." in result.output


def test_copy_command_reports_invalid_configuration(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, job_chunk_size=0)

    result = CliRunner().invoke(cli, ["copy", str(config_path)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_checkpoint_command_prints_last_copied_key(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path)
    runner = CliRunner()

    assert runner.invoke(cli, ["checkpoint", str(config_path), "inbox"]).output.strip() == "(none)"

    (tmp_path / "inbox.last").write_text("b", encoding="utf-8")
    result = runner.invoke(cli, ["checkpoint", str(config_path), "inbox"])

    assert result.exit_code == 0
    assert result.output.strip() == "b"


def test_checkpoint_command_requires_last_copied_file(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path)

    result = CliRunner().invoke(cli, ["checkpoint", str(config_path), "archive"])

    assert result.exit_code == 1
    assert "Last copied file for connector 'archive' is not defined." in result.output


def test_version_option() -> None:
    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


_SLOW_COPY_SCRIPT = """
import sys
import time

from copy_kvs.cli import main
from copy_kvs.infrastructure.connectors import LocalDirectoryStorageConnector

_read = LocalDirectoryStorageConnector._get


def _slow_read(self, key):
    time.sleep(0.4)
    return _read(self, key)


LocalDirectoryStorageConnector._get = _slow_read
sys.argv = ["copy-kvs", "copy", sys.argv[1]]
main()
"""


@pytest.mark.skipif(
    "fork" not in multiprocessing.get_all_start_methods(),
    reason="fork start method is not available",
)
@pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
def test_copy_command_stops_after_current_chunk_on_process_group_signal(
    tmp_path: Path,
    signum: signal.Signals,
) -> None:
    keys = [f"key-{index:02d}" for index in range(12)]
    source = tmp_path / "source"
    source.mkdir()
    for key in keys:
        (source / key).write_bytes(key.encode())
    config_path = _write_config_file(
        tmp_path,
        {
            "from_connector": "inbox",
            "to_connector": "archive",
            "worker_threads": 2,
            "job_chunk_size": 4,
            "lock_file": str(tmp_path / "copy.lock"),
            "connectors": {
                "inbox": {
                    "type": "LocalDirectory",
                    "path": str(source),
                    "last_copied_file": str(tmp_path / "inbox.last"),
                },
                "archive": {"type": "LocalDirectory", "path": str(tmp_path / "archive")},
            },
        },
    )
    archive = tmp_path / "archive"
    env = {**os.environ, "PYTHONPATH": os.pathsep.join([_SRC_DIR, os.environ.get("PYTHONPATH", "")])}

    process = subprocess.Popen(
        [sys.executable, "-c", _SLOW_COPY_SCRIPT, str(config_path)],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
        start_new_session=True,
    )
    try:
        deadline = time.monotonic() + 30
        while not (archive.exists() and any(archive.iterdir())):
            assert process.poll() is None, process.communicate()
            assert time.monotonic() < deadline, "copy never started"
            time.sleep(0.05)
        os.killpg(process.pid, signum)
        stdout, stderr = process.communicate(timeout=60)
    finally:
        if process.poll() is None:
            os.killpg(process.pid, signal.SIGKILL)
            process.wait()

    assert process.returncode == 130, stderr.decode()
    assert not (tmp_path / "copy.lock").exists()
    checkpoint = (tmp_path / "inbox.last").read_text(encoding="utf-8")
    assert checkpoint in {"key-03", "key-07"}
    assert sorted(path.name for path in archive.iterdir()) == keys[: keys.index(checkpoint) + 1]
    assert "last key: " + checkpoint in stdout.decode()


def test_cancel_on_signals_maps_sigterm_to_cancellation_and_restores_handler() -> None:
    previous = signal.getsignal(signal.SIGTERM)
    cancellation = CancellationToken()

    with cancel_on_signals(cancellation):
        os.kill(os.getpid(), signal.SIGTERM)
        time.sleep(0.05)

    assert cancellation.is_cancelled is True
    assert cancellation.reason == "SIGTERM"
    assert signal.getsignal(signal.SIGTERM) is previous
