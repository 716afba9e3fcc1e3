from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from copy_kvs.config import ConnectorSettings, CopySettings, HeadBefore, load_settings
from copy_kvs.domain.errors import ConfigurationError


def _write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "copy.yml"
    path.write_text(content, encoding="utf-8")
    return path


def test_copy_settings_defaults() -> None:
    settings = CopySettings(lock_file="/tmp/copy.lock")

    assert settings.worker_threads == 4
    assert settings.job_chunk_size == 100
    assert settings.overwrite is True
    assert settings.worker_start_method == "fork"
    assert settings.max_connector_instances == 200
    assert settings.connectors == {}


def test_copy_settings_require_positive_worker_threads() -> None:
    with pytest.raises(ValidationError):
        CopySettings(lock_file="/tmp/copy.lock", worker_threads=0)


def test_copy_settings_require_positive_job_chunk_size() -> None:
    with pytest.raises(ValidationError):
        CopySettings(lock_file="/tmp/copy.lock", job_chunk_size=0)


def test_copy_settings_require_mqtt_host_when_events_are_enabled() -> None:
    with pytest.raises(ValidationError):
        CopySettings(lock_file="/tmp/copy.lock", events_mqtt_enabled=True)


def test_connector_timeout_defaults_depend_on_backend() -> None:
    assert ConnectorSettings(type="AmazonS3", bucket_name="b").timeout == 60
    assert ConnectorSettings(type="amazons3", bucket_name="b").timeout == 60
    assert ConnectorSettings(type="GridFS", database="db").timeout == -1
    assert ConnectorSettings(type="GridFS", database="db", timeout=15).timeout == 15


def test_connector_timeout_rejects_zero_and_negative_values() -> None:
    with pytest.raises(ValidationError):
        ConnectorSettings(type="GridFS", timeout=0)
    with pytest.raises(ValidationError):
        ConnectorSettings(type="GridFS", timeout=-5)


def test_connector_settings_keep_backend_params_as_extras() -> None:
    connector = ConnectorSettings(
        type="PostgresBLOB",
        last_copied_file="/tmp/last",
        database="media",
        table="raw_downloads",
    )

    assert connector.params == {"database": "media", "table": "raw_downloads"}
    assert connector.head_before == HeadBefore()


def test_load_settings_reads_yaml_connectors(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
lock_file: /tmp/copy.lock
from_connector: mongo
to_connector: s3
worker_threads: 8
job_chunk_size: 50
overwrite: false
unrelated_key: ignored
connectors:
  mongo:
    type: GridFS
    database: mediacloud
    last_copied_file: /tmp/mongo-last
    head_before:
  s3:
    type: AmazonS3
    bucket_name: backups
    directory_name: downloads
    timeout: 30
    head_before:
      put: true
""",
    )

    settings = load_settings(config_path)

    assert settings.from_connector == "mongo"
    assert settings.worker_threads == 8
    assert settings.job_chunk_size == 50
    assert settings.overwrite is False
    assert settings.connector("mongo").params == {"database": "mediacloud"}
    assert settings.connector("mongo").head_before == HeadBefore()
    assert settings.connector("s3").timeout == 30
    assert settings.connector("s3").head_before.put is True


def test_load_settings_applies_non_empty_overrides(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        "lock_file: /tmp/copy.lock\nfrom_connector: a\nto_connector: b\n",
    )

    settings = load_settings(config_path, from_connector="c", to_connector=None)

    assert settings.from_connector == "c"
    assert settings.to_connector == "b"


def test_load_settings_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Unable to read configuration"):
        load_settings(tmp_path / "missing.yml")


def test_load_settings_reports_invalid_yaml(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "lock_file: [unterminated\n")

    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_settings(config_path)


def test_load_settings_reports_validation_errors(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "lock_file: /tmp/copy.lock\nworker_threads: 0\n")

    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        load_settings(config_path)


def test_load_settings_requires_mapping(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "- just\n- a list\n")

    with pytest.raises(ConfigurationError, match="must be a mapping"):
        load_settings(config_path)


def test_connector_lookup_fails_for_unknown_name() -> None:
    settings = CopySettings(lock_file="/tmp/copy.lock")

    with pytest.raises(ConfigurationError, match="'missing' was not found"):
        settings.connector("missing")
