"""Run and connector settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from copy_kvs.domain.errors import ConfigurationError

UNLIMITED_TIMEOUT = -1
_DEFAULT_S3_TIMEOUT_SECONDS = 60
DEFAULT_MAX_CONNECTOR_INSTANCES = 200


class HeadBefore(BaseModel):
    """Per-connector switches for probing key existence before acting."""

    model_config = ConfigDict(frozen=True)

    get: bool = False
    put: bool = False
    delete: bool = False


class ConnectorSettings(BaseModel):
    """Immutable configuration of one named connector.

    Keys other than the common ones below are backend parameters and are
    validated by the backend's own parameter model when the connector is built.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str | None = None
    timeout: int = UNLIMITED_TIMEOUT
    last_copied_file: str | None = None
    head_before: HeadBefore = Field(default_factory=HeadBefore)

    @model_validator(mode="before")
    @classmethod
    def apply_backend_timeout_default(cls, data: Any) -> Any:
        """Fill in the backend's default timeout when none is configured."""

        if not isinstance(data, dict) or data.get("timeout") is not None:
            return data
        backend_type = str(data.get("type") or "").strip().lower()
        default = _DEFAULT_S3_TIMEOUT_SECONDS if backend_type == "amazons3" else UNLIMITED_TIMEOUT
        return {**data, "timeout": default}

    @field_validator("head_before", mode="before")
    @classmethod
    def parse_empty_head_before(cls, value: object) -> object:
        """Treat an empty `head_before:` YAML block as all switches off."""

        return {} if value is None else value

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, value: int) -> int:
        if value != UNLIMITED_TIMEOUT and value <= 0:
            raise ValueError("timeout must be -1 (unlimited) or > 0 seconds.")
        return value

    @property
    def params(self) -> dict[str, Any]:
        """Backend-specific parameters."""

        return dict(self.model_extra or {})

    @property
    def is_unlimited_timeout(self) -> bool:
        return self.timeout == UNLIMITED_TIMEOUT


class CopySettings(BaseSettings):
    """Settings of one copy job configuration.

    Values come from the YAML configuration file; `COPY_KVS_*` environment
    variables supply anything the file leaves out.
    """

    from_connector: str | None = None
    to_connector: str | None = None
    worker_threads: int = 4
    job_chunk_size: int = 100
    overwrite: bool = True
    lock_file: str
    worker_start_method: Literal["fork", "spawn", "forkserver"] = "fork"
    max_connector_instances: int = DEFAULT_MAX_CONNECTOR_INSTANCES
    events_mqtt_enabled: bool = False
    events_mqtt_host: str | None = None
    events_mqtt_port: int = 1883
    events_mqtt_topic_prefix: str = "copy-kvs"
    events_mqtt_qos: int = 0
    events_mqtt_username: str | None = None
    events_mqtt_password: str | None = None
    connectors: dict[str, ConnectorSettings] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_run_settings(self) -> "CopySettings":
        """Ensure run-wide settings are usable."""

        if self.worker_threads < 1:
            raise ValueError("Invalid number of worker threads ('worker_threads').")
        if self.job_chunk_size < 1:
            raise ValueError("Invalid number of jobs to enqueue at once ('job_chunk_size').")
        if not self.lock_file.strip():
            raise ValueError("COPY_KVS_LOCK_FILE ('lock_file') cannot be empty.")
        if self.max_connector_instances < 1:
            raise ValueError("COPY_KVS_MAX_CONNECTOR_INSTANCES must be >= 1.")
        if self.events_mqtt_enabled and not self.events_mqtt_host:
            raise ValueError(
                "COPY_KVS_EVENTS_MQTT_HOST is required when COPY_KVS_EVENTS_MQTT_ENABLED=true."
            )
        if self.events_mqtt_port < 1:
            raise ValueError("COPY_KVS_EVENTS_MQTT_PORT must be >= 1.")
        if self.events_mqtt_qos not in {0, 1, 2}:
            raise ValueError("COPY_KVS_EVENTS_MQTT_QOS must be one of 0, 1, 2.")
        return self

    def connector(self, name: str) -> ConnectorSettings:
        """Return a named connector's settings."""

        connector = self.connectors.get(name)
        if connector is None:
            raise ConfigurationError(f"Connector '{name}' was not found.")
        return connector

    model_config = SettingsConfigDict(env_prefix="COPY_KVS_", extra="ignore")


def load_settings(path: str | Path, **overrides: Any) -> CopySettings:
    """Read a YAML configuration file into validated settings.

    Non-None keyword overrides replace values from the file.
    """

    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to read configuration from '{config_path}': {exc}"
        ) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in '{config_path}': {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration in '{config_path}' must be a mapping.")

    data = {**raw, **{key: value for key, value in overrides.items() if value is not None}}
    try:
        return CopySettings(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in '{config_path}': {exc}") from exc


__all__ = [
    "ConnectorSettings",
    "CopySettings",
    "DEFAULT_MAX_CONNECTOR_INSTANCES",
    "HeadBefore",
    "UNLIMITED_TIMEOUT",
    "load_settings",
]
