"""File-backed checkpoint store."""

from __future__ import annotations

from pathlib import Path

from copy_kvs.config import ConnectorSettings
from copy_kvs.domain.errors import CheckpointError, ConfigurationError
from copy_kvs.infrastructure.files import atomic_write_bytes


class FileCheckpointStore:
    """Persist the last fully copied key of a source connector.

    The file named by the connector's `last_copied_file` holds exactly one
    line: the key. Writes go through a temporary file and an atomic rename.
    """

    def load(self, connector_name: str, connector: ConnectorSettings) -> str | None:
        """Return the recorded key, or None when no checkpoint exists yet."""

        path = self._path(connector_name, connector)
        if not path.exists():
            return None
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise CheckpointError(
                f"Unable to read last copied file '{path}' of connector '{connector_name}': {exc}"
            ) from exc

        key = content.rstrip("\r\n")
        return key or None

    def save(self, connector_name: str, connector: ConnectorSettings, key: str) -> None:
        """Atomically replace the recorded key."""

        if not key:
            raise CheckpointError("Last copied key (that has to be stored) is not defined.")
        path = self._path(connector_name, connector)
        try:
            atomic_write_bytes(path, key.encode("utf-8"))
        except OSError as exc:
            raise CheckpointError(
                f"Unable to write last copied file '{path}' of connector '{connector_name}': {exc}"
            ) from exc

    def _path(self, connector_name: str, connector: ConnectorSettings) -> Path:
        if not connector.last_copied_file:
            raise ConfigurationError(
                f"Last copied file for connector '{connector_name}' is not defined."
            )
        return Path(connector.last_copied_file)


__all__ = ["FileCheckpointStore"]
