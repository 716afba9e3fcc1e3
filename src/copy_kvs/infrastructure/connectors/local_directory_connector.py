"""Local directory storage connector."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path
from urllib.parse import quote, unquote

from pydantic import BaseModel, ConfigDict

from copy_kvs.config import ConnectorSettings, HeadBefore
from copy_kvs.domain.errors import BackendError, NotFoundError
from copy_kvs.infrastructure.connectors.base import ProbingStorageConnector
from copy_kvs.infrastructure.connectors.params import parse_params
from copy_kvs.infrastructure.files import TEMP_FILE_PREFIX, atomic_write_bytes


class LocalDirectoryConnectorParams(BaseModel):
    """Backend parameters of a `LocalDirectory` connector."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str


class LocalDirectoryStorageConnector(ProbingStorageConnector):
    """Connector storing each key as one percent-encoded file in a directory."""

    def __init__(self, root: str | Path, head_before: HeadBefore | None = None) -> None:
        super().__init__(head_before)
        self._root = Path(root)

    @classmethod
    def from_settings(
        cls,
        connector_name: str,
        settings: ConnectorSettings,
    ) -> "LocalDirectoryStorageConnector":
        """Build a connector from validated connector settings."""

        params = parse_params(LocalDirectoryConnectorParams, connector_name, settings.params)
        return cls(root=params.path, head_before=settings.head_before)

    @property
    def root(self) -> Path:
        return self._root

    def _head(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def _get(self, key: str) -> bytes:
        try:
            return self._path_for(key).read_bytes()
        except FileNotFoundError as exc:
            raise NotFoundError(f"File for key '{key}' does not exist in '{self._root}'.") from exc
        except OSError as exc:
            raise BackendError(f"Unable to read key '{key}' from '{self._root}': {exc}") from exc

    def _put(self, key: str, data: bytes) -> None:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(self._path_for(key), data)
        except OSError as exc:
            raise BackendError(f"Unable to write key '{key}' to '{self._root}': {exc}") from exc

    def _delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(f"File for key '{key}' does not exist in '{self._root}'.") from exc
        except OSError as exc:
            raise BackendError(f"Unable to delete key '{key}' from '{self._root}': {exc}") from exc

    def _iter_keys(self, after_key: str | None) -> Iterator[str]:
        try:
            with os.scandir(self._root) as entries:
                keys = sorted(
                    unquote(entry.name)
                    for entry in entries
                    if entry.is_file() and not entry.name.startswith(TEMP_FILE_PREFIX)
                )
        except FileNotFoundError:
            return
        except OSError as exc:
            raise BackendError(f"Unable to list '{self._root}': {exc}") from exc

        for key in keys:
            if after_key is None or key > after_key:
                yield key

    def _path_for(self, key: str) -> Path:
        name = quote(key, safe="")
        if name in {".", ".."}:
            name = name.replace(".", "%2E")
        return self._root / name


__all__ = ["LocalDirectoryConnectorParams", "LocalDirectoryStorageConnector"]
