"""MongoDB GridFS storage connector."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any, Protocol, cast

import gridfs
import pymongo
from gridfs.errors import NoFile
from pydantic import BaseModel, ConfigDict
from pymongo.errors import PyMongoError

from copy_kvs.config import UNLIMITED_TIMEOUT, ConnectorSettings, HeadBefore
from copy_kvs.domain.errors import BackendError, NotFoundError
from copy_kvs.infrastructure.connectors.base import ProbingStorageConnector
from copy_kvs.infrastructure.connectors.params import parse_params


class GridFSStore(Protocol):
    """Subset of `gridfs.GridFS` used by the connector."""

    def exists(self, document_or_id: Any = None, **kwargs: Any) -> bool:
        """Return whether a matching file exists."""

    def get_last_version(self, filename: str | None = None, **kwargs: Any) -> Any:
        """Return the most recent version of a file."""

    def put(self, data: Any, **kwargs: Any) -> Any:
        """Store a new file version and return its id."""

    def delete(self, file_id: Any) -> None:
        """Remove one file version."""

    def find(self, *args: Any, **kwargs: Any) -> Any:
        """Return a cursor over matching files."""


class GridFSConnectorParams(BaseModel):
    """Backend parameters of a `GridFS` connector."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    host: str = "localhost"
    port: int = 27017
    database: str
    collection: str = "fs"


GridFSFactory = Callable[[GridFSConnectorParams, int], tuple[Any, GridFSStore]]


class GridFSStorageConnector(ProbingStorageConnector):
    """Connector storing each key as a GridFS file named after the key.

    GridFS keeps multiple versions per filename; `get` reads the newest one and
    `put` removes older versions once the new one is stored.
    """

    def __init__(
        self,
        params: GridFSConnectorParams,
        timeout: int = UNLIMITED_TIMEOUT,
        head_before: HeadBefore | None = None,
        gridfs_factory: GridFSFactory | None = None,
    ) -> None:
        super().__init__(head_before)
        self._params = params
        self._timeout = timeout
        self._gridfs_factory = gridfs_factory or _build_default_gridfs
        self._client: Any | None = None
        self._fs: GridFSStore | None = None

    @classmethod
    def from_settings(
        cls,
        connector_name: str,
        settings: ConnectorSettings,
        gridfs_factory: GridFSFactory | None = None,
    ) -> "GridFSStorageConnector":
        """Build a connector from validated connector settings."""

        return cls(
            params=parse_params(GridFSConnectorParams, connector_name, settings.params),
            timeout=settings.timeout,
            head_before=settings.head_before,
            gridfs_factory=gridfs_factory,
        )

    def _head(self, key: str) -> bool:
        try:
            return bool(self._gridfs().exists(filename=key))
        except PyMongoError as exc:
            raise BackendError(f"Unable to look up GridFS file '{key}': {exc}") from exc

    def _get(self, key: str) -> bytes:
        try:
            return bytes(self._gridfs().get_last_version(filename=key).read())
        except NoFile as exc:
            raise NotFoundError(f"GridFS file '{key}' does not exist.") from exc
        except PyMongoError as exc:
            raise BackendError(f"Unable to read GridFS file '{key}': {exc}") from exc

    def _put(self, key: str, data: bytes) -> None:
        fs = self._gridfs()
        try:
            previous_ids = [grid_out._id for grid_out in fs.find({"filename": key})]
            fs.put(data, filename=key)
            for file_id in previous_ids:
                fs.delete(file_id)
        except PyMongoError as exc:
            raise BackendError(f"Unable to store GridFS file '{key}': {exc}") from exc

    def _delete(self, key: str) -> None:
        fs = self._gridfs()
        try:
            for grid_out in fs.find({"filename": key}):
                fs.delete(grid_out._id)
        except PyMongoError as exc:
            raise BackendError(f"Unable to delete GridFS file '{key}': {exc}") from exc

    def _iter_keys(self, after_key: str | None) -> Iterator[str]:
        query: dict[str, Any] = {}
        if after_key is not None:
            query["filename"] = {"$gt": after_key}

        try:
            cursor = (
                self._gridfs()
                .find(query, no_cursor_timeout=True)
                .sort("filename", pymongo.ASCENDING)
            )
        except PyMongoError as exc:
            raise BackendError(f"Unable to list GridFS files: {exc}") from exc

        previous: str | None = None
        try:
            for grid_out in cursor:
                filename = grid_out.filename
                # One entry per version; versions of a file are adjacent when sorted.
                if filename is None or filename == previous:
                    continue
                previous = filename
                yield filename
        except PyMongoError as exc:
            raise BackendError(f"Unable to list GridFS files: {exc}") from exc
        finally:
            cursor.close()

    def close(self) -> None:
        """Close the MongoDB client, which also kills its open cursors."""

        if self._client is not None:
            self._client.close()
        self._client = None
        self._fs = None

    def _gridfs(self) -> GridFSStore:
        if self._fs is None:
            self._client, self._fs = self._gridfs_factory(self._params, self._timeout)
        return self._fs


def _build_default_gridfs(
    params: GridFSConnectorParams,
    timeout: int,
) -> tuple[pymongo.MongoClient[Any], GridFSStore]:
    """Connect to MongoDB and open the configured GridFS collection."""

    client_kwargs: dict[str, Any] = {}
    if timeout != UNLIMITED_TIMEOUT:
        timeout_ms = timeout * 1000
        client_kwargs.update(
            connectTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
            serverSelectionTimeoutMS=timeout_ms,
        )
    client: pymongo.MongoClient[Any] = pymongo.MongoClient(
        host=params.host,
        port=params.port,
        **client_kwargs,
    )
    fs = gridfs.GridFS(client[params.database], collection=params.collection)
    return client, cast(GridFSStore, fs)


__all__ = ["GridFSConnectorParams", "GridFSFactory", "GridFSStorageConnector"]
