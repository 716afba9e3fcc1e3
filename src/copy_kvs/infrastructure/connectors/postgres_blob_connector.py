"""PostgreSQL BLOB table storage connector."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine, Iterator
from typing import Any, Literal, TypeVar

import asyncpg  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict

from copy_kvs.config import UNLIMITED_TIMEOUT, ConnectorSettings, HeadBefore
from copy_kvs.domain.errors import BackendError, NotFoundError
from copy_kvs.infrastructure.connectors.base import ProbingStorageConnector
from copy_kvs.infrastructure.connectors.params import parse_params

_LIST_BATCH_SIZE = 1000

T = TypeVar("T")


class PostgresBlobConnectorParams(BaseModel):
    """Backend parameters of a `PostgresBLOB` connector."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    host: str = "localhost"
    port: int = 5432
    username: str | None = None
    password: str | None = None
    database: str
    schema_name: str = "public"
    table: str
    id_column: str
    data_column: str
    id_column_type: Literal["text", "integer"] = "text"

    @classmethod
    def from_config(cls, connector_name: str, params: dict[str, Any]) -> "PostgresBlobConnectorParams":
        """Validate raw params; `schema` is accepted as the configured key."""

        normalized = dict(params)
        if "schema" in normalized and "schema_name" not in normalized:
            normalized["schema_name"] = normalized.pop("schema")
        return parse_params(cls, connector_name, normalized)


ConnectionFactory = Callable[[PostgresBlobConnectorParams, int], Awaitable[Any]]


def quote_identifier(identifier: str) -> str:
    """Quote a SQL identifier for PostgreSQL."""

    return '"' + identifier.replace('"', '""') + '"'


class PostgresBlobStorageConnector(ProbingStorageConnector):
    """Connector storing each key as one row of a BLOB table.

    asyncpg calls run on an event loop owned by the connector so that callers,
    including worker processes, stay synchronous.
    """

    def __init__(
        self,
        params: PostgresBlobConnectorParams,
        timeout: int = UNLIMITED_TIMEOUT,
        head_before: HeadBefore | None = None,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        super().__init__(head_before)
        self._params = params
        self._timeout = timeout
        self._connection_factory = connection_factory or _connect
        self._connection: Any | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

        table = f"{quote_identifier(params.schema_name)}.{quote_identifier(params.table)}"
        id_column = quote_identifier(params.id_column)
        data_column = quote_identifier(params.data_column)
        self._head_sql = f"SELECT 1 FROM {table} WHERE {id_column} = $1 LIMIT 1"
        self._get_sql = f"SELECT {data_column} FROM {table} WHERE {id_column} = $1"
        self._update_sql = f"UPDATE {table} SET {data_column} = $2 WHERE {id_column} = $1"
        self._insert_sql = f"INSERT INTO {table} ({id_column}, {data_column}) VALUES ($1, $2)"
        self._delete_sql = f"DELETE FROM {table} WHERE {id_column} = $1"
        self._list_first_sql = (
            f"SELECT {id_column} FROM {table} WHERE {id_column} IS NOT NULL "
            f"ORDER BY {id_column} LIMIT $1"
        )
        self._list_after_sql = (
            f"SELECT {id_column} FROM {table} WHERE {id_column} > $1 "
            f"ORDER BY {id_column} LIMIT $2"
        )

    @classmethod
    def from_settings(
        cls,
        connector_name: str,
        settings: ConnectorSettings,
        connection_factory: ConnectionFactory | None = None,
    ) -> "PostgresBlobStorageConnector":
        """Build a connector from validated connector settings."""

        return cls(
            params=PostgresBlobConnectorParams.from_config(connector_name, settings.params),
            timeout=settings.timeout,
            head_before=settings.head_before,
            connection_factory=connection_factory,
        )

    def _head(self, key: str) -> bool:
        value = self._run(self._fetchval(self._head_sql, self._key_param(key)), f"look up '{key}'")
        return value is not None

    def _get(self, key: str) -> bytes:
        row = self._run(self._fetchrow(self._get_sql, self._key_param(key)), f"read '{key}'")
        if row is None or row[0] is None:
            raise NotFoundError(f"Row '{key}' does not exist in table '{self._params.table}'.")
        return bytes(row[0])

    def _put(self, key: str, data: bytes) -> None:
        self._run(self._upsert(self._key_param(key), data), f"store '{key}'")

    def _delete(self, key: str) -> None:
        self._run(self._execute(self._delete_sql, self._key_param(key)), f"delete '{key}'")

    def _iter_keys(self, after_key: str | None) -> Iterator[str]:
        last: Any = None if after_key is None else self._key_param(after_key)
        while True:
            if last is None:
                rows = self._run(self._fetch(self._list_first_sql, _LIST_BATCH_SIZE), "list rows")
            else:
                rows = self._run(
                    self._fetch(self._list_after_sql, last, _LIST_BATCH_SIZE),
                    "list rows",
                )
            for row in rows:
                last = row[0]
                yield str(last)
            if len(rows) < _LIST_BATCH_SIZE:
                return

    def close(self) -> None:
        """Close the connection and the connector's event loop."""

        if self._loop is None:
            return
        if self._connection is not None:
            self._loop.run_until_complete(self._connection.close())
            self._connection = None
        self._loop.close()
        self._loop = None

    def _key_param(self, key: str) -> Any:
        if self._params.id_column_type == "text":
            return key
        try:
            return int(key)
        except ValueError as exc:
            raise BackendError(
                f"Key '{key}' is not a valid integer id for table '{self._params.table}'."
            ) from exc

    async def _connection_or_connect(self) -> Any:
        if self._connection is None:
            self._connection = await self._connection_factory(self._params, self._timeout)
        return self._connection

    async def _fetchval(self, query: str, *args: Any) -> Any:
        connection = await self._connection_or_connect()
        return await connection.fetchval(query, *args)

    async def _fetchrow(self, query: str, *args: Any) -> Any:
        connection = await self._connection_or_connect()
        return await connection.fetchrow(query, *args)

    async def _fetch(self, query: str, *args: Any) -> list[Any]:
        connection = await self._connection_or_connect()
        return list(await connection.fetch(query, *args))

    async def _execute(self, query: str, *args: Any) -> str:
        connection = await self._connection_or_connect()
        return str(await connection.execute(query, *args))

    async def _upsert(self, key: Any, data: bytes) -> None:
        connection = await self._connection_or_connect()
        async with connection.transaction():
            status = str(await connection.execute(self._update_sql, key, data))
            if status.split()[-1] == "0":
                await connection.execute(self._insert_sql, key, data)

    def _run(self, coroutine: Coroutine[Any, Any, T], action: str) -> T:
        if self._loop is None:
            self._loop = asyncio.new_event_loop()
        try:
            return self._loop.run_until_complete(coroutine)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError) as exc:
            raise BackendError(
                f"Unable to {action} in PostgreSQL table '{self._params.table}': {exc}"
            ) from exc


async def _connect(params: PostgresBlobConnectorParams, timeout: int) -> Any:
    """Open one asyncpg connection for a connector instance."""

    kwargs: dict[str, Any] = {}
    if timeout != UNLIMITED_TIMEOUT:
        kwargs["timeout"] = float(timeout)
        kwargs["command_timeout"] = float(timeout)
    return await asyncpg.connect(
        host=params.host,
        port=params.port,
        user=params.username,
        password=params.password,
        database=params.database,
        **kwargs,
    )


__all__ = [
    "ConnectionFactory",
    "PostgresBlobConnectorParams",
    "PostgresBlobStorageConnector",
    "quote_identifier",
]
