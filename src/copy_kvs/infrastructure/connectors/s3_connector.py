"""Amazon S3 storage connector."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any, Protocol, cast

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict

from copy_kvs.config import UNLIMITED_TIMEOUT, ConnectorSettings, HeadBefore
from copy_kvs.domain.errors import BackendError, ConfigurationError, NotFoundError
from copy_kvs.infrastructure.connectors.base import ProbingStorageConnector
from copy_kvs.infrastructure.connectors.params import parse_params

_MISSING_OBJECT_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_LIST_PAGE_SIZE = 1000


class S3Client(Protocol):
    """Subset of S3 client operations used by the connector."""

    def head_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        """Return object metadata."""

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        """Return object payload."""

    def put_object(self, *, Bucket: str, Key: str, Body: bytes) -> dict[str, Any]:
        """Store object payload."""

    def delete_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        """Remove an object."""

    def list_objects_v2(self, **kwargs: Any) -> dict[str, Any]:
        """List one page of object keys."""

    def close(self) -> None:
        """Close the client's HTTP connections."""


class S3ConnectorParams(BaseModel):
    """Backend parameters of an `AmazonS3` connector."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_key_id: str | None = None
    secret_access_key: str | None = None
    bucket_name: str
    directory_name: str = ""
    use_ssl: bool = False
    region: str = "us-east-1"
    endpoint_url: str | None = None

    @property
    def prefix(self) -> str:
        """Key prefix derived from `directory_name`."""

        directory = self.directory_name.strip("/")
        return f"{directory}/" if directory else ""


S3ClientFactory = Callable[[S3ConnectorParams, int], S3Client]


class S3StorageConnector(ProbingStorageConnector):
    """Connector storing each key as one object in an S3 bucket.

    Keys live under `directory_name/` when a directory is configured; listing
    strips the prefix back off so keys round-trip unchanged.
    """

    def __init__(
        self,
        params: S3ConnectorParams,
        timeout: int = UNLIMITED_TIMEOUT,
        head_before: HeadBefore | None = None,
        client_factory: S3ClientFactory | None = None,
    ) -> None:
        super().__init__(head_before)
        self._params = params
        self._timeout = timeout
        self._client_factory = client_factory or _build_default_s3_client
        self._client: S3Client | None = None

    @classmethod
    def from_settings(
        cls,
        connector_name: str,
        settings: ConnectorSettings,
        client_factory: S3ClientFactory | None = None,
    ) -> "S3StorageConnector":
        """Build a connector from validated connector settings."""

        if "overwrite" in settings.params:
            raise ConfigurationError(
                f"'overwrite' property is deprecated in Amazon S3 connector '{connector_name}'; "
                "please use the global 'overwrite' property."
            )
        params = parse_params(S3ConnectorParams, connector_name, settings.params)
        return cls(
            params=params,
            timeout=settings.timeout,
            head_before=settings.head_before,
            client_factory=client_factory,
        )

    @property
    def params(self) -> S3ConnectorParams:
        return self._params

    def close(self) -> None:
        """Close the S3 client if one was built."""

        if self._client is not None:
            self._client.close()
            self._client = None

    def _head(self, key: str) -> bool:
        try:
            self._s3().head_object(Bucket=self._params.bucket_name, Key=self._object_key(key))
        except ClientError as exc:
            if _error_code(exc) in _MISSING_OBJECT_CODES:
                return False
            raise BackendError(f"Unable to HEAD S3 object '{key}': {exc}") from exc
        except BotoCoreError as exc:
            raise BackendError(f"Unable to HEAD S3 object '{key}': {exc}") from exc
        return True

    def _get(self, key: str) -> bytes:
        try:
            response = self._s3().get_object(
                Bucket=self._params.bucket_name,
                Key=self._object_key(key),
            )
            body = response["Body"]
            return body.read() if hasattr(body, "read") else bytes(body)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_OBJECT_CODES:
                raise NotFoundError(f"S3 object '{key}' does not exist.") from exc
            raise BackendError(f"Unable to GET S3 object '{key}': {exc}") from exc
        except BotoCoreError as exc:
            raise BackendError(f"Unable to GET S3 object '{key}': {exc}") from exc

    def _put(self, key: str, data: bytes) -> None:
        try:
            self._s3().put_object(
                Bucket=self._params.bucket_name,
                Key=self._object_key(key),
                Body=data,
            )
        except (BotoCoreError, ClientError) as exc:
            raise BackendError(f"Unable to PUT S3 object '{key}': {exc}") from exc

    def _delete(self, key: str) -> None:
        try:
            self._s3().delete_object(Bucket=self._params.bucket_name, Key=self._object_key(key))
        except (BotoCoreError, ClientError) as exc:
            raise BackendError(f"Unable to DELETE S3 object '{key}': {exc}") from exc

    def _iter_keys(self, after_key: str | None) -> Iterator[str]:
        prefix = self._params.prefix
        request: dict[str, Any] = {
            "Bucket": self._params.bucket_name,
            "MaxKeys": _LIST_PAGE_SIZE,
        }
        if prefix:
            request["Prefix"] = prefix
        if after_key is not None:
            request["StartAfter"] = self._object_key(after_key)

        while True:
            try:
                response = self._s3().list_objects_v2(**request)
            except (BotoCoreError, ClientError) as exc:
                raise BackendError(
                    f"Unable to list S3 bucket '{self._params.bucket_name}': {exc}"
                ) from exc

            for item in response.get("Contents", []):
                object_key = item["Key"]
                if prefix and not object_key.startswith(prefix):
                    continue
                key = object_key[len(prefix) :]
                if key:
                    yield key

            token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not token:
                return
            request.pop("StartAfter", None)
            request["ContinuationToken"] = token

    def _object_key(self, key: str) -> str:
        return f"{self._params.prefix}{key}"

    def _s3(self) -> S3Client:
        if self._client is None:
            self._client = self._client_factory(self._params, self._timeout)
        return self._client


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _build_default_s3_client(params: S3ConnectorParams, timeout: int) -> S3Client:
    """Create a boto3 S3 client for one connector instance."""

    client_config = None
    if timeout != UNLIMITED_TIMEOUT:
        client_config = Config(connect_timeout=timeout, read_timeout=timeout)

    client = boto3.client(
        "s3",
        region_name=params.region,
        aws_access_key_id=params.access_key_id,
        aws_secret_access_key=params.secret_access_key,
        use_ssl=params.use_ssl,
        endpoint_url=params.endpoint_url,
        config=client_config,
    )
    return cast(S3Client, client)


__all__ = ["S3ClientFactory", "S3ConnectorParams", "S3StorageConnector"]
