"""Storage connector implementations."""

from copy_kvs.infrastructure.connectors.base import ProbingStorageConnector
from copy_kvs.infrastructure.connectors.gridfs_connector import (
    GridFSConnectorParams,
    GridFSStorageConnector,
)
from copy_kvs.infrastructure.connectors.local_directory_connector import (
    LocalDirectoryConnectorParams,
    LocalDirectoryStorageConnector,
)
from copy_kvs.infrastructure.connectors.postgres_blob_connector import (
    PostgresBlobConnectorParams,
    PostgresBlobStorageConnector,
)
from copy_kvs.infrastructure.connectors.s3_connector import (
    S3ConnectorParams,
    S3StorageConnector,
)

__all__ = [
    "GridFSConnectorParams",
    "GridFSStorageConnector",
    "LocalDirectoryConnectorParams",
    "LocalDirectoryStorageConnector",
    "PostgresBlobConnectorParams",
    "PostgresBlobStorageConnector",
    "ProbingStorageConnector",
    "S3ConnectorParams",
    "S3StorageConnector",
]
