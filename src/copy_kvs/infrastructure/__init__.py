"""Infrastructure layer public API."""

from copy_kvs.infrastructure.checkpoints import FileCheckpointStore
from copy_kvs.infrastructure.connectors import (
    GridFSStorageConnector,
    LocalDirectoryStorageConnector,
    PostgresBlobStorageConnector,
    S3StorageConnector,
)
from copy_kvs.infrastructure.events import MqttCopyEventPublisher, NoopCopyEventPublisher
from copy_kvs.infrastructure.locking import FileRunLock
from copy_kvs.infrastructure.registry import ConnectorRegistry
from copy_kvs.infrastructure.workers import ProcessWorkerPool, global_timeout_seconds

__all__ = [
    "ConnectorRegistry",
    "FileCheckpointStore",
    "FileRunLock",
    "GridFSStorageConnector",
    "LocalDirectoryStorageConnector",
    "MqttCopyEventPublisher",
    "NoopCopyEventPublisher",
    "PostgresBlobStorageConnector",
    "ProcessWorkerPool",
    "S3StorageConnector",
    "global_timeout_seconds",
]
