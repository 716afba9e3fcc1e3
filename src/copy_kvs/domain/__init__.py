"""Domain public API."""

from copy_kvs.domain.backend_kinds import BackendKind, parse_backend_kind
from copy_kvs.domain.errors import (
    AlreadyRunningError,
    BackendError,
    CheckpointError,
    ConfigurationError,
    CopyKvsError,
    JobFailedError,
    NotFoundError,
    PoolHungError,
    ResourceExhaustionError,
)
from copy_kvs.domain.jobs import CopyJob, CopyReport, JobResult
from copy_kvs.domain.ports import CopyEventPublisher, StorageConnector, WorkerPool

__all__ = [
    "AlreadyRunningError",
    "BackendError",
    "BackendKind",
    "CheckpointError",
    "ConfigurationError",
    "CopyEventPublisher",
    "CopyJob",
    "CopyKvsError",
    "CopyReport",
    "JobFailedError",
    "JobResult",
    "NotFoundError",
    "PoolHungError",
    "ResourceExhaustionError",
    "StorageConnector",
    "WorkerPool",
    "parse_backend_kind",
]
