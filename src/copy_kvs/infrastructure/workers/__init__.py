"""Worker pool implementations."""

from copy_kvs.infrastructure.workers.process_worker_pool import (
    ProcessWorkerPool,
    WorkHandler,
    global_timeout_seconds,
)

__all__ = ["ProcessWorkerPool", "WorkHandler", "global_timeout_seconds"]
