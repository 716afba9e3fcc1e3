"""Application services."""

from copy_kvs.application.services.cancellation import CancellationToken
from copy_kvs.application.services.copy_job_handler import CopyJobHandler
from copy_kvs.application.services.copy_service import CopyService, PoolFactory

__all__ = ["CancellationToken", "CopyJobHandler", "CopyService", "PoolFactory"]
