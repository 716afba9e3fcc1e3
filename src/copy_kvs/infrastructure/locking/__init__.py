"""Run lock implementations."""

from copy_kvs.infrastructure.locking.run_lock import FileRunLock

__all__ = ["FileRunLock"]
