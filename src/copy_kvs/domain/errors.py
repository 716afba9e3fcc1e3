"""Domain exceptions for copy runs."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from copy_kvs.domain.jobs import JobResult


class CopyKvsError(Exception):
    """Base class for copy run errors."""


class ConfigurationError(CopyKvsError):
    """Raised when run or connector configuration is missing or invalid."""


class AlreadyRunningError(CopyKvsError):
    """Raised when the run lock is already held."""


class NotFoundError(CopyKvsError):
    """Raised by a connector when the requested key does not exist."""


class BackendError(CopyKvsError):
    """Raised by a connector on transport, auth or driver failures."""


class ResourceExhaustionError(CopyKvsError):
    """Raised when more connector instances exist than the registry allows."""


class PoolHungError(CopyKvsError):
    """Raised when the worker pool stops producing results."""


class CheckpointError(CopyKvsError):
    """Raised when a checkpoint cannot be read or written."""


class JobFailedError(CopyKvsError):
    """Raised when at least one job of a chunk reported an error."""

    def __init__(self, failed_results: Sequence[JobResult]) -> None:
        self.failed_results = tuple(failed_results)
        first = self.failed_results[0]
        message = f"Job error occurred while copying '{first.key}': {first.error}"
        if len(self.failed_results) > 1:
            message += f" (and {len(self.failed_results) - 1} more failed job(s))"
        super().__init__(message)


__all__ = [
    "AlreadyRunningError",
    "BackendError",
    "CheckpointError",
    "ConfigurationError",
    "CopyKvsError",
    "JobFailedError",
    "NotFoundError",
    "PoolHungError",
    "ResourceExhaustionError",
]
