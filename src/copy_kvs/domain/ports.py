"""Ports for storage connectors and copy progress events."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Protocol, runtime_checkable

from copy_kvs.domain.jobs import CopyJob, CopyReport, JobResult


@runtime_checkable
class StorageConnector(Protocol):
    """Capabilities every storage backend binding exposes."""

    def head(self, key: str) -> bool:
        """Return whether the key exists without transferring its data."""

    def get(self, key: str) -> bytes:
        """Return object data, raising NotFoundError when the key is absent."""

    def put(self, key: str, data: bytes) -> None:
        """Create or overwrite an object."""

    def delete(self, key: str) -> None:
        """Remove an object."""

    def list_iterator(self, after_key: str | None = None) -> Iterator[str]:
        """Yield keys in backend order, strictly after `after_key` when given."""


class WorkerPool(Protocol):
    """Bounded pool executing copy jobs away from the coordinating process."""

    @property
    def pending(self) -> int:
        """Return the number of dispatched jobs without a collected result."""

    def start(self) -> None:
        """Start the workers."""

    def dispatch(self, job: CopyJob) -> None:
        """Queue one job, blocking while the queue is full."""

    def drain_pending(self, on_wait: Callable[[int], None] | None = None) -> list[JobResult]:
        """Wait for every outstanding job and return results in arrival order."""

    def shutdown(self) -> None:
        """Stop workers after their in-flight jobs."""

    def terminate(self) -> None:
        """Stop workers immediately."""


class CopyEventPublisher(Protocol):
    """Outbound publisher for copy run state and checkpoint updates."""

    def publish_state(self, report: CopyReport, state: str, error: str | None = None) -> None:
        """Publish run lifecycle state."""

    def publish_checkpoint(self, report: CopyReport, chunk_size: int) -> None:
        """Publish a checkpoint advance after a completed chunk."""

    def close(self) -> None:
        """Release publisher resources."""


__all__ = ["CopyEventPublisher", "StorageConnector", "WorkerPool"]
