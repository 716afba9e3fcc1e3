"""No-op copy event publisher."""

from __future__ import annotations

from copy_kvs.domain.jobs import CopyReport
from copy_kvs.domain.ports import CopyEventPublisher


class NoopCopyEventPublisher(CopyEventPublisher):
    """No-op implementation for runs without event streaming."""

    def publish_state(self, report: CopyReport, state: str, error: str | None = None) -> None:
        _ = (report, state, error)

    def publish_checkpoint(self, report: CopyReport, chunk_size: int) -> None:
        _ = (report, chunk_size)

    def close(self) -> None:
        return None


__all__ = ["NoopCopyEventPublisher"]
