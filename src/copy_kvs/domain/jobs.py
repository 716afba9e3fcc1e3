"""Copy job, job result and run report models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class CopyJob:
    """One key to copy from the source connector to the destination connector."""

    key: str
    from_connector: str
    to_connector: str


@dataclass(slots=True, frozen=True)
class JobResult:
    """Outcome of one copy job, produced by exactly one worker."""

    key: str
    error: str | None = None
    skipped: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class CopyReport:
    """Summary of one copy run."""

    from_connector: str
    to_connector: str
    resumed_from: str | None = None
    last_key: str | None = None
    chunks: int = 0
    copied: int = 0
    skipped: int = 0
    cancelled: bool = False


__all__ = ["CopyJob", "CopyReport", "JobResult"]
