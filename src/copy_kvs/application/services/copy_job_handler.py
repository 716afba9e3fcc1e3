"""Worker-side execution of one copy job."""

from __future__ import annotations

import logging

from copy_kvs.domain.jobs import CopyJob, JobResult
from copy_kvs.infrastructure.registry import ConnectorRegistry

logger = logging.getLogger(__name__)


class CopyJobHandler:
    """Copy one key between connectors resolved for the current process.

    Every failure is reported in the returned `JobResult`; nothing is raised
    into the pool machinery.
    """

    def __init__(self, registry: ConnectorRegistry, overwrite: bool = True) -> None:
        self._registry = registry
        self._overwrite = overwrite

    def __call__(self, job: CopyJob) -> JobResult:
        try:
            source = self._registry.connector_for(job.from_connector)
            destination = self._registry.connector_for(job.to_connector)

            if not self._overwrite and destination.head(job.key):
                logger.info("Skipping '%s' because it already exists.", job.key)
                return JobResult(key=job.key, skipped=True)

            logger.info("Copying '%s'...", job.key)
            destination.put(job.key, source.get(job.key))
        except Exception as exc:  # noqa: BLE001
            logger.error("Job error occurred while copying '%s': %s", job.key, exc)
            return JobResult(key=job.key, error=f"{type(exc).__name__}: {exc}")
        return JobResult(key=job.key)

    def close(self) -> None:
        """Close connectors this process built."""

        self._registry.close_process()


__all__ = ["CopyJobHandler"]
