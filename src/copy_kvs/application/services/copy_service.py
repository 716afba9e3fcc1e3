"""Copy run use-case service."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from itertools import islice

from copy_kvs.application.services.cancellation import CancellationToken
from copy_kvs.application.services.copy_job_handler import CopyJobHandler
from copy_kvs.config import ConnectorSettings, CopySettings
from copy_kvs.domain.errors import ConfigurationError, JobFailedError
from copy_kvs.domain.jobs import CopyJob, CopyReport
from copy_kvs.domain.ports import CopyEventPublisher, WorkerPool
from copy_kvs.infrastructure.checkpoints import FileCheckpointStore
from copy_kvs.infrastructure.events import NoopCopyEventPublisher
from copy_kvs.infrastructure.locking import FileRunLock
from copy_kvs.infrastructure.registry import ConnectorRegistry
from copy_kvs.infrastructure.workers import ProcessWorkerPool, WorkHandler, global_timeout_seconds

logger = logging.getLogger(__name__)

PoolFactory = Callable[[WorkHandler, int, float], WorkerPool]


class CopyService:
    """Drive one resumable copy run from a source connector to a destination.

    Keys are pulled from the source listing in chunks of `job_chunk_size`;
    every job of a chunk must succeed before the chunk's last key is saved as
    the checkpoint and the next chunk is dispatched. Any job error aborts the
    whole run. The run lock is held for the run's whole duration.
    """

    def __init__(
        self,
        settings: CopySettings,
        registry: ConnectorRegistry,
        checkpoint_store: FileCheckpointStore,
        run_lock: FileRunLock,
        event_publisher: CopyEventPublisher | None = None,
        pool_factory: PoolFactory | None = None,
        cancellation: CancellationToken | None = None,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._checkpoint_store = checkpoint_store
        self._run_lock = run_lock
        self._event_publisher = event_publisher or NoopCopyEventPublisher()
        self._pool_factory = pool_factory or self._build_process_pool
        self._cancellation = cancellation or CancellationToken()

    @property
    def cancellation(self) -> CancellationToken:
        return self._cancellation

    def close(self) -> None:
        """Release the event publisher."""

        self._event_publisher.close()

    def copy(self, from_connector: str | None = None, to_connector: str | None = None) -> CopyReport:
        """Copy every key after the stored checkpoint and return a run summary."""

        from_name = from_connector or self._settings.from_connector
        to_name = to_connector or self._settings.to_connector
        source, destination = self._validate_connectors(from_name, to_name)
        assert from_name is not None and to_name is not None

        report = CopyReport(from_connector=from_name, to_connector=to_name)
        self._run_lock.acquire()
        try:
            report.resumed_from = self._checkpoint_store.load(from_name, source)
            if report.resumed_from is not None:
                logger.info("Will resume from '%s'.", report.resumed_from)
            else:
                logger.info("Will start from beginning.")

            self._copy_chunks(report, source, destination)
        except BaseException as exc:
            logger.error("Copying from '%s' to '%s' failed: %s", from_name, to_name, exc)
            self._publish_failure(report, exc)
            raise
        finally:
            self._registry.close_process()
            self._run_lock.release()

        if report.cancelled:
            logger.warning(
                "Stopped after %d chunk(s) (%s); last copied key is '%s'.",
                report.chunks,
                self._cancellation.reason,
                report.last_key or report.resumed_from,
            )
            self._event_publisher.publish_state(report, "cancelled")
        else:
            logger.info(
                "Done: %d key(s) copied, %d skipped in %d chunk(s).",
                report.copied,
                report.skipped,
                report.chunks,
            )
            self._event_publisher.publish_state(report, "completed")
        return report

    def _validate_connectors(
        self,
        from_name: str | None,
        to_name: str | None,
    ) -> tuple[ConnectorSettings, ConnectorSettings]:
        if not from_name:
            raise ConfigurationError("The connector to copy from ('from_connector') is not set.")
        if not to_name:
            raise ConfigurationError("The connector to copy to ('to_connector') is not set.")
        if from_name not in self._settings.connectors:
            raise ConfigurationError(f"The connector to copy from '{from_name}' is not configured.")
        if to_name not in self._settings.connectors:
            raise ConfigurationError(f"The connector to copy to '{to_name}' is not configured.")
        return self._settings.connectors[from_name], self._settings.connectors[to_name]

    def _copy_chunks(
        self,
        report: CopyReport,
        source: ConnectorSettings,
        destination: ConnectorSettings,
    ) -> None:
        pool = self._pool_factory(
            CopyJobHandler(self._registry, overwrite=self._settings.overwrite),
            self._settings.worker_threads,
            global_timeout_seconds(source, destination),
        )
        pool.start()
        try:
            # Publishers may run background threads; workers are already forked here.
            self._event_publisher.publish_state(report, "started")
            source_connector = self._registry.connector_for(report.from_connector)
            keys = source_connector.list_iterator(report.resumed_from)
            try:
                self._copy_listed_keys(report, source, pool, keys)
            finally:
                close_listing = getattr(keys, "close", None)
                if close_listing is not None:
                    close_listing()
        except BaseException:
            if pool.pending:
                pool.terminate()
            else:
                pool.shutdown()
            raise
        pool.shutdown()

    def _copy_listed_keys(
        self,
        report: CopyReport,
        source: ConnectorSettings,
        pool: WorkerPool,
        keys: Iterator[str],
    ) -> None:
        chunk_size = self._settings.job_chunk_size
        have_keys_left = True
        while have_keys_left:
            if self._cancellation.is_cancelled:
                report.cancelled = True
                break

            chunk_last_key: str | None = None
            dispatched = 0
            for key in islice(keys, chunk_size):
                logger.debug("Enqueueing key '%s'.", key)
                pool.dispatch(
                    CopyJob(
                        key=key,
                        from_connector=report.from_connector,
                        to_connector=report.to_connector,
                    )
                )
                chunk_last_key = key
                dispatched += 1

            if dispatched < chunk_size:
                have_keys_left = False
            if chunk_last_key is None:
                break

            results = pool.drain_pending(on_wait=self._interrupted_drain_logger())
            failed = [result for result in results if not result.succeeded]
            if failed:
                raise JobFailedError(failed)

            self._checkpoint_store.save(report.from_connector, source, chunk_last_key)
            report.last_key = chunk_last_key
            report.chunks += 1
            report.skipped += sum(1 for result in results if result.skipped)
            report.copied += sum(1 for result in results if not result.skipped)
            logger.debug("Chunk of %d key(s) ending at '%s' completed.", dispatched, chunk_last_key)
            self._event_publisher.publish_checkpoint(report, dispatched)

    def _interrupted_drain_logger(self) -> Callable[[int], None]:
        """Build a drain callback that reports a pending interrupt once per chunk."""

        logged = False

        def on_wait(outstanding: int) -> None:
            nonlocal logged
            if logged or not self._cancellation.is_cancelled:
                return
            logged = True
            logger.info(
                "Interrupt requested; waiting for %d outstanding job(s) of the current chunk.",
                outstanding,
            )

        return on_wait

    def _publish_failure(self, report: CopyReport, exc: BaseException) -> None:
        try:
            self._event_publisher.publish_state(report, "failed", error=str(exc))
        except Exception:  # noqa: BLE001
            logger.warning("Failed to publish failure state.", exc_info=True)

    def _build_process_pool(
        self,
        work_handler: WorkHandler,
        worker_count: int,
        global_timeout: float,
    ) -> WorkerPool:
        return ProcessWorkerPool(
            work_handler=work_handler,
            worker_count=worker_count,
            global_timeout_seconds=global_timeout,
            start_method=self._settings.worker_start_method,
        )


__all__ = ["CopyService", "PoolFactory"]
