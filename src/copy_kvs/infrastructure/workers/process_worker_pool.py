"""Fixed-size pool of worker processes fed from a bounded job queue."""

from __future__ import annotations

import logging
import multiprocessing
import queue
import signal
import time
from collections.abc import Callable
from multiprocessing.process import BaseProcess
from types import TracebackType
from typing import Any

from copy_kvs.config import ConnectorSettings
from copy_kvs.domain.errors import PoolHungError
from copy_kvs.domain.jobs import CopyJob, JobResult

_DEFAULT_POLL_INTERVAL_SECONDS = 0.5
_DEFAULT_JOIN_TIMEOUT_SECONDS = 30.0
_GLOBAL_TIMEOUT_MULTIPLIER = 3

logger = logging.getLogger(__name__)

WorkHandler = Callable[[CopyJob], JobResult]


def global_timeout_seconds(source: ConnectorSettings, destination: ConnectorSettings) -> int:
    """Return the pool stall timeout for a connector pair; 0 disables it."""

    if source.is_unlimited_timeout or destination.is_unlimited_timeout:
        return 0
    return _GLOBAL_TIMEOUT_MULTIPLIER * max(source.timeout, destination.timeout)


def _worker_main(work_handler: WorkHandler, tasks: Any, results: Any) -> None:
    """Run jobs one at a time until the shutdown sentinel arrives."""

    # Interrupts sent to the whole process group are handled by the coordinating
    # process, which lets in-flight jobs finish. Hard aborts use SIGKILL.
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
    try:
        while True:
            job = tasks.get()
            if job is None:
                break
            try:
                result = work_handler(job)
            except Exception as exc:  # noqa: BLE001
                result = JobResult(key=job.key, error=f"{type(exc).__name__}: {exc}")
            results.put(result)
    finally:
        close = getattr(work_handler, "close", None)
        if close is not None:
            close()


class ProcessWorkerPool:
    """Run copy jobs on N worker processes sharing no memory with the caller.

    Jobs travel over a bounded task queue and results come back over a result
    queue in completion order. When `global_timeout_seconds` is positive and
    no result arrives for that long while jobs are outstanding, the pool is
    declared hung.
    """

    def __init__(
        self,
        work_handler: WorkHandler,
        worker_count: int,
        global_timeout_seconds: float = 0,
        queue_size: int | None = None,
        start_method: str = "fork",
        poll_interval_seconds: float = _DEFAULT_POLL_INTERVAL_SECONDS,
        join_timeout_seconds: float = _DEFAULT_JOIN_TIMEOUT_SECONDS,
    ) -> None:
        self._work_handler = work_handler
        self._worker_count = max(1, worker_count)
        self._global_timeout_seconds = max(0.0, float(global_timeout_seconds))
        self._queue_size = max(1, queue_size if queue_size is not None else 2 * self._worker_count)
        self._context = multiprocessing.get_context(start_method)
        self._poll_interval_seconds = max(0.01, poll_interval_seconds)
        self._join_timeout_seconds = max(0.0, join_timeout_seconds)
        self._tasks: Any = None
        self._results: Any = None
        self._workers: list[BaseProcess] = []
        self._pending = 0

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def global_timeout_seconds(self) -> float:
        return self._global_timeout_seconds

    @property
    def pending(self) -> int:
        """Return the number of dispatched jobs without a collected result."""

        return self._pending

    @property
    def started(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Spawn the worker processes."""

        if self._workers:
            return
        self._tasks = self._context.Queue(maxsize=self._queue_size)
        self._results = self._context.Queue()
        for index in range(self._worker_count):
            process = self._context.Process(
                target=_worker_main,
                args=(self._work_handler, self._tasks, self._results),
                name=f"copy-kvs-worker-{index}",
                daemon=True,
            )
            process.start()
            self._workers.append(process)
        logger.debug("Started %d worker process(es).", self._worker_count)

    def dispatch(self, job: CopyJob) -> None:
        """Queue one job, blocking while the queue is full."""

        if not self._workers:
            raise RuntimeError("Worker pool is not started.")
        timeout = self._global_timeout_seconds or None
        try:
            self._tasks.put(job, timeout=timeout)
        except queue.Full as exc:
            raise PoolHungError(
                f"Job queue stayed full for {self._global_timeout_seconds:g} seconds; "
                "workers appear to be hung."
            ) from exc
        self._pending += 1

    def drain_pending(self, on_wait: Callable[[int], None] | None = None) -> list[JobResult]:
        """Collect a result for every outstanding job, in arrival order.

        `on_wait` is called with the outstanding job count each time the
        result queue stays empty for one poll interval.
        """

        results: list[JobResult] = []
        deadline = self._stall_deadline()
        while self._pending > 0:
            try:
                result = self._results.get(timeout=self._poll_interval_seconds)
            except queue.Empty:
                self._ensure_workers_alive()
                if deadline is not None and time.monotonic() >= deadline:
                    raise PoolHungError(
                        f"No job result received within {self._global_timeout_seconds:g} "
                        f"seconds; {self._pending} job(s) outstanding."
                    ) from None
                if on_wait is not None:
                    on_wait(self._pending)
                continue

            self._pending -= 1
            results.append(result)
            deadline = self._stall_deadline()
        return results

    def shutdown(self) -> None:
        """Ask workers to exit after their in-flight jobs and reap them."""

        if not self._workers:
            return
        for _ in self._workers:
            try:
                self._tasks.put(None, timeout=self._join_timeout_seconds or None)
            except queue.Full:
                break
        for process in self._workers:
            process.join(timeout=self._join_timeout_seconds or None)
            if process.is_alive():
                logger.warning("Worker process %s did not exit; killing it.", process.pid)
                process.kill()
                process.join()
        self._close_queues()
        logger.debug("Worker pool shut down.")

    def terminate(self) -> None:
        """Kill workers immediately without waiting for in-flight jobs."""

        if not self._workers:
            return
        for process in self._workers:
            if process.is_alive():
                process.kill()
        for process in self._workers:
            process.join(timeout=self._join_timeout_seconds or None)
        self._pending = 0
        self._close_queues(cancel_join=True)
        logger.debug("Worker pool terminated.")

    def __enter__(self) -> "ProcessWorkerPool":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_type is None and self._pending == 0:
            self.shutdown()
        else:
            self.terminate()

    def _stall_deadline(self) -> float | None:
        if not self._global_timeout_seconds:
            return None
        return time.monotonic() + self._global_timeout_seconds

    def _ensure_workers_alive(self) -> None:
        for process in self._workers:
            if process.exitcode is not None:
                raise PoolHungError(
                    f"Worker process {process.pid} exited unexpectedly with code "
                    f"{process.exitcode}; {self._pending} job(s) outstanding."
                )

    def _close_queues(self, cancel_join: bool = False) -> None:
        for channel in (self._tasks, self._results):
            if channel is None:
                continue
            if cancel_join:
                channel.cancel_join_thread()
            channel.close()
        self._tasks = None
        self._results = None
        self._workers = []


__all__ = ["ProcessWorkerPool", "WorkHandler", "global_timeout_seconds"]
