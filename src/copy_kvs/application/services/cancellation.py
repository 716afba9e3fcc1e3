"""Cooperative cancellation for copy runs."""

from __future__ import annotations

import threading


class CancellationToken:
    """Flag an orchestrator polls between chunks and while draining.

    Setting it never interrupts in-flight work; the run stops dispatching,
    lets the outstanding chunk finish and then goes through normal cleanup.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation; the first reason wins."""

        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()


__all__ = ["CancellationToken"]
