"""File-based run lock."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import TracebackType

from copy_kvs.domain.errors import AlreadyRunningError, ConfigurationError

logger = logging.getLogger(__name__)


class FileRunLock:
    """Mutual exclusion between copy runs sharing one configuration.

    The lock file's existence is the signal; it holds the owning process id
    for operators. A stale lock is never removed automatically.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._held = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """Create the lock file or fail when another run holds it."""

        try:
            fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError as exc:
            raise AlreadyRunningError(f"Lock file '{self._path}' already exists.") from exc
        except OSError as exc:
            raise ConfigurationError(f"Unable to create lock file '{self._path}': {exc}") from exc

        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(os.getpid()))
        self._held = True
        logger.debug("Created lock file '%s'.", self._path)

    def release(self) -> None:
        """Remove a lock this instance holds; calling it again is a no-op."""

        if not self._held:
            return
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Unable to remove lock file '%s'.", self._path, exc_info=True)
            return
        self._held = False
        logger.debug("Removed lock file '%s'.", self._path)

    def __enter__(self) -> "FileRunLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.release()


__all__ = ["FileRunLock"]
