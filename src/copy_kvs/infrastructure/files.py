"""Small filesystem helpers shared by file-backed adapters."""

from __future__ import annotations

import os
import tempfile
from contextlib import suppress
from pathlib import Path

# Never produced by percent-encoding, so it cannot collide with an encoded key.
TEMP_FILE_PREFIX = "%tmp-"


def atomic_write_bytes(path: str | Path, data: bytes) -> None:
    """Replace `path` with `data` so readers never observe a partial file."""

    target = Path(path)
    fd, temp_name = tempfile.mkstemp(prefix=TEMP_FILE_PREFIX, dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, target)
    except BaseException:
        with suppress(FileNotFoundError):
            os.unlink(temp_name)
        raise


__all__ = ["TEMP_FILE_PREFIX", "atomic_write_bytes"]
