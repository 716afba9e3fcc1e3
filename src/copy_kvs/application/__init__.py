"""Application layer public API."""

from copy_kvs.application.services import CancellationToken, CopyJobHandler, CopyService

__all__ = ["CancellationToken", "CopyJobHandler", "CopyService"]
