"""Checkpoint store implementations."""

from copy_kvs.infrastructure.checkpoints.file_checkpoint_store import FileCheckpointStore

__all__ = ["FileCheckpointStore"]
