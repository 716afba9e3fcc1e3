"""Shared head-before probing behavior for storage connectors."""

from __future__ import annotations

import logging
from abc import abstractmethod
from collections.abc import Iterator

from copy_kvs.config import HeadBefore
from copy_kvs.domain.errors import NotFoundError
from copy_kvs.domain.ports import StorageConnector

logger = logging.getLogger(__name__)


class ProbingStorageConnector(StorageConnector):
    """Base connector applying the head-before-get/put/delete switches.

    Subclasses implement the raw backend calls; the public capabilities decide
    whether an existence check runs first.
    """

    def __init__(self, head_before: HeadBefore | None = None) -> None:
        self._head_before = head_before or HeadBefore()

    @property
    def head_before(self) -> HeadBefore:
        return self._head_before

    def head(self, key: str) -> bool:
        """Return whether the key exists."""

        return self._head(key)

    def get(self, key: str) -> bytes:
        """Return object data, probing first when head-before-get is enabled."""

        if self._head_before.get and not self._head(key):
            raise NotFoundError(f"Object '{key}' does not exist.")
        return self._get(key)

    def put(self, key: str, data: bytes) -> None:
        """Store object data; with head-before-put an existing key is left alone."""

        if self._head_before.put and self._head(key):
            logger.debug("Object '%s' already exists, not storing it again.", key)
            return
        self._put(key, data)

    def delete(self, key: str) -> None:
        """Remove an object; with head-before-delete a missing key is a no-op."""

        if self._head_before.delete and not self._head(key):
            logger.debug("Object '%s' does not exist, nothing to delete.", key)
            return
        self._delete(key)

    def list_iterator(self, after_key: str | None = None) -> Iterator[str]:
        """Lazily yield keys in backend order, strictly after `after_key`."""

        return self._iter_keys(after_key or None)

    def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    def _head(self, key: str) -> bool: ...

    @abstractmethod
    def _get(self, key: str) -> bytes: ...

    @abstractmethod
    def _put(self, key: str, data: bytes) -> None: ...

    @abstractmethod
    def _delete(self, key: str) -> None: ...

    @abstractmethod
    def _iter_keys(self, after_key: str | None) -> Iterator[str]: ...


__all__ = ["ProbingStorageConnector"]
