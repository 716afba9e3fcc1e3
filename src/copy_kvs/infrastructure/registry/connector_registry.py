"""Lazily built, per-process cache of storage connectors."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping

from copy_kvs.config import ConnectorSettings, CopySettings
from copy_kvs.domain.backend_kinds import BackendKind, parse_backend_kind
from copy_kvs.domain.errors import ConfigurationError, ResourceExhaustionError
from copy_kvs.domain.ports import StorageConnector
from copy_kvs.infrastructure.connectors import (
    GridFSStorageConnector,
    LocalDirectoryStorageConnector,
    PostgresBlobStorageConnector,
    S3StorageConnector,
)

logger = logging.getLogger(__name__)

ConnectorFactory = Callable[[str, ConnectorSettings], StorageConnector]

DEFAULT_CONNECTOR_FACTORIES: Mapping[BackendKind, ConnectorFactory] = {
    BackendKind.AMAZON_S3: S3StorageConnector.from_settings,
    BackendKind.GRIDFS: GridFSStorageConnector.from_settings,
    BackendKind.POSTGRES_BLOB: PostgresBlobStorageConnector.from_settings,
    BackendKind.LOCAL_DIRECTORY: LocalDirectoryStorageConnector.from_settings,
}


class ConnectorRegistry:
    """Build one connector instance per (connector name, process id) pair.

    Backend connections are never shared between processes: a worker that
    inherits the registry through fork still builds its own instances because
    its process id differs. The instance ceiling is a sanity check against
    runaway process spawning, not an operating limit.
    """

    def __init__(
        self,
        settings: CopySettings,
        factories: Mapping[BackendKind, ConnectorFactory] | None = None,
        max_instances: int | None = None,
    ) -> None:
        self._settings = settings
        self._factories = dict(DEFAULT_CONNECTOR_FACTORIES if factories is None else factories)
        self._max_instances = (
            settings.max_connector_instances if max_instances is None else max(1, max_instances)
        )
        self._instances: dict[tuple[str, int], StorageConnector] = {}

    @property
    def instance_count(self) -> int:
        """Return the number of cached connector instances."""

        return len(self._instances)

    def connector_for(self, connector_name: str, process_id: int | None = None) -> StorageConnector:
        """Return the cached connector for a process, building it on first use."""

        pid = os.getpid() if process_id is None else process_id
        cache_key = (connector_name, pid)
        connector = self._instances.get(cache_key)
        if connector is not None:
            return connector

        if len(self._instances) >= self._max_instances:
            raise ResourceExhaustionError(
                f"Too many storage connectors initialized ({len(self._instances)}, "
                f"limit {self._max_instances}); refusing to build '{connector_name}' "
                f"for PID {pid}."
            )

        connector = self._build(connector_name)
        self._instances[cache_key] = connector
        logger.debug("Initialized connector '%s' for PID %d.", connector_name, pid)
        return connector

    def close_process(self, process_id: int | None = None) -> None:
        """Close and forget every connector built for one process."""

        pid = os.getpid() if process_id is None else process_id
        for cache_key in [key for key in self._instances if key[1] == pid]:
            connector = self._instances.pop(cache_key)
            close = getattr(connector, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception:  # noqa: BLE001
                logger.warning("Failed to close connector '%s'.", cache_key[0], exc_info=True)

    def __getstate__(self) -> dict[str, object]:
        # Live connections never cross a process boundary.
        state = self.__dict__.copy()
        state["_instances"] = {}
        return state

    def _build(self, connector_name: str) -> StorageConnector:
        connector_settings = self._effective_settings(connector_name)
        if not connector_settings.type:
            raise ConfigurationError(f"Connector type for connector '{connector_name}' is not set.")

        kind = parse_backend_kind(connector_settings.type, connector_name)
        factory = self._factories.get(kind)
        if factory is None:
            raise ConfigurationError(
                f"Unconfigured connector type '{connector_settings.type}' "
                f"for connector '{connector_name}'."
            )
        return factory(connector_name, connector_settings)

    def _effective_settings(self, connector_name: str) -> ConnectorSettings:
        """Resolve connector settings, letting the global overwrite win over head-before-put."""

        connector_settings = self._settings.connector(connector_name)
        if connector_settings.head_before.put and self._settings.overwrite:
            logger.warning(
                "Both 'overwrite' and 'head_before.put' are enabled for connector '%s', "
                "disabling 'head_before.put'.",
                connector_name,
            )
            head_before = connector_settings.head_before.model_copy(update={"put": False})
            connector_settings = connector_settings.model_copy(update={"head_before": head_before})
        return connector_settings


__all__ = ["ConnectorFactory", "ConnectorRegistry", "DEFAULT_CONNECTOR_FACTORIES"]
