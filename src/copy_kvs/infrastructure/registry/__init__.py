"""Connector registry."""

from copy_kvs.infrastructure.registry.connector_registry import (
    DEFAULT_CONNECTOR_FACTORIES,
    ConnectorFactory,
    ConnectorRegistry,
)

__all__ = ["ConnectorFactory", "ConnectorRegistry", "DEFAULT_CONNECTOR_FACTORIES"]
