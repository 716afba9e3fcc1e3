"""Application bootstrap/wiring."""

import logging
from collections.abc import Mapping

from copy_kvs.application.services import CancellationToken, CopyService
from copy_kvs.config import CopySettings
from copy_kvs.domain.backend_kinds import BackendKind
from copy_kvs.domain.ports import CopyEventPublisher
from copy_kvs.infrastructure.checkpoints import FileCheckpointStore
from copy_kvs.infrastructure.events import MqttCopyEventPublisher, NoopCopyEventPublisher
from copy_kvs.infrastructure.locking import FileRunLock
from copy_kvs.infrastructure.registry import ConnectorFactory, ConnectorRegistry

logger = logging.getLogger(__name__)


def _build_event_publisher(settings: CopySettings) -> CopyEventPublisher:
    if not settings.events_mqtt_enabled:
        return NoopCopyEventPublisher()
    if settings.events_mqtt_host is None:
        raise ValueError(
            "COPY_KVS_EVENTS_MQTT_HOST is required when COPY_KVS_EVENTS_MQTT_ENABLED=true."
        )
    try:
        return MqttCopyEventPublisher(
            broker_host=settings.events_mqtt_host,
            broker_port=settings.events_mqtt_port,
            topic_prefix=settings.events_mqtt_topic_prefix,
            qos=settings.events_mqtt_qos,
            username=settings.events_mqtt_username,
            password=settings.events_mqtt_password,
        )
    except RuntimeError as exc:
        logger.warning("%s Falling back to noop copy events.", exc)
        return NoopCopyEventPublisher()


def build_copy_service(
    settings: CopySettings,
    cancellation: CancellationToken | None = None,
    connector_factories: Mapping[BackendKind, ConnectorFactory] | None = None,
) -> CopyService:
    """Compose service graph."""

    return CopyService(
        settings=settings,
        registry=ConnectorRegistry(settings, factories=connector_factories),
        checkpoint_store=FileCheckpointStore(),
        run_lock=FileRunLock(settings.lock_file),
        event_publisher=_build_event_publisher(settings),
        cancellation=cancellation,
    )


__all__ = ["build_copy_service"]
