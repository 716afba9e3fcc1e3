"""Copy event publisher implementations."""

from copy_kvs.infrastructure.events.mqtt_copy_event_publisher import MqttCopyEventPublisher
from copy_kvs.infrastructure.events.noop_copy_event_publisher import NoopCopyEventPublisher

__all__ = ["MqttCopyEventPublisher", "NoopCopyEventPublisher"]
