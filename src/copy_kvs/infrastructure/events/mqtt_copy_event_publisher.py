"""MQTT copy event publisher."""

from __future__ import annotations

import json
import os
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import paho.mqtt.client as mqtt  # type: ignore[import-untyped]

from copy_kvs.domain.jobs import CopyReport
from copy_kvs.domain.ports import CopyEventPublisher

MqttClientFactory = Callable[[str], Any]


class MqttCopyEventPublisher(CopyEventPublisher):
    """Publish copy run state and checkpoint events to MQTT topics.

    Topics are `<prefix>/<from>/<to>/state` and `<prefix>/<from>/<to>/checkpoint`.
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int = 1883,
        topic_prefix: str = "copy-kvs",
        qos: int = 0,
        username: str | None = None,
        password: str | None = None,
        client_factory: MqttClientFactory | None = None,
        connect_attempts: int = 20,
    ) -> None:
        if not broker_host.strip():
            raise ValueError("broker_host cannot be empty.")
        if qos not in {0, 1, 2}:
            raise ValueError("qos must be one of 0, 1, 2.")

        self._topic_prefix = topic_prefix.strip().strip("/")
        self._qos = qos

        client = (client_factory or _build_default_client)(f"copy-kvs-{os.getpid()}")
        if username is not None:
            client.username_pw_set(username=username, password=password)
        self._connect_with_retry(
            client=client,
            broker_host=broker_host,
            broker_port=broker_port,
            max_attempts=max(1, connect_attempts),
        )
        self._client = client
        self._loop_started = False

    def publish_state(self, report: CopyReport, state: str, error: str | None = None) -> None:
        payload: dict[str, object] = {
            "eventType": "state",
            "timestamp": self._timestamp(),
            "state": state,
            **self._report_payload(report),
        }
        if error is not None:
            payload["error"] = error
        self._publish(self._topic(report, "state"), payload)

    def publish_checkpoint(self, report: CopyReport, chunk_size: int) -> None:
        payload: dict[str, object] = {
            "eventType": "checkpoint",
            "timestamp": self._timestamp(),
            "chunkSize": chunk_size,
            **self._report_payload(report),
        }
        self._publish(self._topic(report, "checkpoint"), payload)

    def close(self) -> None:
        if self._loop_started:
            self._client.loop_stop()
            self._loop_started = False
        self._client.disconnect()

    def _publish(self, topic: str, payload: dict[str, object]) -> None:
        # The network thread starts on first use, after any worker processes are forked.
        if not self._loop_started:
            self._client.loop_start()
            self._loop_started = True
        message = json.dumps(payload, separators=(",", ":"))
        self._client.publish(topic, message, self._qos)

    def _topic(self, report: CopyReport, suffix: str) -> str:
        return f"{self._topic_prefix}/{report.from_connector}/{report.to_connector}/{suffix}"

    def _report_payload(self, report: CopyReport) -> dict[str, object]:
        return {
            "fromConnector": report.from_connector,
            "toConnector": report.to_connector,
            "resumedFrom": report.resumed_from,
            "lastKey": report.last_key,
            "chunks": report.chunks,
            "copied": report.copied,
            "skipped": report.skipped,
            "cancelled": report.cancelled,
        }

    def _timestamp(self) -> str:
        return datetime.now(tz=UTC).isoformat()

    def _connect_with_retry(
        self,
        client: Any,
        broker_host: str,
        broker_port: int,
        max_attempts: int,
    ) -> None:
        """Connect to MQTT broker with bounded retry/backoff."""

        delay_seconds = 0.5
        last_error: Exception | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                client.connect(host=broker_host, port=broker_port, keepalive=60)
                return
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                if attempt == max_attempts:
                    break
                time.sleep(delay_seconds)
                delay_seconds = min(3.0, delay_seconds * 1.5)

        raise RuntimeError(
            f"Failed to connect to MQTT broker {broker_host}:{broker_port} "
            f"after {max_attempts} attempts."
        ) from last_error


def _build_default_client(client_id: str) -> Any:
    try:
        return mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
        )
    except (AttributeError, TypeError):
        return mqtt.Client(client_id=client_id)


__all__ = ["MqttCopyEventPublisher"]
