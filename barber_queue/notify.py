from __future__ import annotations

# Change notification.
#
# After a successful write the service tells every viewer "something changed";
# viewers re-fetch the snapshot themselves. Delivery is fire-and-forget, so a
# dropped event only means a viewer shows the last known state a bit longer.

import time
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .mqtt_client import MqttClient


class Notifier(Protocol):
    def entries_changed(self, shop_id: str, version: int) -> None: ...

    def config_changed(self, shop_id: str, version: int) -> None: ...


class NullNotifier:
    def entries_changed(self, shop_id: str, version: int) -> None:
        pass

    def config_changed(self, shop_id: str, version: int) -> None:
        pass


class RecordingNotifier:
    """Keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, int]] = []

    def entries_changed(self, shop_id: str, version: int) -> None:
        self.events.append(("entries_changed", shop_id, version))

    def config_changed(self, shop_id: str, version: int) -> None:
        self.events.append(("config_changed", shop_id, version))


class MqttNotifier:
    def __init__(self, *, mqtt: MqttClient, namespace: str) -> None:
        # Local import so tests can build the service without paho-mqtt.
        from .mqtt_topics import config_events, entries_events

        self.mqtt = mqtt
        self._entries_topic = entries_events(namespace)
        self._config_topic = config_events(namespace)

    def entries_changed(self, shop_id: str, version: int) -> None:
        self._publish(self._entries_topic, "entries_changed", shop_id, version)

    def config_changed(self, shop_id: str, version: int) -> None:
        self._publish(self._config_topic, "config_changed", shop_id, version)

    def _publish(self, topic: str, kind: str, shop_id: str, version: int) -> None:
        try:
            self.mqtt.publish(topic, {"type": kind, "shop_id": shop_id, "version": version, "ts": time.time()})
        except Exception as e:
            # The write already happened; viewers catch up on the next event.
            print(f"[notify] failed to publish {kind} v{version}: {e}")
