"""Small MQTT helper built on top of paho-mqtt.

Why this exists:
- paho-mqtt is callback-based.
- The kiosk and staff console want a *blocking request/response* call
  ("check me in", "call next") with a reply they can show right away.

Design:
- `MqttClient` manages connection + a background network loop.
- `request()` publishes a JSON message and waits for a correlated response.
- Subscriptions are remembered and re-issued on every (re)connect, so a
  display board that loses the broker for a moment keeps receiving events.

Handlers run on paho's network thread. They must not call `request()`
themselves (the reply would be delivered on the same, blocked thread);
hand work to another thread instead, like the display board does.
"""

from __future__ import annotations

import json
import queue
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import paho.mqtt.client as mqtt


MessageHandler = Callable[[str, dict[str, Any]], None]


@dataclass(frozen=True)
class PendingResponse:
    corr_id: str
    q: "queue.Queue[dict[str, Any]]"


@dataclass(frozen=True)
class _Route:
    topic_filter: str | None
    handler: MessageHandler


class MqttClient:
    """Thin wrapper around paho-mqtt with JSON convenience APIs."""

    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        keepalive: int = 30,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive

        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
        )
        self._client.on_message = self._on_message
        self._client.on_connect = self._on_connect

        self._routes: list[_Route] = []
        self._subscriptions: set[str] = set()

        # corr_id -> queue used by request()
        self._pending: dict[str, PendingResponse] = {}
        self._lock = threading.Lock()

        self._started = False

    def start(self) -> None:
        """Connect and start the background network loop."""
        if self._started:
            return
        self._client.connect(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        self._started = True

    def stop(self) -> None:
        """Stop and disconnect."""
        if not self._started:
            return
        self._client.loop_stop()
        self._client.disconnect()
        self._started = False

    def add_handler(self, handler: MessageHandler, *, topic_filter: str | None = None) -> None:
        """Register a handler, optionally only for topics matching `topic_filter` (MQTT wildcards allowed)."""
        self._routes.append(_Route(topic_filter=topic_filter, handler=handler))

    def subscribe(self, topic: str) -> None:
        with self._lock:
            self._subscriptions.add(topic)
        self._client.subscribe(topic, qos=0)

    def publish(self, topic: str, message: dict[str, Any]) -> None:
        payload = json.dumps(message, separators=(",", ":")).encode("utf-8")
        self._client.publish(topic, payload=payload, qos=0)

    def request(
        self,
        *,
        request_topic: str,
        response_topic: str,
        message: dict[str, Any],
        timeout: float = 5.0,
    ) -> dict[str, Any]:
        """Publish a message and wait for a correlated response.

        The caller must ensure we are subscribed to `response_topic`.
        """
        corr_id = str(uuid.uuid4())
        msg = dict(message)
        msg["corr_id"] = corr_id
        msg["reply_to"] = response_topic

        q: "queue.Queue[dict[str, Any]]" = queue.Queue(maxsize=1)
        pending = PendingResponse(corr_id=corr_id, q=q)

        with self._lock:
            self._pending[corr_id] = pending

        self.publish(request_topic, msg)

        try:
            return q.get(timeout=timeout)
        except queue.Empty as e:
            raise TimeoutError(f"No response for corr_id={corr_id}") from e
        finally:
            with self._lock:
                self._pending.pop(corr_id, None)

    # -------------------- internal callbacks --------------------

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        with self._lock:
            topics = sorted(self._subscriptions)
        for t in topics:
            client.subscribe(t, qos=0)

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        # Malformed payloads are dropped; every publisher here sends JSON objects.
        try:
            raw = msg.payload
            payload = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
            data = json.loads(payload)
        except (UnicodeDecodeError, ValueError):
            return
        if not isinstance(data, dict):
            return

        # Replies to our own request() calls never reach the handlers.
        corr_id = data.get("corr_id")
        if isinstance(corr_id, str) and "reply_to" not in data:
            with self._lock:
                pending = self._pending.get(corr_id)
            if pending is not None:
                try:
                    pending.q.put_nowait(data)
                except queue.Full:
                    pass
                return

        for route in list(self._routes):
            if route.topic_filter is not None and not mqtt.topic_matches_sub(route.topic_filter, msg.topic):
                continue
            try:
                route.handler(msg.topic, data)
            except Exception as e:
                # Keep the network loop alive; one bad message must not stop the client.
                print(f"[mqtt {self.client_id}] handler failed on {msg.topic}: {e!r}")
