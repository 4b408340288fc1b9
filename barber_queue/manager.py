from __future__ import annotations

# The queue manager process is the single writer for one shop.
#
# This file contains the transport layer only:
# 1) `MqttQueueManagerService` maps request messages onto `QueueService`
#    calls and replies with the result
# 2) `main()` wires store + authorizer + notifier + MQTT together
#
# paho-mqtt delivers messages on one network thread, so commands for a shop
# are already processed one at a time in arrival order. The store's version
# check still guards against a second manager pointed at the same state.

import argparse
import time
from typing import Any, Callable, TYPE_CHECKING

from .errors import ErrorResponse
from .service import QueueService

if TYPE_CHECKING:
    from .mqtt_client import MqttClient


class BadRequest(Exception):
    pass


def _field(msg: dict[str, Any], name: str) -> str:
    value = msg.get(name)
    if not isinstance(value, str) or not value:
        raise BadRequest(f"{name} required")
    return value


def _optional(msg: dict[str, Any], name: str) -> str | None:
    value = msg.get(name)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise BadRequest(f"{name} must be a string")
    return value


class MqttQueueManagerService:
    """MQTT adapter around the QueueService."""

    def __init__(self, *, mqtt: MqttClient, service: QueueService, namespace: str) -> None:
        # Local imports so unit tests can drive the adapter with a fake client.
        from .mqtt_topics import queue_requests

        self.mqtt = mqtt
        self.service = service
        self.namespace = namespace
        self._requests_topic = queue_requests(namespace)

        self._handlers: dict[str, Callable[[dict[str, Any], str | None], dict[str, Any]]] = {
            "check_in": self._check_in,
            "accept": lambda m, c: self.service.accept(_field(m, "entry_id"), _field(m, "provider_id"), credential=c).to_message(),
            "call_next": lambda m, c: self.service.call_next(_field(m, "provider_id"), credential=c).to_message(),
            "skip": lambda m, c: self.service.skip(_field(m, "entry_id"), credential=c).to_message(),
            "undo_skip": lambda m, c: self.service.undo_skip(_field(m, "entry_id"), credential=c).to_message(),
            "recall": lambda m, c: self.service.recall(credential=c).to_message(),
            "mark_served": lambda m, c: self.service.mark_served(_field(m, "entry_id"), credential=c).to_message(),
            "mark_no_show": lambda m, c: self.service.mark_no_show(_field(m, "entry_id"), credential=c).to_message(),
            "assign_preferred_provider": lambda m, c: self.service.assign_preferred_provider(
                _field(m, "entry_id"), _optional(m, "provider_id"), credential=c
            ).to_message(),
            "set_providers": self._set_providers,
            "set_visible_count": lambda m, c: self.service.set_visible_count(m.get("visible_count"), credential=c).to_message(),
            "login": lambda m, c: self.service.login(c).to_message(),
            "get_snapshot": lambda m, c: self.service.snapshot().to_message(),
        }

    def start(self) -> None:
        self.mqtt.subscribe(self._requests_topic)
        self.mqtt.add_handler(self._handle_message, topic_filter=self._requests_topic)

    def _reply(self, reply_to: str, corr_id: str | None, message: dict[str, Any]) -> None:
        msg = dict(message)
        if corr_id is not None:
            msg["corr_id"] = corr_id
        self.mqtt.publish(reply_to, msg)

    def _check_in(self, msg: dict[str, Any], credential: str | None) -> dict[str, Any]:
        first = msg.get("first_name", "")
        initial = msg.get("last_initial", "")
        if not isinstance(first, str) or not isinstance(initial, str):
            raise BadRequest("first_name and last_initial must be strings")
        return self.service.check_in(first, initial, _optional(msg, "preferred_provider_id")).to_message()

    def _set_providers(self, msg: dict[str, Any], credential: str | None) -> dict[str, Any]:
        providers = msg.get("providers")
        if not isinstance(providers, list) or not all(isinstance(p, dict) for p in providers):
            raise BadRequest("providers must be a list of objects")
        return self.service.set_providers(providers, credential=credential).to_message()

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        corr_id = msg.get("corr_id") if isinstance(msg.get("corr_id"), str) else None
        reply_to = msg.get("reply_to") if isinstance(msg.get("reply_to"), str) else None
        if not reply_to:
            return

        mtype = msg.get("type")
        handler = self._handlers.get(mtype) if isinstance(mtype, str) else None
        if handler is None:
            self._reply(reply_to, corr_id, ErrorResponse("bad_request", f"unknown type {mtype!r}").to_message())
            return

        credential = msg.get("pin") if isinstance(msg.get("pin"), str) else None
        try:
            response = handler(msg, credential)
        except BadRequest as e:
            response = ErrorResponse("bad_request", str(e)).to_message()
        except Exception as e:
            # Keep serving; the requester still gets an answer instead of a timeout.
            print(f"[manager] {mtype} failed: {e!r}")
            response = ErrorResponse("internal_error", str(e)).to_message()
        self._reply(reply_to, corr_id, response)


def build_service(
    *,
    state_file: str | None,
    providers: list[str],
    visible_count: int,
    staff_pin: str | None,
    admin_pin: str | None,
    notifier=None,
    shop_id: str = "main",
) -> QueueService:
    from .auth import PinAuthorizer
    from .models import ShopConfig
    from .store import InMemoryStore, JsonFileStore, parse_provider_arg

    config = ShopConfig(providers=tuple(parse_provider_arg(p) for p in providers), visible_count=visible_count)
    store = JsonFileStore(state_file, default_config=config) if state_file else InMemoryStore(default_config=config)
    return QueueService(
        store=store,
        authorizer=PinAuthorizer.from_env(staff_pin=staff_pin, admin_pin=admin_pin),
        notifier=notifier,
        shop_id=shop_id,
    )


def add_manager_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--staff-pin", default=None, help="PIN for staff (or QUEUE_STAFF_PIN)")
    parser.add_argument("--admin-pin", default=None, help="PIN for admins (or QUEUE_ADMIN_PIN)")
    parser.add_argument("--state-file", default=None, help="JSON file to keep the queue across restarts")
    parser.add_argument("--visible-count", type=int, default=10)
    parser.add_argument(
        "--provider",
        action="append",
        default=[],
        metavar="ID=NAME[:off]",
        help="initial roster entry (repeatable)",
    )


def main() -> None:
    # Import MQTT dependencies only when running the real service.
    from .mqtt_client import MqttClient
    from .mqtt_topics import DEFAULT_NAMESPACE
    from .notify import MqttNotifier

    parser = argparse.ArgumentParser(description="Queue Manager (MQTT)")
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    add_manager_args(parser)
    args = parser.parse_args()

    mqtt_client = MqttClient(client_id=f"manager-{int(time.time())}", host=args.mqtt_host, port=args.mqtt_port)

    service = build_service(
        state_file=args.state_file,
        providers=args.provider,
        visible_count=args.visible_count,
        staff_pin=args.staff_pin,
        admin_pin=args.admin_pin,
        notifier=MqttNotifier(mqtt=mqtt_client, namespace=args.namespace),
    )
    mqtt_client.start()
    adapter = MqttQueueManagerService(mqtt=mqtt_client, service=service, namespace=args.namespace)
    adapter.start()

    snap = service.snapshot()
    print(
        f"[manager] connected to MQTT {args.mqtt_host}:{args.mqtt_port}, namespace={args.namespace}, "
        f"providers={len(snap.config.providers)}, entries={len(snap.entries)}"
    )

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        mqtt_client.stop()


if __name__ == "__main__":
    main()
