from __future__ import annotations

# Kiosk client.
#
# The self-service kiosk is a short-lived process:
# - connect to broker
# - publish a check_in request
# - wait for the manager's reply
# - print the result and exit
#
# No PIN is needed to check in.

import argparse
import time

from .mqtt_client import MqttClient
from .mqtt_topics import DEFAULT_NAMESPACE, queue_requests, queue_responses


def check_in(
    *,
    mqtt_host: str,
    mqtt_port: int,
    namespace: str,
    first_name: str,
    last_initial: str,
    preferred_provider_id: str | None = None,
) -> dict:
    client_id = f"kiosk-{int(time.time() * 1000)}"
    mqtt = MqttClient(client_id=client_id, host=mqtt_host, port=mqtt_port)
    mqtt.start()

    reply_topic = queue_responses(client_id, namespace)
    mqtt.subscribe(reply_topic)

    try:
        return mqtt.request(
            request_topic=queue_requests(namespace),
            response_topic=reply_topic,
            message={
                "type": "check_in",
                "first_name": first_name,
                "last_initial": last_initial,
                "preferred_provider_id": preferred_provider_id,
            },
            timeout=5.0,
        )
    finally:
        mqtt.stop()


def main() -> None:
    parser = argparse.ArgumentParser(description="Kiosk check-in (MQTT)")
    parser.add_argument("--first-name", required=True)
    parser.add_argument("--last-initial", required=True)
    parser.add_argument("--provider", default=None, help="preferred provider id (default: any)")
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    args = parser.parse_args()

    resp = check_in(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        first_name=args.first_name,
        last_initial=args.last_initial,
        preferred_provider_id=args.provider,
    )
    if resp.get("type") == "ok":
        print(f"[kiosk] {args.first_name} checked in (entry {resp.get('entry_id')})")
    elif resp.get("code") == "invalid_input":
        print(f"[kiosk] please check your details: {resp.get('message')}")
    else:
        print(f"[kiosk] error: {resp}")


if __name__ == "__main__":
    main()
