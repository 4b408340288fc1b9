from __future__ import annotations

# Staff console client.
#
# Sends one staff command to the manager and prints the outcome:
#
#   python -m barber_queue.staff --pin 1234 call-next --provider P1
#   python -m barber_queue.staff --pin 1234 skip --entry E1
#   python -m barber_queue.staff --pin 1234 show
#
# `show` fetches the snapshot and prints the same bands the display board
# shows, computed locally with the shared segmentation.

import argparse
import time
from typing import Any

from .models import Snapshot, active_call
from .mqtt_client import MqttClient
from .mqtt_topics import DEFAULT_NAMESPACE, queue_requests, queue_responses
from .segments import compute_display_segments, held_by_provider, provider_label, up_next

# Benign "nothing to do" outcomes, reported without the word "error".
_NOTHING_TO_DO = {"empty_queue", "no_active_call"}


def send_command(*, mqtt_host: str, mqtt_port: int, namespace: str, message: dict[str, Any]) -> dict[str, Any]:
    client_id = f"staff-{int(time.time() * 1000)}"
    mqtt = MqttClient(client_id=client_id, host=mqtt_host, port=mqtt_port)
    mqtt.start()

    reply_topic = queue_responses(client_id, namespace)
    mqtt.subscribe(reply_topic)
    try:
        return mqtt.request(
            request_topic=queue_requests(namespace),
            response_topic=reply_topic,
            message=message,
            timeout=5.0,
        )
    finally:
        mqtt.stop()


def build_message(args: argparse.Namespace) -> dict[str, Any]:
    """Translate parsed CLI arguments into a request message."""
    cmd = args.cmd.replace("-", "_")
    msg: dict[str, Any] = {"type": cmd, "pin": args.pin}

    if cmd == "show":
        msg["type"] = "get_snapshot"
    elif cmd in {"accept", "skip", "undo_skip", "mark_served", "mark_no_show", "assign"}:
        msg["entry_id"] = args.entry
    if cmd in {"accept", "call_next"}:
        msg["provider_id"] = args.provider
    if cmd == "assign":
        msg["type"] = "assign_preferred_provider"
        msg["provider_id"] = args.provider
    if cmd == "set_visible_count":
        msg["visible_count"] = args.count
    if cmd == "set_providers":
        from .store import parse_provider_arg

        msg["providers"] = [parse_provider_arg(p).to_dict() for p in args.provider]
    return msg


def render_board(snapshot: Snapshot) -> list[str]:
    seg = compute_display_segments(snapshot.entries, snapshot.config)
    lines: list[str] = []

    called = active_call(snapshot.entries)
    if called is not None:
        who = provider_label(snapshot.config, called.called_by_provider_id)
        lines.append(f"NOW UP: {called.display_name}" + (f" with {who}" if who else ""))
    else:
        lines.append("NOW UP: -")

    nxt = up_next(snapshot.entries)
    lines.append(f"UP NEXT: {nxt.display_name} [{nxt.id}]" if nxt else "UP NEXT: -")

    for pid, entries in held_by_provider(seg).items():
        names = ", ".join(f"{e.display_name} [{e.id}]" for e in entries)
        lines.append(f"WAITING FOR {provider_label(snapshot.config, pid)}: {names}")

    lines.append(f"ON DECK ({seg.highlight_window_size} of {seg.provider_count} providers):")
    lines.extend(f"  {e.display_name} [{e.id}]" for e in seg.highlight)
    if seg.overflow:
        lines.append("LIST:")
        lines.extend(f"  {e.display_name} [{e.id}]" for e in seg.overflow)
    return lines


def main() -> None:
    parser = argparse.ArgumentParser(description="Staff console (MQTT)")
    parser.add_argument("--pin", required=True)
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("login", help="check the PIN and print the role")
    sub.add_parser("show", help="print the current board")
    sub.add_parser("recall", help="re-announce the current call")

    for name in ("skip", "undo-skip", "mark-served", "mark-no-show"):
        p = sub.add_parser(name)
        p.add_argument("--entry", required=True)

    p_accept = sub.add_parser("accept", help="call a specific client for a provider")
    p_accept.add_argument("--entry", required=True)
    p_accept.add_argument("--provider", required=True)

    p_next = sub.add_parser("call-next", help="call whoever is next for a provider")
    p_next.add_argument("--provider", required=True)

    p_assign = sub.add_parser("assign", help="change a waiting client's preferred provider")
    p_assign.add_argument("--entry", required=True)
    p_assign.add_argument("--provider", default=None, help="omit for any provider")

    p_vis = sub.add_parser("set-visible-count")
    p_vis.add_argument("--count", type=int, required=True)

    p_roster = sub.add_parser("set-providers", help="replace the whole provider roster")
    p_roster.add_argument("--provider", action="append", default=[], metavar="ID=NAME[:off]")

    args = parser.parse_args()

    resp = send_command(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        message=build_message(args),
    )

    if resp.get("type") == "snapshot":
        for line in render_board(Snapshot.from_message(resp)):
            print(line)
    elif resp.get("type") == "ok":
        detail = resp.get("role") or resp.get("entry_id") or ""
        print(f"[staff] {args.cmd}: ok {detail}".rstrip())
    elif resp.get("code") in _NOTHING_TO_DO:
        print(f"[staff] {args.cmd}: {resp.get('message')}")
    else:
        print(f"[staff] {args.cmd} failed ({resp.get('code')}): {resp.get('message')}")


if __name__ == "__main__":
    main()
