from __future__ import annotations

# Display board (Tkinter).
#
# Shows NOW UP plus the held / on-deck / list bands for the waiting room.
#
# Architecture:
# - MQTT callbacks run on a background thread managed by paho-mqtt.
# - Tkinter must be updated from the main UI thread.
# - Change events only say "something changed"; the UI thread re-fetches the
#   snapshot with a get_snapshot request and re-runs the shared segmentation.
#   Requests cannot be issued from the MQTT thread (the reply would arrive on
#   that same thread), so events are pushed into a Queue and polled via
#   `root.after(...)`.

import argparse
import queue
import time
import tkinter as tk
from tkinter import ttk
from typing import Any, cast

from .models import Snapshot, active_call
from .mqtt_client import MqttClient
from .mqtt_topics import DEFAULT_NAMESPACE, all_events, queue_requests, queue_responses
from .segments import compute_display_segments, provider_label

FLASH_MS = 650


class DisplayBoardApp:
    def __init__(self, *, mqtt_host: str, mqtt_port: int, namespace: str, refresh_ms: int = 250) -> None:
        self.mqtt_host = mqtt_host
        self.mqtt_port = mqtt_port
        self.namespace = namespace
        self.refresh_ms = refresh_ms

        self.root = tk.Tk()
        self.root.title("Queue Display")
        self.root.geometry("720x520")

        # NOW UP card
        self.now_up_var = tk.StringVar(value="-")
        self.now_up_sub_var = tk.StringVar(value="")
        self.now_up = ttk.Label(self.root, textvariable=self.now_up_var, font=("TkDefaultFont", 28, "bold"))
        self.now_up.pack(fill=cast(Any, tk.X), padx=10, pady=(10, 0))
        ttk.Label(self.root, textvariable=self.now_up_sub_var).pack(fill=cast(Any, tk.X), padx=10)

        # Header: window size / visible count
        self.info_var = tk.StringVar(value="Connecting...")
        ttk.Label(self.root, textvariable=self.info_var).pack(fill=cast(Any, tk.X), padx=10, pady=(10, 5))

        cols = ("band", "name", "provider")
        self.tree = ttk.Treeview(self.root, columns=cols, show="headings", height=14)
        self.tree.heading("band", text="")
        self.tree.heading("name", text="Name")
        self.tree.heading("provider", text="Waiting for")
        self.tree.column("band", width=110, anchor=cast(Any, tk.W))
        self.tree.column("name", width=300, anchor=cast(Any, tk.W))
        self.tree.column("provider", width=200, anchor=cast(Any, tk.W))
        self.tree.pack(fill=cast(Any, tk.BOTH), expand=True, padx=10, pady=10)

        # Change events from the MQTT thread. One pending event is enough:
        # every refresh reads the latest snapshot anyway.
        self._inbox: "queue.Queue[dict[str, Any]]" = queue.Queue(maxsize=1)

        self._client_id = f"display-{int(time.time())}"
        self._mqtt = MqttClient(client_id=self._client_id, host=mqtt_host, port=mqtt_port)
        self._reply_topic = queue_responses(self._client_id, namespace)

        self._last_called_at: float | None = None
        self._last_version: int | None = None

        self.root.protocol("WM_DELETE_WINDOW", self.close)

    def start(self) -> None:
        # If the broker isn't reachable, keep the window alive and show the error.
        try:
            self._mqtt.start()
            self._mqtt.subscribe(self._reply_topic)
            self._mqtt.subscribe(all_events(self.namespace))
            self._mqtt.add_handler(self._on_event, topic_filter=all_events(self.namespace))
            self._inbox.put_nowait({"type": "initial"})
        except Exception as e:
            self.info_var.set(f"MQTT connection failed: {e}")

        self.root.after(cast(Any, self.refresh_ms), self._drain_inbox)
        self.root.mainloop()

    def close(self) -> None:
        try:
            self._mqtt.stop()
        finally:
            self.root.destroy()

    # -------------------- MQTT thread callback --------------------

    def _on_event(self, topic: str, msg: dict[str, Any]) -> None:
        try:
            self._inbox.put_nowait(msg)
        except queue.Full:
            # A refresh is already pending.
            pass

    # -------------------- UI thread polling --------------------

    def _drain_inbox(self) -> None:
        try:
            self._inbox.get_nowait()
            pending = True
        except queue.Empty:
            pending = False

        if pending:
            try:
                resp = self._mqtt.request(
                    request_topic=queue_requests(self.namespace),
                    response_topic=self._reply_topic,
                    message={"type": "get_snapshot"},
                    timeout=2.0,
                )
            except TimeoutError:
                self.info_var.set("Manager not responding, showing last known list")
                # Retry on the next poll unless a newer event is already queued.
                try:
                    self._inbox.put_nowait({"type": "retry"})
                except queue.Full:
                    pass
            else:
                if resp.get("type") == "snapshot":
                    self._render(Snapshot.from_message(resp))

        self.root.after(cast(Any, self.refresh_ms), self._drain_inbox)

    def _render(self, snap: Snapshot) -> None:
        # Events can arrive out of order; never go back to an older snapshot.
        if self._last_version is not None and snap.version < self._last_version:
            return
        self._last_version = snap.version

        called = active_call(snap.entries)
        if called is None:
            self.now_up_var.set("-")
            self.now_up_sub_var.set("")
        else:
            self.now_up_var.set(called.display_name)
            who = provider_label(snap.config, called.called_by_provider_id)
            self.now_up_sub_var.set(f"with {who}" if who else "")
            if called.called_at != self._last_called_at:
                self._flash()
            self._last_called_at = called.called_at

        seg = compute_display_segments(snap.entries, snap.config)
        self.info_var.set(f"Up Next: {seg.highlight_window_size}  |  Showing: {seg.visible_count}")

        for item in self.tree.get_children():
            self.tree.delete(item)

        rows: list[tuple[str, str, str]] = []
        rows += [("WAITING", e.display_name, provider_label(snap.config, e.preferred_provider_id) or "") for e in seg.held]
        rows += [("ON DECK", e.display_name, provider_label(snap.config, e.preferred_provider_id) or "Any") for e in seg.highlight]
        rows += [("", e.display_name, provider_label(snap.config, e.preferred_provider_id) or "Any") for e in seg.overflow]

        if not rows:
            self.tree.insert("", cast(Any, tk.END), values=("", "No one in line", ""))
            return
        for r in rows:
            self.tree.insert("", cast(Any, tk.END), values=r)

    def _flash(self) -> None:
        self.now_up.configure(foreground="red")
        self.root.after(FLASH_MS, lambda: self.now_up.configure(foreground=""))


def main() -> None:
    parser = argparse.ArgumentParser(description="Display board (Tkinter + MQTT)")
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument("--refresh-ms", type=int, default=250)
    args = parser.parse_args()

    app = DisplayBoardApp(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        refresh_ms=args.refresh_ms,
    )
    app.start()


if __name__ == "__main__":
    main()
