from __future__ import annotations

# Single-command runner.
#
# Starts the queue manager as a child process and, with `--gui`, opens the
# display board in this (parent) process. Kiosk and staff console are
# short-lived commands run separately against the same namespace.

import argparse
import os
import signal
import subprocess
import sys
import time
from dataclasses import dataclass

from .mqtt_topics import DEFAULT_NAMESPACE


@dataclass
class Child:
    name: str
    proc: subprocess.Popen


def run_all(
    *,
    mqtt_host: str,
    mqtt_port: int,
    namespace: str,
    providers: list[str],
    visible_count: int,
    staff_pin: str | None,
    admin_pin: str | None,
    state_file: str | None,
    show_gui: bool,
) -> None:
    if visible_count < 0:
        raise ValueError("visible_count must be >= 0")

    mgr_args = [
        sys.executable,
        "-m",
        "barber_queue.manager",
        "--mqtt-host",
        mqtt_host,
        "--mqtt-port",
        str(mqtt_port),
        "--namespace",
        namespace,
        "--visible-count",
        str(visible_count),
    ]
    for p in providers:
        mgr_args += ["--provider", p]
    if staff_pin:
        mgr_args += ["--staff-pin", staff_pin]
    if admin_pin:
        mgr_args += ["--admin-pin", admin_pin]
    if state_file:
        mgr_args += ["--state-file", state_file]

    # Own process group so Ctrl+C can stop everything.
    children = [Child(name="manager", proc=subprocess.Popen(mgr_args, preexec_fn=os.setsid))]

    print(
        "[run] started: "
        + ", ".join(f"{c.name}(pid={c.proc.pid})" for c in children)
        + f"\nnamespace={namespace}. Press Ctrl+C to stop."
    )

    if show_gui:
        # Give the manager a moment to connect before the board asks for a snapshot.
        time.sleep(0.5)
        try:
            from .gui import DisplayBoardApp

            app = DisplayBoardApp(mqtt_host=mqtt_host, mqtt_port=mqtt_port, namespace=namespace)
            app.start()
        finally:
            _terminate_children(children)
        return

    try:
        while True:
            for c in children:
                rc = c.proc.poll()
                if rc is not None:
                    raise RuntimeError(f"Child {c.name} exited with code {rc}")
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        _terminate_children(children)


def _terminate_children(children: list[Child]) -> None:
    for c in children:
        if c.proc.poll() is None:
            try:
                os.killpg(os.getpgid(c.proc.pid), signal.SIGTERM)
            except ProcessLookupError:
                pass

    deadline = time.time() + 2.0
    while time.time() < deadline:
        if all(c.proc.poll() is not None for c in children):
            return
        time.sleep(0.1)

    for c in children:
        if c.proc.poll() is None:
            try:
                os.killpg(os.getpgid(c.proc.pid), signal.SIGKILL)
            except ProcessLookupError:
                pass


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the queue manager (+ optional display board)")
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument("--provider", action="append", default=[], metavar="ID=NAME[:off]")
    parser.add_argument("--visible-count", type=int, default=10)
    parser.add_argument("--staff-pin", default=None)
    parser.add_argument("--admin-pin", default=None)
    parser.add_argument("--state-file", default=None)
    parser.add_argument("--gui", action="store_true", help="show the Tkinter display board")
    args = parser.parse_args()

    run_all(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        providers=args.provider,
        visible_count=args.visible_count,
        staff_pin=args.staff_pin,
        admin_pin=args.admin_pin,
        state_file=args.state_file,
        show_gui=args.gui,
    )


if __name__ == "__main__":
    main()
