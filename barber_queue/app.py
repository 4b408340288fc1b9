from __future__ import annotations

# Single-entrypoint runner.
#
# Primary way to run the shop:
#     python -m barber_queue.app run --provider P1=Sam --provider P2=Alex --staff-pin 1234 [--gui]
#
# Then, from the kiosk and the staff console:
#     python -m barber_queue.app kiosk --first-name Ana --last-initial K
#     python -m barber_queue.app staff --pin 1234 call-next --provider P1
#
# `manager` and `display` start one component on its own.

import argparse


def main() -> None:
    parser = argparse.ArgumentParser(description="Walk-in Queue (MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_mqtt_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--mqtt-host", default="127.0.0.1")
        p.add_argument("--mqtt-port", type=int, default=1883)
        p.add_argument("--namespace", default="barbershop/main")

    def add_shop_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--provider", action="append", default=[], metavar="ID=NAME[:off]")
        p.add_argument("--visible-count", type=int, default=10)
        p.add_argument("--staff-pin", default=None)
        p.add_argument("--admin-pin", default=None)
        p.add_argument("--state-file", default=None)

    # ---- Normal operation: one command ----
    p_run = sub.add_parser("run", help="Start the manager (optional display board GUI)")
    add_mqtt_args(p_run)
    add_shop_args(p_run)
    p_run.add_argument("--gui", action="store_true", help="open the Tkinter display board")

    p_mgr = sub.add_parser("manager", help="Start the queue manager only")
    add_mqtt_args(p_mgr)
    add_shop_args(p_mgr)

    p_disp = sub.add_parser("display", help="Open the display board only")
    add_mqtt_args(p_disp)

    p_kiosk = sub.add_parser("kiosk", help="Check in one client")
    add_mqtt_args(p_kiosk)
    p_kiosk.add_argument("--first-name", required=True)
    p_kiosk.add_argument("--last-initial", required=True)
    p_kiosk.add_argument("--provider", default=None)

    p_staff = sub.add_parser("staff", help="Send one staff console command")
    add_mqtt_args(p_staff)
    p_staff.add_argument("--pin", required=True)
    p_staff.add_argument("staff_args", nargs=argparse.REMAINDER, help="command, e.g. call-next --provider P1")

    args = parser.parse_args()
    mqtt_args = ["--mqtt-host", args.mqtt_host, "--mqtt-port", str(args.mqtt_port), "--namespace", args.namespace]

    if args.cmd in ("run", "manager"):
        shop_args = ["--visible-count", str(args.visible_count)]
        for p in args.provider:
            shop_args += ["--provider", p]
        for flag, value in (("--staff-pin", args.staff_pin), ("--admin-pin", args.admin_pin), ("--state-file", args.state_file)):
            if value:
                shop_args += [flag, value]

        if args.cmd == "run":
            from .run_all import main as run

            _dispatch_to_module_main(run, mqtt_args + shop_args + (["--gui"] if args.gui else []))
        else:
            from .manager import main as run

            _dispatch_to_module_main(run, mqtt_args + shop_args)
        return

    if args.cmd == "display":
        from .gui import main as run

        _dispatch_to_module_main(run, mqtt_args)
        return

    if args.cmd == "kiosk":
        from .kiosk import main as run

        run_args = mqtt_args + ["--first-name", args.first_name, "--last-initial", args.last_initial]
        if args.provider:
            run_args += ["--provider", args.provider]
        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd == "staff":
        from .staff import main as run

        _dispatch_to_module_main(run, ["--pin", args.pin, *mqtt_args, *args.staff_args])
        return


def _dispatch_to_module_main(module_main, argv: list[str]) -> None:
    import sys

    old_argv = sys.argv[:]
    try:
        sys.argv = [old_argv[0], *argv]
        module_main()
    finally:
        sys.argv = old_argv


if __name__ == "__main__":
    main()
