"""Argparse-based CLI for ghast-ctl.

``start`` runs the daemon in the foreground; every other subcommand talks
to a running daemon through the client module.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from ghast_ctl.client import (
    clear_history,
    get_health,
    get_history,
    send_command,
    shutdown,
)
from ghast_ctl.config import get_version, load_config

COMMANDS_HELP = """\
commands:
  Navigation:  navigate, navigate-force, back, forward, refresh
  Reading:     info, text, text-full, html, html-full, screenshot,
               links, buttons, inputs, forms, interactive, cookies
  Interaction: click, type, clear-and-type, press, select, hover, scroll
  Waiting:     wait, wait-for
  Tabs:        tabs, new-tab, switch-tab, close-tab, close-other-tabs
  Other:       eval

examples:
  ghast-ctl start --headless > ghast.port &
  until [ -s ghast.port ]; do sleep 0.1; done
  PORT=$(head -n 1 ghast.port)
  ghast-ctl control --server $PORT "navigate https://example.com"
  ghast-ctl control --server $PORT "screenshot --full" --output page.png
  ghast-ctl stop --server $PORT
"""


# ---------------------------------------------------------------------------
# Subparser registration
# ---------------------------------------------------------------------------


def _add_server_arg(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--server", type=int, required=True, help="HTTP port printed by 'start'"
    )


def _register_subcommands(subparsers: argparse._SubParsersAction) -> None:
    """Register every subcommand on *subparsers*."""

    p = subparsers.add_parser("start", help="Start the browser daemon")
    p.add_argument(
        "--stealth",
        action="store_true",
        default=False,
        help="Enable stealth evasions",
    )
    p.add_argument(
        "--headless",
        action="store_true",
        default=False,
        help="Run a freshly launched browser headless",
    )
    p.add_argument(
        "--electron-app", default=None, help="Path to an Electron app to launch"
    )
    p.add_argument(
        "--port", type=int, default=None, help="Attach to an existing CDP port"
    )
    p.add_argument(
        "--server-port",
        type=int,
        default=None,
        help="HTTP port to serve on (default: pick a free one)",
    )
    p.add_argument("--config", default=None, help="Path to a JSON config file")

    p = subparsers.add_parser("control", help="Send a command to the daemon")
    _add_server_arg(p)
    p.add_argument("command", help='Command line, e.g. "navigate https://x.y"')
    p.add_argument(
        "--output", default=None, help="Write image output to this file"
    )
    p.add_argument(
        "--timeout", type=float, default=120.0, help="Request timeout in seconds"
    )

    p = subparsers.add_parser("history", help="Print the command timeline")
    _add_server_arg(p)
    p.add_argument(
        "--clear", action="store_true", default=False, help="Clear the timeline"
    )

    p = subparsers.add_parser("health", help="Print daemon health")
    _add_server_arg(p)

    p = subparsers.add_parser("stop", help="Shut the daemon down")
    _add_server_arg(p)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _start(args: argparse.Namespace) -> None:
    from ghast_ctl.daemon import start_daemon

    config = load_config(args.config)
    if args.stealth:
        config.browser.stealth = True
    if args.headless:
        config.browser.headless = True
    if args.electron_app is not None:
        config.browser.electron_app = args.electron_app
    if args.port is not None:
        config.browser.cdp_port = args.port
    if args.server_port is not None:
        config.server.port = args.server_port

    if config.browser.stealth and (
        config.browser.cdp_port is not None or config.browser.electron_app
    ):
        print(
            "Warning: stealth user agent is only applied to freshly launched "
            "browsers. JS evasions will still be injected.",
            file=sys.stderr,
        )
    start_daemon(config)


def _control(args: argparse.Namespace) -> None:
    result = send_command(args.server, args.command, timeout=args.timeout)
    if "body" not in result:
        print(f"Error: {result.get('error', 'Unknown error')}", file=sys.stderr)
        sys.exit(1)

    body: bytes = result["body"]
    if result["content_type"].startswith("image/"):
        if args.output:
            Path(args.output).write_bytes(body)
            print(f"Saved {len(body)} bytes to {args.output}")
        else:
            sys.stdout.buffer.write(body)
            sys.stdout.buffer.flush()
    else:
        print(body.decode("utf-8", errors="replace"))

    if not result["ok"]:
        sys.exit(1)


def _print_json_result(result: dict) -> None:
    if not result["ok"]:
        print(f"Error: {result.get('error', 'Unknown error')}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(result["data"], indent=2))


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate handler."""

    parser = argparse.ArgumentParser(
        prog="ghast-ctl",
        description="Browser/Electron automation daemon and client",
        epilog=COMMANDS_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="store_true", default=False, help="Print the version"
    )
    subparsers = parser.add_subparsers(dest="command_name")
    _register_subcommands(subparsers)

    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    if args.version:
        print(get_version())
        return

    if args.command_name is None:
        parser.print_help()
        sys.exit(1)

    if args.command_name == "start":
        _start(args)
        return

    if args.command_name == "control":
        _control(args)
        return

    if args.command_name == "history":
        _print_json_result(
            clear_history(args.server) if args.clear else get_history(args.server)
        )
        return

    if args.command_name == "health":
        _print_json_result(get_health(args.server))
        return

    if args.command_name == "stop":
        result = shutdown(args.server)
        if not result["ok"]:
            print(f"Error: {result.get('error')}", file=sys.stderr)
            sys.exit(1)
        print("Shutdown signal sent")
        return
