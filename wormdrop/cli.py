"""
wormdrop CLI — encrypted file handoff through a relay.

Commands:
  wormdrop send <path>      - Pack, encrypt, and upload a file or directory
  wormdrop receive <code>   - Download, decrypt, and extract a transfer
  wormdrop code             - Print a fresh transfer code
  wormdrop relay start      - Start the relay HTTP server (foreground)
  wormdrop relay status     - Show relay health
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace


def _add_relay_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-r", "--relay",
        help="Relay URL (default: http://localhost:8787, or set WORMDROP_RELAY)",
    )


def cmd_send(args: argparse.Namespace) -> None:
    """Pack, encrypt, and upload a file or directory."""
    from wormdrop.client import send_path
    from wormdrop.codes import parse_code, uses_dictionary
    from wormdrop.errors import ConflictError, WormdropError

    if args.code:
        parsed = parse_code(args.code)
        if parsed is not None and not uses_dictionary(parsed):
            print(
                "Warning: custom code uses words outside the wordlist",
                file=sys.stderr,
            )

    try:
        result, kind = send_path(args.path, code=args.code, relay=args.relay)
    except ConflictError:
        print(
            "Error: That code is already in use on the relay. "
            "Pick a different code or omit --code.",
            file=sys.stderr,
        )
        sys.exit(1)
    except WormdropError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Sent {kind}: {result.size} bytes")
    print()
    print("To receive, run:")
    relay_hint = f" --relay {args.relay}" if args.relay else ""
    print(f"  wormdrop receive {result.code}{relay_hint}")


def cmd_receive(args: argparse.Namespace) -> None:
    """Download, decrypt, and extract a transfer."""
    from wormdrop.client import receive_to
    from wormdrop.errors import IntegrityError, NotFoundError, WormdropError

    try:
        result = receive_to(args.code, args.output or ".", relay=args.relay)
    except NotFoundError:
        print("Error: Transfer not found or already retrieved", file=sys.stderr)
        sys.exit(1)
    except IntegrityError:
        print("Error: Could not decrypt (wrong code or tampered data)", file=sys.stderr)
        sys.exit(1)
    except WormdropError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Received {result.kind}: {len(result.files)} file(s)")
    for name in result.files:
        print(f"  {name}")


def cmd_code(args: argparse.Namespace) -> None:
    """Print a fresh transfer code."""
    from wormdrop.codes import generate_code

    print(generate_code())


def cmd_relay_start(args: argparse.Namespace) -> None:
    """Start the relay HTTP server."""
    from wormdrop.config import RelayConfig
    from wormdrop.relay import run_relay

    try:
        config = RelayConfig.from_env()
        overrides = {
            key: getattr(args, key)
            for key in ("host", "port", "max_size", "ttl_ms", "sweep_interval_ms")
            if getattr(args, key, None) is not None
        }
        config = replace(config, **overrides)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    run_relay(config)


def cmd_relay_status(args: argparse.Namespace) -> None:
    """Show relay health."""
    from wormdrop.errors import TransportError
    from wormdrop.transfer import health, relay_url

    url = relay_url(args.relay)
    try:
        data = health(url)
    except TransportError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"wormdrop relay — {url}")
    print(f"  status:    {data.get('status', '?')}")
    print(f"  transfers: {data.get('transfers', '?')}")
    print(f"  max size:  {data.get('max_size', '?')} bytes")
    print(f"  uptime:    {data.get('uptime', '?')}s")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="wormdrop",
        description="wormdrop — encrypted one-shot file handoff through a relay.",
    )
    from wormdrop import __version__
    parser.add_argument("--version", action="version", version=f"wormdrop {__version__}")

    sub = parser.add_subparsers(dest="command")

    # send
    p_send = sub.add_parser("send", help="Send a file or directory")
    p_send.add_argument("path", help="File or directory to send")
    p_send.add_argument("-c", "--code", help="Custom transfer code (default: generated)")
    _add_relay_arg(p_send)

    # receive
    p_recv = sub.add_parser("receive", help="Receive a transfer")
    p_recv.add_argument("code", help="Transfer code, e.g. 42-banana-thunder")
    p_recv.add_argument("-o", "--output", help="Output directory (default: .)")
    _add_relay_arg(p_recv)

    # code
    sub.add_parser("code", help="Print a fresh transfer code")

    # relay
    p_relay = sub.add_parser("relay", help="Relay server")
    relay_sub = p_relay.add_subparsers(dest="relay_command")

    p_rs = relay_sub.add_parser("start", help="Start the relay server (foreground)")
    p_rs.add_argument("--host", help="Bind address (default: 0.0.0.0)")
    p_rs.add_argument("--port", type=int, help="Listen port (default: 8787)")
    p_rs.add_argument("--max-size", type=int, help="Max bytes per transfer")
    p_rs.add_argument("--ttl-ms", type=int, help="Transfer time-to-live in ms")
    p_rs.add_argument("--sweep-interval-ms", type=int, help="Expiry sweep interval in ms")

    p_rst = relay_sub.add_parser("status", help="Show relay health")
    _add_relay_arg(p_rst)

    args = parser.parse_args()

    if not args.command:
        print("wormdrop — encrypted one-shot file handoff")
        print()
        print("Usage:")
        print("  wormdrop send <file-or-dir> [--code C] [--relay URL]")
        print("  wormdrop receive <code> [-o DIR] [--relay URL]")
        print("  wormdrop code")
        print("  wormdrop relay start [--port N] [--max-size B] [--ttl-ms MS]")
        print("  wormdrop relay status [--relay URL]")
        print()
        print("Run 'wormdrop <command> --help' for details on any command.")
        sys.exit(0)

    # Handle relay subcommands
    if args.command == "relay":
        relay_commands = {
            "start": cmd_relay_start,
            "status": cmd_relay_status,
        }
        rc = getattr(args, "relay_command", None)
        if not rc:
            print("Usage: wormdrop relay {start|status}")
            sys.exit(0)
        relay_commands[rc](args)
        return

    commands = {
        "send": cmd_send,
        "receive": cmd_receive,
        "code": cmd_code,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
