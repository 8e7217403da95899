"""Command-line entry point: TunnelsAPI behind argparse subcommands."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional

from note_tunnels.api import TunnelsAPI
from note_tunnels.version import __version__

logger = logging.getLogger(__name__)


def is_debug() -> bool:
    """Check if DEBUG is enabled via environment / .env."""
    return os.environ.get("DEBUG", "").lower() in ("1", "true")


def _parse_headers(values: Optional[list[str]]) -> Optional[dict[str, str]]:
    """Turn ["Name: value", ...] into a dict."""
    if values is None:
        return None
    headers = {}
    for item in values:
        name, sep, value = item.partition(":")
        if not sep:
            raise argparse.ArgumentTypeError(f"Header must look like 'Name: value': {item!r}")
        headers[name.strip()] = value.strip()
    return headers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="note-tunnels",
        description="Export notes to PDF and deliver them to HTTP endpoints.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List configured tunnels")

    add = sub.add_parser("add", help="Add a tunnel")
    add.add_argument("name")
    add.add_argument("url")
    add.add_argument("--method", default="POST", choices=["POST", "PUT"])
    add.add_argument("--header", action="append", metavar="NAME:VALUE")
    add.add_argument("--description", default="")
    add.add_argument("--default", action="store_true", help="Make it the default tunnel")

    edit = sub.add_parser("edit", help="Change fields of a tunnel")
    edit.add_argument("tunnel_id")
    edit.add_argument("--name")
    edit.add_argument("--url")
    edit.add_argument("--method", choices=["POST", "PUT"])
    edit.add_argument("--header", action="append", metavar="NAME:VALUE",
                      help="Replaces all headers")
    edit.add_argument("--description")

    remove = sub.add_parser("remove", help="Remove a tunnel")
    remove.add_argument("tunnel_id")

    default = sub.add_parser("default", help="Set (or clear) the default tunnel")
    default.add_argument("tunnel_id", nargs="?")

    export = sub.add_parser("export", help="Export a note to .tunnels-temp/<name>.pdf")
    export.add_argument("note")

    send = sub.add_parser("send", help="Send a note to a tunnel")
    send.add_argument("note")
    send.add_argument("--tunnel", dest="tunnel_id")

    return parser


async def _run(api: TunnelsAPI, args: argparse.Namespace) -> dict:
    if args.command == "list":
        return api.list_tunnels()
    if args.command == "add":
        return api.create_tunnel(
            args.name, args.url,
            method=args.method,
            headers=_parse_headers(args.header),
            description=args.description,
            is_default=args.default,
        )
    if args.command == "edit":
        changes = {
            key: value for key, value in (
                ("name", args.name),
                ("url", args.url),
                ("method", args.method),
                ("headers", _parse_headers(args.header)),
                ("description", args.description),
            ) if value is not None
        }
        return api.update_tunnel(args.tunnel_id, **changes)
    if args.command == "remove":
        return api.remove_tunnel(args.tunnel_id)
    if args.command == "default":
        return api.set_default_tunnel(args.tunnel_id)
    if args.command == "export":
        return await api.export_pdf(args.note)
    if args.command == "send":
        try:
            return await api.send_note(args.note, args.tunnel_id)
        finally:
            await api.cleanup()
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[list[str]] = None) -> int:
    """Run the CLI. Returns a process exit code."""
    from dotenv import load_dotenv

    load_dotenv()

    logging.basicConfig(
        level=logging.DEBUG if is_debug() else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        result = asyncio.run(_run(TunnelsAPI(), args))
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    print(json.dumps(result, indent=2))
    return 0 if result.get("success") else 1


if __name__ == "__main__":
    sys.exit(main())
