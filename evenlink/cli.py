"""EvenLink command-line interface."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from evenlink.bluez import BlueZManager
from evenlink.errors import PermissionDenied, QueryFailed
from evenlink.metrics import QueryMetrics
from evenlink.query import TARGET_NAME_PREFIX, query_filtered_paired_devices

try:  # pragma: no cover - optional rich rendering
	from rich.console import Console
	from rich.table import Table
except Exception:  # pragma: no cover
	Console = None  # type: ignore
	Table = None  # type: ignore

EXIT_QUERY_FAILED = 1
EXIT_PERMISSION_DENIED = 2


def _render(data: List[Dict[str, Any]]) -> None:
	if Console and Table:
		console = Console()
		table = Table(title="Paired Devices", show_lines=False)
		for column in ("name", "address", "connected"):
			table.add_column(column.upper())
		for entry in data:
			table.add_row(
				str(entry["name"]),
				str(entry["address"]),
				"yes" if entry["connected"] else "no",
			)
		console.print(table)
	else:
		for entry in data:
			sys.stdout.write(f"{entry['name']}\t{entry['address']}\t{entry['connected']}\n")


async def _cmd_paired(args: argparse.Namespace) -> int:
	metrics = QueryMetrics(Path(args.metrics)) if args.metrics else None
	try:
		devices = await query_filtered_paired_devices(
			BlueZManager(adapter=args.adapter),
			prefix=args.prefix,
			metrics=metrics,
		)
	except PermissionDenied as exc:
		sys.stderr.write(f"{exc.code}: {exc.message}\n")
		return EXIT_PERMISSION_DENIED
	except QueryFailed as exc:
		sys.stderr.write(f"{exc.code}: {exc.message}\n")
		return EXIT_QUERY_FAILED

	data = [device.to_dict() for device in devices]
	if args.json:
		json.dump(data, sys.stdout, indent=2)
		sys.stdout.write("\n")
		return 0
	_render(data)
	return 0


async def _cmd_serve(args: argparse.Namespace) -> int:
	import uvicorn

	from evenlink import api

	if args.metrics:
		api.metrics = QueryMetrics(Path(args.metrics))
	config = uvicorn.Config(api.app, host=args.host, port=args.port)
	await uvicorn.Server(config).serve()
	return 0


def _build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="EvenLink paired device utilities")
	parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
	sub = parser.add_subparsers(dest="command", required=True)

	paired = sub.add_parser("paired", help="List bonded Even G1 devices and their connection state")
	paired.add_argument("--prefix", default=TARGET_NAME_PREFIX, help="Device name prefix to match")
	paired.add_argument("--adapter", help="BlueZ adapter name, e.g. hci0")
	paired.add_argument("--json", action="store_true", help="Output JSON")
	paired.add_argument("--metrics", help="Append a CSV metrics row to this file")
	paired.set_defaults(handler=_cmd_paired)

	serve = sub.add_parser("serve", help="Run the HTTP bridge")
	serve.add_argument("--host", default="127.0.0.1")
	serve.add_argument("--port", type=int, default=8000)
	serve.add_argument("--metrics", help="Append a CSV metrics row per request to this file")
	serve.set_defaults(handler=_cmd_serve)

	return parser


def main(argv: Optional[List[str]] = None) -> int:
	parser = _build_parser()
	args = parser.parse_args(argv)
	if args.verbose:
		logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
	if getattr(args, "prefix", None) == "":
		parser.error("--prefix must not be empty")
	return asyncio.run(args.handler(args))


if __name__ == "__main__":
	sys.exit(main())
