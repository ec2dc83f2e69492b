"""pd-tracker command line and MCP stdio server."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

# MCP imports are optional - only needed when running the server
try:
    from mcp.server import Server  # pragma: no cover
    from mcp.server.stdio import stdio_server  # pragma: no cover
    from mcp.types import Tool, TextContent  # pragma: no cover
    HAS_MCP = True  # pragma: no cover
except ImportError:
    HAS_MCP = False
    Server = None  # type: ignore
    Tool = None  # type: ignore
    TextContent = None  # type: ignore

from .config import load_config
from .engine import TrackerEngine
from .models import format_ts, parse_local_datetime
from .store import TrackerError
from .tools import execute_tool, make_tools


def configure_logging(verbose: bool = False) -> None:
    """Route loguru output to stderr at WARNING, or DEBUG when verbose."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def create_server(engine: TrackerEngine) -> "Server":
    """Create and configure the MCP server.

    Raises:
        ImportError: If MCP package is not installed
    """
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install pd-tracker[mcp]"
        )

    server = Server("pd-tracker")
    tool_defs = make_tools(engine)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return [
            Tool(
                name=t["name"],
                description=t["description"],
                inputSchema=t["inputSchema"],
            )
            for t in tool_defs.values()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        result = await execute_tool(engine, name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    return server


async def run_server(engine: TrackerEngine) -> None:
    """Run the MCP server with stdio transport."""
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install pd-tracker[mcp]"
        )

    server = create_server(engine)  # pragma: no cover

    async with stdio_server() as (read_stream, write_stream):  # pragma: no cover
        await server.run(  # pragma: no cover
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pd-tracker",
        description="pd-tracker - a private, offline journal of timestamped, tagged entries",
    )
    parser.add_argument(
        "--project-root",
        "-p",
        type=Path,
        default=Path.cwd(),
        help="Directory relative paths resolve against (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in project root)",
    )
    parser.add_argument(
        "--data-dir",
        "-d",
        help="Directory holding the entry store (overrides config)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging to stderr")

    actions = parser.add_argument_group("actions")
    actions.add_argument("--init", action="store_true", help="Create the data directory and store")
    actions.add_argument("--add", metavar="TEXT", help="Save a new entry")
    actions.add_argument("--tag", default="", help="Tag for --add")
    actions.add_argument("--at", metavar="YYYY-MM-DDTHH:MM", help="Local time for --add (default: now)")
    actions.add_argument("--list", nargs="?", const="", metavar="QUERY", help="List entries, optionally filtered")
    actions.add_argument("--delete", metavar="ID", help="Delete an entry by id")
    actions.add_argument("--clear", action="store_true", help="Delete ALL entries (requires --yes)")
    actions.add_argument("--yes", action="store_true", help="Confirm --clear")
    actions.add_argument("--export", nargs="?", const="", metavar="DIR", help="Write a backup file")
    actions.add_argument("--import", dest="import_file", type=Path, metavar="FILE", help="Merge a backup file")
    actions.add_argument("--install-assets", action="store_true", help="Refresh the offline asset cache")
    return parser


def run_cli_command(engine: TrackerEngine, args: argparse.Namespace) -> Optional[int]:
    """Run the action selected on the command line.

    Returns:
        Exit code, or None if no action was requested
    """
    if args.add is not None:
        ts = parse_local_datetime(args.at) if args.at else None
        entry = engine.add_entry(args.add, tag=args.tag, ts=ts)
        print(entry.id)
        return 0

    if args.list is not None:
        entries = engine.list_entries(args.list)
        if not entries:
            print("No entries yet.")
        for e in entries:
            tag = f" [{e.tag}]" if e.tag else ""
            print(f"{format_ts(e.ts)}{tag}  {e.text}  ({e.id})")
        return 0

    if args.delete is not None:
        removed = engine.delete_entry(args.delete)
        print("Deleted." if removed else "No such entry.")
        return 0

    if args.clear:
        if not args.yes:
            print("This will delete ALL entries on this device. Re-run with --yes to continue.", file=sys.stderr)
            return 1
        removed = engine.clear_all(confirm=True)
        print(f"Deleted {removed} entries.")
        return 0

    if args.export is not None:
        path = engine.export_backup(Path(args.export) if args.export else None)
        print(path)
        return 0

    if args.import_file is not None:
        count = engine.import_backup(args.import_file)
        print(f"Imported {count} entries.")
        return 0

    if args.install_assets:
        cache = engine.asset_cache()
        installed = cache.install()
        deleted = cache.activate()
        print(f"Cached {len(installed)} assets in {cache.name}")
        for name in deleted:
            print(f"  removed {name}")
        return 0

    return None


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    project_root = args.project_root.resolve()

    try:
        config = load_config(project_root, args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)
    if args.data_dir:
        config.data_dir = args.data_dir

    try:
        engine = TrackerEngine(config)
    except TrackerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.init:
            print(f"Initialized entry store at {config.get_db_path()}")
            return

        try:
            code = run_cli_command(engine, args)
        except (TrackerError, FileNotFoundError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        if code is not None:
            if code:
                sys.exit(code)
            return

        if not HAS_MCP:
            print("Error: MCP package not installed.", file=sys.stderr)
            print("Install with: pip install pd-tracker[mcp]", file=sys.stderr)
            sys.exit(1)

        asyncio.run(run_server(engine))  # pragma: no cover
    finally:
        engine.close()


if __name__ == "__main__":  # pragma: no cover
    main()
