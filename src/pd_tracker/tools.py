"""MCP tool definitions wrapping the tracker engine."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from .assets import AssetFetchError
from .codec import MalformedDocument
from .engine import ConfirmationRequired, EmptyEntryError, TrackerEngine
from .models import Entry, format_ts, parse_local_datetime
from .store import DuplicateKey, StorageUnavailable, TrackerError


def make_tools(engine: TrackerEngine) -> dict[str, dict]:
    """Create MCP tool definitions for the tracker engine.

    Returns:
        Dict mapping tool names to their definitions.
    """

    tools = {}

    tools["entry_add"] = {
        "name": "entry_add",
        "description": "Save a new journal entry on this device.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "text": {
                    "type": "string",
                    "description": "Entry body (required, non-empty)",
                },
                "tag": {
                    "type": "string",
                    "description": "Optional short label",
                },
                "at": {
                    "type": "string",
                    "description": "Occurrence time as YYYY-MM-DDTHH:MM local time (default: now)",
                },
            },
            "required": ["text"],
        },
    }

    tools["entry_delete"] = {
        "name": "entry_delete",
        "description": "Delete an entry by id. Unknown ids are ignored.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "Entry id"},
            },
            "required": ["id"],
        },
    }

    tools["entry_list"] = {
        "name": "entry_list",
        "description": "List entries newest first, optionally filtered by a tag/text substring.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Case-insensitive substring matched against tag and text",
                },
            },
        },
    }

    tools["entries_clear"] = {
        "name": "entries_clear",
        "description": "Delete ALL entries on this device. Irreversible; requires confirm=true.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "confirm": {"type": "boolean", "description": "Must be true"},
            },
            "required": ["confirm"],
        },
    }

    tools["backup_export"] = {
        "name": "backup_export",
        "description": "Export every entry to a dated JSON backup file.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "directory": {
                    "type": "string",
                    "description": "Target directory (default: configured backup dir)",
                },
            },
        },
    }

    tools["backup_import"] = {
        "name": "backup_import",
        "description": "Merge a JSON backup file into this device's entries (upsert by id).",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Backup file path"},
            },
            "required": ["path"],
        },
    }

    tools["assets_refresh"] = {
        "name": "assets_refresh",
        "description": "Install the configured offline asset cache and remove older generations.",
        "inputSchema": {"type": "object", "properties": {}},
    }

    return tools


def entry_summary(entry: Entry) -> dict[str, Any]:
    """Entry dict plus a display time."""
    return {**entry.to_dict(), "when": format_ts(entry.ts)}


async def execute_tool(engine: TrackerEngine, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Execute a tracker tool and return the result.

    Store work runs in a worker thread; the store serializes it.

    Args:
        engine: TrackerEngine instance
        name: Tool name
        arguments: Tool arguments

    Returns:
        Result dict with success status and data or error
    """
    try:
        if name == "entry_add":
            at = arguments.get("at")
            ts = parse_local_datetime(at) if at else None
            entry = await asyncio.to_thread(
                engine.add_entry,
                arguments["text"],
                arguments.get("tag", ""),
                ts,
            )
            return {
                "success": True,
                "entry": entry_summary(entry),
                "message": f"Entry {entry.id} saved",
            }

        elif name == "entry_delete":
            removed = await asyncio.to_thread(engine.delete_entry, arguments["id"])
            return {
                "success": True,
                "id": arguments["id"],
                "removed": removed,
            }

        elif name == "entry_list":
            entries = await asyncio.to_thread(engine.list_entries, arguments.get("query", ""))
            return {
                "success": True,
                "count": len(entries),
                "entries": [entry_summary(e) for e in entries],
            }

        elif name == "entries_clear":
            removed = await asyncio.to_thread(engine.clear_all, arguments.get("confirm") is True)
            return {
                "success": True,
                "removed": removed,
                "message": f"Deleted {removed} entries",
            }

        elif name == "backup_export":
            directory = arguments.get("directory")
            path = await asyncio.to_thread(
                engine.export_backup,
                Path(directory) if directory else None,
            )
            return {
                "success": True,
                "path": str(path),
                "message": f"Backup written to {path}",
            }

        elif name == "backup_import":
            count = await asyncio.to_thread(engine.import_backup, Path(arguments["path"]))
            return {
                "success": True,
                "imported": count,
                "message": f"Imported {count} entries.",
            }

        elif name == "assets_refresh":
            cache = engine.asset_cache()
            installed = await asyncio.to_thread(cache.install)
            deleted = await asyncio.to_thread(cache.activate)
            return {
                "success": True,
                "cache": cache.name,
                "installed": installed,
                "deleted": deleted,
            }

        else:
            return {
                "success": False,
                "error": f"Unknown tool: {name}",
            }

    except DuplicateKey as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "duplicate_key",
        }

    except StorageUnavailable as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "storage_unavailable",
            "suggestion": "The local store could not be accessed; try again",
        }

    except MalformedDocument as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "malformed_document",
            "suggestion": "Invalid JSON file.",
        }

    except EmptyEntryError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "empty_entry",
        }

    except ConfirmationRequired as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "confirmation_required",
        }

    except AssetFetchError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "asset_fetch_failed",
        }

    except FileNotFoundError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "file_not_found",
        }

    except TrackerError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "tracker_error",
        }

    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "unexpected_error",
        }
