"""Data model for tracker entries and timestamp helpers."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

BACKUP_PREFIX = "pd-tracker-backup-"


def now_ms() -> int:
    """Current time as integer milliseconds since the epoch."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def generate_entry_id() -> str:
    """Generate an opaque, unique entry ID."""
    return str(uuid.uuid4())


def parse_local_datetime(value: str) -> int:
    """Parse a ``YYYY-MM-DDTHH:MM`` string into epoch milliseconds.

    Naive values are interpreted in local time, matching what a
    datetime-local picker produces. Aware values keep their offset.
    """
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return int(dt.timestamp() * 1000)


def format_ts(ts: Any) -> str:
    """Render an epoch-ms timestamp as local time, or ``str(ts)`` if it isn't one."""
    try:
        dt = datetime.fromtimestamp(ts / 1000)
    except (TypeError, ValueError, OverflowError, OSError):
        return str(ts)
    return dt.strftime("%Y-%m-%d %H:%M")


def backup_filename(exported_at: int) -> str:
    """Filename for a backup exported at ``exported_at`` (UTC date)."""
    date = datetime.fromtimestamp(exported_at / 1000, tz=timezone.utc)
    return f"{BACKUP_PREFIX}{date.strftime('%Y-%m-%d')}.json"


@dataclass
class Entry:
    """A single journaled record.

    ``ts`` and ``text`` are typed for entries created locally. Entries
    merged in from a backup carry whatever values the file provided.
    """
    id: str
    ts: Optional[int]
    tag: str = ""
    text: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert entry to a dictionary for JSON serialization."""
        return {
            "id": self.id,
            "ts": self.ts,
            "tag": self.tag if self.tag is not None else "",
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Entry":
        """Build an entry from a mapping with at least an ``id`` key."""
        tag = data.get("tag")
        return cls(
            id=str(data["id"]),
            ts=data.get("ts"),
            tag="" if tag is None else tag,
            text=data.get("text"),
        )
