"""Export and import of the full entry set as a portable JSON document.

Document shape::

    {"exportedAt": <ms epoch>, "entries": [{"id", "ts", "tag", "text"}, ...]}

Import is a merge: records are upserted by id and entries that are not
in the document are left alone.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger

from .locking import locked_atomic_write
from .models import Entry, backup_filename, now_ms
from .store import EntryStore, TrackerError

_SCALARS = (str, int, float, bool, type(None))
_SQLITE_INT_MIN = -(2**63)
_SQLITE_INT_MAX = 2**63 - 1


def _bindable(value: Any) -> bool:
    """Whether sqlite can store a scalar field value unchanged."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return True
    if isinstance(value, int):
        return _SQLITE_INT_MIN <= value <= _SQLITE_INT_MAX
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class MalformedDocument(TrackerError):
    """Raised when import input is not a parseable JSON object."""
    pass


def export_document(store: EntryStore, exported_at: Optional[int] = None) -> dict[str, Any]:
    """Build an export document from a full store snapshot."""
    entries = store.get_all()
    return {
        "exportedAt": exported_at if exported_at is not None else now_ms(),
        "entries": [e.to_dict() for e in entries],
    }


def dumps_document(document: dict[str, Any]) -> str:
    """Serialize a document the way backup files are written."""
    return json.dumps(document, indent=2, ensure_ascii=False)


def parse_document(raw: Union[str, bytes, dict]) -> dict[str, Any]:
    """Parse import input into a document mapping.

    Raises:
        MalformedDocument: If text is not valid JSON or the top level is not an object
    """
    if isinstance(raw, dict):
        return raw
    try:
        data = json.loads(raw)
    except (ValueError, TypeError) as e:
        raise MalformedDocument(f"Invalid JSON document: {e}") from e
    if not isinstance(data, dict):
        raise MalformedDocument(
            f"Expected a JSON object at top level, got {type(data).__name__}"
        )
    return data


def _candidate_entries(document: dict[str, Any]) -> list[Entry]:
    """Pick out the records that can be upserted, skipping the rest."""
    records = document.get("entries")
    if not isinstance(records, list):
        if records is not None:
            logger.warning(f"Ignoring non-list 'entries' field ({type(records).__name__})")
        return []

    entries = []
    for position, record in enumerate(records):
        if not isinstance(record, dict):
            logger.warning(f"Skipping record {position}: not an object")
            continue
        if not record.get("id"):
            logger.warning(f"Skipping record {position}: no id")
            continue
        fields = (record["id"], record.get("ts"), record.get("tag"), record.get("text"))
        if not all(isinstance(v, _SCALARS) for v in fields):
            logger.warning(f"Skipping record {position}: non-scalar field value")
            continue
        entry = Entry.from_dict(record)
        if not all(_bindable(v) for v in (entry.id, entry.ts, entry.tag, entry.text)):
            logger.warning(f"Skipping record {position}: value out of storable range")
            continue
        entries.append(entry)
    return entries


def import_document(store: EntryStore, raw: Union[str, bytes, dict]) -> int:
    """Merge a document into the store.

    All candidate records are upserted in one transaction, so a storage
    failure part way through leaves the store exactly as it was.

    Returns:
        Number of records upserted

    Raises:
        MalformedDocument: If the input cannot be parsed
        StorageUnavailable: If the store rejects the batch
    """
    document = parse_document(raw)
    entries = _candidate_entries(document)
    count = store.upsert_many(entries)
    logger.info(f"Imported {count} entries")
    return count


def write_backup(store: EntryStore, directory: Path, exported_at: Optional[int] = None) -> Path:
    """Export the store to ``directory`` under the dated backup filename.

    Returns:
        Path of the written backup file
    """
    document = export_document(store, exported_at=exported_at)
    path = directory / backup_filename(document["exportedAt"])
    locked_atomic_write(path, dumps_document(document))
    logger.info(f"Exported {len(document['entries'])} entries to {path}")
    return path


def read_backup(store: EntryStore, path: Path) -> int:
    """Import a backup file into the store.

    Raises:
        FileNotFoundError: If the file does not exist
        MalformedDocument: If the file is not a valid document
    """
    return import_document(store, path.read_bytes())
