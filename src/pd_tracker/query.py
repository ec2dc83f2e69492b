"""Filtering and ordering of entry snapshots.

Pure functions over a snapshot returned by ``EntryStore.get_all()``.
Nothing here touches the store; callers re-run a search after every
mutation to get a fresh view.
"""

from __future__ import annotations

from numbers import Real
from typing import Any, Iterable, Optional

from .models import Entry


def normalize_query(query: Optional[str]) -> str:
    """Trim and lower-case a search string. None becomes empty."""
    return (query or "").strip().lower()


def _sort_key(entry: Entry) -> tuple[Any, ...]:
    # Numeric timestamps first, newest first; anything else after them.
    ts = entry.ts
    if isinstance(ts, Real) and not isinstance(ts, bool):
        return (0, -ts, entry.id)
    return (1, 0, entry.id)


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Order entries by ``ts`` descending, ties by ``id`` ascending."""
    return sorted(entries, key=_sort_key)


def matches(entry: Entry, q: str) -> bool:
    """True if the normalized query is a substring of the entry's tag or text."""
    tag = str(entry.tag or "").lower()
    text = str(entry.text or "").lower()
    return q in tag or q in text


def search_entries(snapshot: Iterable[Entry], query: Optional[str] = "") -> list[Entry]:
    """Produce the entry list to display for a query.

    Args:
        snapshot: Every entry currently in the store
        query: Free-text filter; empty means no filter

    Returns:
        Matching entries, most recent first
    """
    q = normalize_query(query)
    ordered = sort_entries(snapshot)
    if not q:
        return ordered
    return [e for e in ordered if matches(e, q)]
