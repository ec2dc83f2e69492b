"""Tracker engine - the operations the app exposes over one entry store."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger

from . import codec
from .assets import AssetCache, directory_fetcher
from .config import TrackerConfig
from .models import Entry, generate_entry_id, now_ms
from .query import search_entries
from .store import EntryStore, TrackerError


class EmptyEntryError(TrackerError):
    """Raised when saving an entry with no text."""
    pass


class ConfirmationRequired(TrackerError):
    """Raised when a destructive operation is called without confirmation."""
    pass


class TrackerEngine:
    """Owns an EntryStore and implements the user-facing operations.

    The store is either passed in or opened from the config at
    construction time; the engine closes it in ``close()``.
    """

    def __init__(self, config: TrackerConfig, store: Optional[EntryStore] = None):
        self.config = config
        self.store = store if store is not None else EntryStore(config.get_db_path())

    def close(self) -> None:
        self.store.close()

    # ========== Entries ==========

    def add_entry(self, text: str, tag: str = "", ts: Optional[int] = None) -> Entry:
        """Save a new entry.

        Args:
            text: Entry body; surrounding whitespace is trimmed
            tag: Optional label
            ts: Occurrence time in epoch ms (default: now)

        Returns:
            The stored Entry with its assigned id

        Raises:
            EmptyEntryError: If text is empty after trimming
            DuplicateKey: If the generated id collides
            StorageUnavailable: If the store cannot be written
        """
        text = (text or "").strip()
        if not text:
            raise EmptyEntryError("Write something first.")

        entry = Entry(
            id=generate_entry_id(),
            ts=ts if ts is not None else now_ms(),
            tag=(tag or "").strip(),
            text=text,
        )
        self.store.insert(entry)
        logger.info(f"Saved entry {entry.id}")
        return entry

    def list_entries(self, query: Optional[str] = "") -> list[Entry]:
        """Entries to display, newest first, filtered by an optional query."""
        return search_entries(self.store.get_all(), query)

    def delete_entry(self, entry_id: str) -> bool:
        return self.store.delete(entry_id)

    def clear_all(self, confirm: bool = False) -> int:
        """Delete every entry on this device.

        Raises:
            ConfirmationRequired: Unless confirm is True
        """
        if not confirm:
            raise ConfirmationRequired(
                "This will delete ALL entries on this device. Pass confirm=True to continue."
            )
        return self.store.clear_all()

    # ========== Backup ==========

    def export_document(self, exported_at: Optional[int] = None) -> dict[str, Any]:
        return codec.export_document(self.store, exported_at=exported_at)

    def export_backup(self, directory: Optional[Path] = None, exported_at: Optional[int] = None) -> Path:
        """Write a dated backup file and return its path."""
        target = directory if directory is not None else self.config.get_backup_path()
        return codec.write_backup(self.store, target, exported_at=exported_at)

    def import_document(self, raw: Union[str, bytes, dict]) -> int:
        return codec.import_document(self.store, raw)

    def import_backup(self, path: Path) -> int:
        """Merge a backup file into the store and return the upsert count."""
        return codec.read_backup(self.store, path)

    # ========== Offline assets ==========

    def asset_cache(self) -> AssetCache:
        """Asset cache for the configured generation and origin."""
        return AssetCache(
            root=self.config.get_cache_path(),
            fetch=directory_fetcher(self.config.get_asset_origin()),
            name=self.config.cache_name,
            manifest=self.config.asset_manifest,
        )
