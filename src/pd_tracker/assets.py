"""Versioned offline cache of the app's static assets.

Each cache generation is a directory under the cache root named after
its version tag. Installing fills the current generation from a fixed
manifest; activating deletes every other generation. Lookups are served
cache-first with a fallback to the origin, and fallback responses are
never written back into the cache.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, Optional, Sequence

from loguru import logger

from .locking import atomic_write, file_lock
from .store import TrackerError

DEFAULT_CACHE_NAME = "pd-tracker-cache-v3"
DEFAULT_MANIFEST = (
    "./",
    "./index.html",
    "./app.js",
    "./manifest.json",
    "./service-worker.js",
    "./Icon-192.png",
    "./Icon-512.png",
)

# Cache key used on disk for the root request "./"
ROOT_KEY = "index.html"

Fetcher = Callable[[str], bytes]


class AssetFetchError(TrackerError):
    """Raised when an asset cannot be fetched from its origin."""
    pass


def asset_key(request_path: str) -> str:
    """Map a request path like ``./app.js`` to its relative file name.

    Raises:
        ValueError: If the path escapes the cache directory
    """
    key = request_path.strip()
    while key.startswith("./"):
        key = key[2:]
    key = key.lstrip("/")
    if not key:
        return ROOT_KEY
    parts = Path(key).parts
    if ".." in parts:
        raise ValueError(f"Asset path escapes cache: {request_path}")
    return key


def directory_fetcher(origin: Path) -> Fetcher:
    """Fetcher that serves assets from a local origin directory."""

    def fetch(request_path: str) -> bytes:
        path = origin / asset_key(request_path)
        try:
            return path.read_bytes()
        except OSError as e:
            raise AssetFetchError(f"Cannot fetch {request_path}: {e}") from e

    return fetch


class AssetCache:
    """Named, versioned cache of a fixed asset manifest."""

    def __init__(
        self,
        root: Path,
        fetch: Fetcher,
        name: str = DEFAULT_CACHE_NAME,
        manifest: Sequence[str] = DEFAULT_MANIFEST,
    ):
        self.root = root
        self.name = name
        self.manifest = tuple(manifest)
        self._fetch = fetch

    @property
    def path(self) -> Path:
        """Directory of the current generation."""
        return self.root / self.name

    def generations(self) -> list[str]:
        """Names of every cache generation on disk."""
        if not self.root.exists():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir() and not p.name.startswith("."))

    def install(self) -> list[str]:
        """Fetch every manifest asset into the current generation.

        Assets are staged in a scratch directory first; a failed fetch
        leaves no partial generation behind.

        Returns:
            Cache keys written

        Raises:
            AssetFetchError: If any asset fails to fetch
        """
        staging = self.root / f".{self.name}.staging"
        with file_lock(self.root / self.name):
            if staging.exists():
                shutil.rmtree(staging)
            try:
                keys = []
                for request_path in self.manifest:
                    key = asset_key(request_path)
                    if key in keys:
                        continue
                    try:
                        body = self._fetch(request_path)
                    except AssetFetchError:
                        raise
                    except Exception as e:
                        raise AssetFetchError(f"Cannot fetch {request_path}: {e}") from e
                    atomic_write(staging / key, body)
                    keys.append(key)

                if self.path.exists():
                    shutil.rmtree(self.path)
                staging.mkdir(parents=True, exist_ok=True)
                staging.rename(self.path)
            except Exception:
                if staging.exists():
                    shutil.rmtree(staging)
                raise

        logger.info(f"Installed asset cache {self.name} ({len(keys)} assets)")
        return keys

    def activate(self) -> list[str]:
        """Delete every cache generation other than the current one.

        Returns:
            Names of the deleted generations
        """
        deleted = []
        with file_lock(self.root / self.name):
            for name in self.generations():
                if name != self.name:
                    shutil.rmtree(self.root / name)
                    deleted.append(name)
        if deleted:
            logger.info(f"Activated {self.name}, removed old caches: {', '.join(deleted)}")
        return deleted

    def match(self, request_path: str) -> Optional[bytes]:
        """Cached body for a request, or None on a miss."""
        path = self.path / asset_key(request_path)
        if not path.is_file():
            return None
        return path.read_bytes()

    def respond(self, request_path: str) -> bytes:
        """Serve from the cache, falling back to the origin on a miss.

        The fallback response is returned as-is and not cached.
        """
        cached = self.match(request_path)
        if cached is not None:
            return cached
        logger.debug(f"Asset cache miss: {request_path}")
        return self._fetch(request_path)
