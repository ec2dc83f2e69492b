"""Configuration loading for pd-tracker.

Settings come from a ``.toml`` or ``.json`` file in the project root,
with defaults for everything. ``PD_TRACKER_DATA_DIR`` overrides the
data directory.
"""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .assets import DEFAULT_CACHE_NAME, DEFAULT_MANIFEST

DATA_DIR_ENV = "PD_TRACKER_DATA_DIR"


@dataclass
class TrackerConfig:
    """Configuration for a device's tracker data."""

    project_root: Path = field(default_factory=Path.cwd)

    # Storage (relative to project_root unless absolute)
    data_dir: str = ".pd_tracker"
    db_name: str = "pd_tracker.db"

    # Where exported backups are written
    backup_dir: str = ".pd_tracker/backups"

    # Offline asset cache
    cache_dir: str = ".pd_tracker/cache"
    cache_name: str = DEFAULT_CACHE_NAME
    asset_origin: str = "static"
    asset_manifest: list[str] = field(default_factory=lambda: list(DEFAULT_MANIFEST))

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.project_root / path

    def get_data_path(self) -> Path:
        return self._resolve(self.data_dir)

    def get_db_path(self) -> Path:
        return self.get_data_path() / self.db_name

    def get_backup_path(self) -> Path:
        return self._resolve(self.backup_dir)

    def get_cache_path(self) -> Path:
        return self._resolve(self.cache_dir)

    def get_asset_origin(self) -> Path:
        return self._resolve(self.asset_origin)


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def dict_to_config(data: dict[str, Any], project_root: Path) -> TrackerConfig:
    """Convert dictionary to TrackerConfig."""
    config = TrackerConfig(project_root=project_root)

    if "storage" in data:
        storage = data["storage"]
        if "data_dir" in storage:
            config.data_dir = storage["data_dir"]
        if "db_name" in storage:
            config.db_name = storage["db_name"]

    if "backup" in data:
        if "dir" in data["backup"]:
            config.backup_dir = data["backup"]["dir"]

    if "assets" in data:
        assets = data["assets"]
        if "cache_dir" in assets:
            config.cache_dir = assets["cache_dir"]
        if "cache_name" in assets:
            config.cache_name = assets["cache_name"]
        if "origin" in assets:
            config.asset_origin = assets["origin"]
        if "manifest" in assets:
            config.asset_manifest = list(assets["manifest"])

    return config


def find_config_file(project_root: Path) -> Optional[Path]:
    """Find configuration file in project root.

    Search order:
    1. pd_tracker.toml
    2. pd_tracker.json
    3. .pd_tracker.toml
    4. .pd_tracker.json
    """
    candidates = [
        "pd_tracker.toml",
        "pd_tracker.json",
        ".pd_tracker.toml",
        ".pd_tracker.json",
    ]

    for name in candidates:
        path = project_root / name
        if path.is_file():
            return path

    return None


def load_config(project_root: Path, config_path: Optional[Path] = None) -> TrackerConfig:
    """Load tracker configuration.

    Args:
        project_root: Directory that relative paths are resolved against
        config_path: Optional explicit path to config file

    Returns:
        TrackerConfig instance

    Raises:
        ValueError: If the config file type is not supported
    """
    if config_path is None:
        config_path = find_config_file(project_root)

    if config_path is None:
        config = TrackerConfig(project_root=project_root)
    else:
        suffix = config_path.suffix.lower()
        if suffix == ".toml":
            config = dict_to_config(load_toml_config(config_path), project_root)
        elif suffix == ".json":
            config = dict_to_config(load_json_config(config_path), project_root)
        else:
            raise ValueError(f"Unsupported config file type: {suffix}")

    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        config.data_dir = env_dir

    return config
