"""Shared pytest fixtures for pd-tracker tests."""

import tempfile
from pathlib import Path

import pytest

from pd_tracker.config import TrackerConfig
from pd_tracker.engine import TrackerEngine
from pd_tracker.models import Entry
from pd_tracker.store import EntryStore


@pytest.fixture(autouse=True)
def _no_data_dir_env(monkeypatch):
    """Keep a developer's PD_TRACKER_DATA_DIR out of the tests."""
    monkeypatch.delenv("PD_TRACKER_DATA_DIR", raising=False)


@pytest.fixture
def temp_project():
    """Create a temporary project directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_project):
    """Create a test configuration."""
    return TrackerConfig(project_root=temp_project)


@pytest.fixture
def store(config):
    """Open an entry store with proper cleanup."""
    s = EntryStore(config.get_db_path())
    yield s
    s.close()


@pytest.fixture
def engine(config, store):
    """Create a test engine sharing the store fixture."""
    return TrackerEngine(config, store=store)


@pytest.fixture
def sample_entries():
    """The two-entry snapshot used throughout the query examples."""
    return [
        Entry(id="a", ts=100, tag="mood", text="fine"),
        Entry(id="b", ts=200, tag="", text="great day"),
    ]
