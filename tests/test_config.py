"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest

from pd_tracker.config import (
    TrackerConfig,
    dict_to_config,
    find_config_file,
    load_config,
)


class TestFindConfigFile:
    """Tests for find_config_file."""

    def test_finds_toml_first(self, temp_project):
        (temp_project / "pd_tracker.toml").write_text("")
        (temp_project / "pd_tracker.json").write_text("{}")

        assert find_config_file(temp_project).name == "pd_tracker.toml"

    def test_finds_json(self, temp_project):
        (temp_project / "pd_tracker.json").write_text("{}")
        assert find_config_file(temp_project).name == "pd_tracker.json"

    def test_finds_dotfile(self, temp_project):
        (temp_project / ".pd_tracker.toml").write_text("")
        assert find_config_file(temp_project).name == ".pd_tracker.toml"

    def test_returns_none_if_no_config(self, temp_project):
        assert find_config_file(temp_project) is None


class TestDictToConfig:

    def test_defaults(self, temp_project):
        config = dict_to_config({}, temp_project)
        assert config.get_db_path() == temp_project / ".pd_tracker" / "pd_tracker.db"
        assert config.cache_name == "pd-tracker-cache-v3"

    def test_all_sections(self, temp_project):
        config = dict_to_config({
            "storage": {"data_dir": "data", "db_name": "j.db"},
            "backup": {"dir": "out"},
            "assets": {
                "cache_dir": "c",
                "cache_name": "pd-tracker-cache-v4",
                "origin": "web",
                "manifest": ["./", "./app.js"],
            },
        }, temp_project)

        assert config.get_db_path() == temp_project / "data" / "j.db"
        assert config.get_backup_path() == temp_project / "out"
        assert config.get_cache_path() == temp_project / "c"
        assert config.get_asset_origin() == temp_project / "web"
        assert config.cache_name == "pd-tracker-cache-v4"
        assert config.asset_manifest == ["./", "./app.js"]

    def test_absolute_paths_kept(self, temp_project, tmp_path):
        config = dict_to_config({"storage": {"data_dir": str(tmp_path)}}, temp_project)
        assert config.get_data_path() == tmp_path


class TestLoadConfig:

    def test_no_file_uses_defaults(self, temp_project):
        config = load_config(temp_project)
        assert config.project_root == temp_project
        assert config.data_dir == TrackerConfig().data_dir

    def test_loads_toml(self, temp_project):
        (temp_project / "pd_tracker.toml").write_text(
            '[storage]\ndata_dir = "journal"\n\n[backup]\ndir = "backups"\n'
        )
        config = load_config(temp_project)
        assert config.data_dir == "journal"
        assert config.backup_dir == "backups"

    def test_loads_json(self, temp_project):
        (temp_project / "pd_tracker.json").write_text(
            json.dumps({"assets": {"cache_name": "v9"}})
        )
        assert load_config(temp_project).cache_name == "v9"

    def test_explicit_path(self, temp_project):
        path = temp_project / "custom.toml"
        path.write_text('[storage]\ndb_name = "x.db"\n')
        assert load_config(temp_project, path).db_name == "x.db"

    def test_unsupported_suffix(self, temp_project):
        path = temp_project / "config.yaml"
        path.write_text("")
        with pytest.raises(ValueError, match="Unsupported"):
            load_config(temp_project, path)

    def test_env_overrides_data_dir(self, temp_project, monkeypatch):
        (temp_project / "pd_tracker.toml").write_text('[storage]\ndata_dir = "journal"\n')
        monkeypatch.setenv("PD_TRACKER_DATA_DIR", "/tmp/elsewhere")
        assert load_config(temp_project).get_data_path() == Path("/tmp/elsewhere")
