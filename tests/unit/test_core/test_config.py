"""
Unit tests for the config module.
Tests JSON loading, defaults, persistence and environment overrides.
"""

import json
import pytest
from datetime import timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from timetrack.core.config import Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("TIMETRACK_CONFIG_DIR", "TIMETRACK_DATABASE_PATH",
                 "TIMETRACK_IDENTITY_SECRET", "TIMETRACK_LOG_LEVEL", "TIMETRACK_TIMEZONE"):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:

    def test_creates_default_files(self, tmp_path):
        """First load writes settings.json and preferences.json."""
        Config(tmp_path)

        assert (tmp_path / "settings.json").exists()
        assert (tmp_path / "preferences.json").exists()

    def test_default_values(self, tmp_path):
        config = Config(tmp_path)

        assert config.get("session_cookie_name") == "auth-token"
        assert config.get("token_ttl_seconds") == 3600
        assert config.get("first_day_of_week", "preferences") == "sunday"
        assert config.get("analytics_months", "preferences") == 6

    def test_missing_key_returns_default(self, tmp_path):
        config = Config(tmp_path)

        assert config.get("nope", default="fallback") == "fallback"
        assert config.get("session_cookie_name", section="unknown") is None

    def test_config_dir_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TIMETRACK_CONFIG_DIR", str(tmp_path / "envconf"))

        config = Config()

        assert config.config_dir == tmp_path / "envconf"
        assert (tmp_path / "envconf" / "settings.json").exists()


class TestLoading:

    def test_loaded_values_merge_with_defaults(self, tmp_path):
        """Keys missing from an older file fall back to defaults."""
        (tmp_path / "settings.json").write_text(json.dumps({"log_level": "DEBUG"}))

        config = Config(tmp_path)

        assert config.get("log_level") == "DEBUG"
        assert config.get("max_failed_sign_ins") == 5

    def test_set_persists_to_disk(self, tmp_path):
        config = Config(tmp_path)
        config.set("weekly_goal_hours", 30, section="preferences")

        reloaded = Config(tmp_path)
        assert reloaded.get("weekly_goal_hours", "preferences") == 30

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TIMETRACK_IDENTITY_SECRET", "from-env")
        monkeypatch.setenv("TIMETRACK_DATABASE_PATH", str(tmp_path / "env.db"))

        config = Config(tmp_path)

        assert config.get("identity_secret") == "from-env"
        assert config.get_database_path() == tmp_path / "env.db"


class TestPaths:

    def test_relative_paths_resolve_against_project_root(self, tmp_path):
        config = Config(tmp_path)
        project_root = Path(__file__).parent.parent.parent.parent

        assert config.get_database_path() == project_root / "data" / "database" / "timetrack.db"
        assert config.get_local_state_path() == project_root / "data" / "local_state.json"

    def test_absolute_paths_kept(self, tmp_path):
        config = Config(tmp_path)
        config.set("database_path", str(tmp_path / "abs.db"))

        assert config.get_database_path() == tmp_path / "abs.db"


class TestTimezone:

    def test_defaults_to_utc(self, tmp_path):
        config = Config(tmp_path)

        assert config.get_timezone() is timezone.utc
        assert config.now().utcoffset() == timedelta(0)

    def test_named_zone(self, tmp_path):
        (tmp_path / "settings.json").write_text(json.dumps({"timezone": "America/New_York"}))

        config = Config(tmp_path)

        assert config.get_timezone() == ZoneInfo("America/New_York")
        assert config.now().tzinfo == ZoneInfo("America/New_York")

    def test_zone_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TIMETRACK_TIMEZONE", "Europe/Berlin")

        assert Config(tmp_path).get_timezone() == ZoneInfo("Europe/Berlin")


def test_read_retry_delay_is_short_by_default(tmp_path):
    assert Config(tmp_path).get("retry_delay_seconds") <= 0.1
