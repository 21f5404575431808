"""
Configuration management for Timetrack
Handles loading and saving system settings and user preferences.

Deployment credentials (database location, identity signing secret) can be
supplied through environment variables, which take precedence over the
JSON files on disk.
"""

import json
import os
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Dict, Any, Optional
from zoneinfo import ZoneInfo


# Environment variables that override file settings
ENV_OVERRIDES = {
    "TIMETRACK_DATABASE_PATH": "database_path",
    "TIMETRACK_IDENTITY_SECRET": "identity_secret",
    "TIMETRACK_LOG_LEVEL": "log_level",
    "TIMETRACK_TIMEZONE": "timezone",
}


class Config:
    """Configuration manager for the time tracker"""

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration manager

        Args:
            config_dir: Path to configuration directory (defaults to
                $TIMETRACK_CONFIG_DIR or ./config)
        """
        if config_dir is None:
            env_dir = os.environ.get("TIMETRACK_CONFIG_DIR")
            if env_dir:
                config_dir = Path(env_dir)
            else:
                config_dir = Path(__file__).parent.parent.parent / "config"

        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.settings_file = self.config_dir / "settings.json"
        self.preferences_file = self.config_dir / "preferences.json"

        # Load configurations
        self.settings = self._load_json(self.settings_file, self._default_settings())
        self.preferences = self._load_json(self.preferences_file, self._default_preferences())

        self._apply_env_overrides()

    def _load_json(self, file_path: Path, default: Dict[str, Any]) -> Dict[str, Any]:
        """Load JSON file or return default if file doesn't exist"""
        if file_path.exists():
            with open(file_path, 'r') as f:
                loaded = json.load(f)
            # Keys added in newer versions fall back to their defaults
            return {**default, **loaded}
        else:
            # Create file with defaults
            self._save_json(file_path, default)
            return dict(default)

    def _save_json(self, file_path: Path, data: Dict[str, Any]) -> None:
        """Save data to JSON file"""
        with open(file_path, 'w') as f:
            json.dump(data, f, indent=2)

    def _apply_env_overrides(self) -> None:
        for env_name, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                self.settings[key] = value

    def _default_settings(self) -> Dict[str, Any]:
        """Default system settings"""
        return {
            "database_path": "data/database/timetrack.db",
            "local_state_path": "data/local_state.json",
            "identity_secret": "change-me",
            "identity_audience": "timetrack",
            "identity_issuer": "timetrack-identity",
            "token_ttl_seconds": 3600,
            "max_failed_sign_ins": 5,
            "password_hash_method": "pbkdf2:sha256",
            "session_cookie_name": "auth-token",
            "session_cookie_samesite": "lax",
            "login_path": "/login",
            "timezone": "UTC",
            "log_level": "INFO",
            "read_retries": 3,
            "retry_delay_seconds": 0.05,
        }

    def _default_preferences(self) -> Dict[str, Any]:
        """Default user preferences"""
        return {
            "first_day_of_week": "sunday",
            "analytics_months": 6,
            "top_tasks_limit": 10,
            "default_task_priority": "medium",
            "weekly_goal_hours": 40,
        }

    def get(self, key: str, section: str = "settings", default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            key: Configuration key
            section: Configuration section ('settings', 'preferences')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        section_map = {
            "settings": self.settings,
            "preferences": self.preferences
        }

        return section_map.get(section, {}).get(key, default)

    def set(self, key: str, value: Any, section: str = "settings") -> None:
        """
        Set configuration value and save to disk

        Args:
            key: Configuration key
            value: Value to set
            section: Configuration section ('settings', 'preferences')
        """
        section_map = {
            "settings": (self.settings, self.settings_file),
            "preferences": (self.preferences, self.preferences_file)
        }

        if section in section_map:
            config_dict, file_path = section_map[section]
            config_dict[key] = value
            self._save_json(file_path, config_dict)

    def _resolve(self, value: str) -> Path:
        path = Path(value)
        if path.is_absolute():
            return path
        base_path = Path(__file__).parent.parent.parent
        return base_path / path

    def get_database_path(self) -> Path:
        """Get full path to database file"""
        return self._resolve(self.settings["database_path"])

    def get_local_state_path(self) -> Path:
        """Get full path to the last-known-user state file"""
        return self._resolve(self.settings["local_state_path"])

    def get_timezone(self) -> tzinfo:
        """
        Zone used for calendar bucketing ("UTC" or an IANA name).

        Raises:
            zoneinfo.ZoneInfoNotFoundError: If the configured name is unknown
        """
        name = self.settings.get("timezone") or "UTC"
        if name.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(name)

    def now(self) -> datetime:
        """Current time in the configured zone."""
        return datetime.now(self.get_timezone())
