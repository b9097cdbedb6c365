"""
Application configuration loaded from / saved to a JSON file.

Manages the Gemini API key and model, request timeout, snapshot timing,
recording limits, and the last used directory.
"""

import json
import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

API_KEY_ENV = "API_KEY"

DEFAULT_CONFIG = {
    "api_key": "",
    "model": "gemini-2.5-pro",
    "request_timeout_s": 120.0,
    "snapshot_delay_ms": 100,
    "max_record_seconds": 180,
    "last_directory": "",
    "log_level": "INFO",
}

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def get_app_data_dir() -> str:
    """Return the application data directory, creating it if needed."""
    base = os.environ.get("APPDATA", os.path.expanduser("~"))
    app_dir = os.path.join(base, "EQTemplateCreator")
    os.makedirs(app_dir, exist_ok=True)
    return app_dir


def get_config_path() -> str:
    return os.path.join(get_app_data_dir(), "config.json")


class AppConfig:
    """Read/write application settings from a JSON config file."""

    def __init__(self, path: str = ""):
        self.path = path or get_config_path()
        self._data: dict = {}
        self.load()

    def load(self):
        """Load config from disk, filling in defaults for missing keys."""
        if os.path.exists(self.path):
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    self._data = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable config %s: %s", self.path, e)
                self._data = {}
        else:
            self._data = {}
        if not isinstance(self._data, dict):
            logger.warning("Ignoring config %s: not a JSON object", self.path)
            self._data = {}
        # Merge defaults
        self._data = _deep_merge(DEFAULT_CONFIG, self._data)

    def save(self):
        """Persist config to disk."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a top-level config value."""
        return self._data.get(key, default)

    def set(self, key: str, value: Any):
        """Set a top-level config value and save."""
        self._data[key] = value
        self.save()

    @property
    def api_key(self) -> str:
        """The API_KEY environment variable wins over the stored key."""
        return os.environ.get(API_KEY_ENV) or self._data.get("api_key", "")

    @api_key.setter
    def api_key(self, key: str):
        self._data["api_key"] = key.strip()
        self.save()

    @property
    def model(self) -> str:
        return self._data.get("model") or DEFAULT_CONFIG["model"]

    @property
    def request_timeout_s(self) -> float:
        return float(self._data.get("request_timeout_s", 120.0))

    @property
    def snapshot_delay_ms(self) -> int:
        return max(10, min(2000, int(self._data.get("snapshot_delay_ms", 100))))

    @snapshot_delay_ms.setter
    def snapshot_delay_ms(self, val: int):
        self._data["snapshot_delay_ms"] = max(10, min(2000, int(val)))
        self.save()

    @property
    def max_record_seconds(self) -> int:
        return max(1, int(self._data.get("max_record_seconds", 180)))

    @property
    def last_directory(self) -> str:
        return self._data.get("last_directory", "")

    @last_directory.setter
    def last_directory(self, path: str):
        self._data["last_directory"] = path
        self.save()

    @property
    def log_level(self) -> str:
        level = str(self._data.get("log_level", "INFO")).upper()
        return level if level in _LOG_LEVELS else "INFO"


def _deep_merge(defaults: dict, overrides: dict) -> dict:
    """Recursively merge overrides into defaults."""
    result = dict(defaults)
    for k, v in overrides.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result
