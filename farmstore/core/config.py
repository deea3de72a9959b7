"""Configuration for the farm store."""

from __future__ import annotations

import configparser
import os
from pathlib import Path
from typing import Any

CONFIG_ENV_VAR = "FARMSTORE_CONFIG"
DEFAULT_CONFIG_FILE = "settings.ini"

DEFAULTS: dict[str, dict[str, str]] = {
    "STORE": {
        "data_dir": "data",
        "tax_rate": "0.07",
    },
    "LOGGING": {
        "level": "WARNING",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "file": "error.log",
        "max_size_mb": "5",
        "backup_count": "3",
        "console_output": "False",
    },
}


class Config:
    """Settings read from an optional ini file layered over built-in defaults."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._config = configparser.ConfigParser(interpolation=None)
        self._config.read_dict(DEFAULTS)
        self.path = self._resolve_path(path)
        if self.path is not None:
            self._config.read(self.path)

    @staticmethod
    def _resolve_path(path: str | Path | None) -> Path | None:
        if path is not None:
            return Path(path)
        from_env = os.environ.get(CONFIG_ENV_VAR)
        if from_env:
            return Path(from_env)
        candidate = Path(DEFAULT_CONFIG_FILE)
        if candidate.exists():
            return candidate
        return None

    def get(self, section: str, key: str, default: Any = None) -> Any:
        try:
            return self._config.get(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return default

    def get_int(self, section: str, key: str, default: Any = None) -> Any:
        try:
            return self._config.getint(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_float(self, section: str, key: str, default: Any = None) -> Any:
        try:
            return self._config.getfloat(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_boolean(self, section: str, key: str, default: Any = None) -> Any:
        try:
            return self._config.getboolean(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def set(self, section: str, key: str, value: Any) -> None:
        if not self._config.has_section(section):
            self._config.add_section(section)
        self._config.set(section, key, str(value))

    def save(self, path: str | Path | None = None) -> Path:
        target = Path(path) if path is not None else (self.path or Path(DEFAULT_CONFIG_FILE))
        with open(target, "w", encoding="utf-8") as handle:
            self._config.write(handle)
        self.path = target
        return target

    @property
    def store_config(self) -> dict:
        return {
            "data_dir": self.get("STORE", "data_dir", "data"),
            "tax_rate": self.get_float("STORE", "tax_rate", 0.07),
        }

    @property
    def log_config(self) -> dict:
        return {
            "level": self.get("LOGGING", "level", "WARNING"),
            "format": self.get("LOGGING", "format", DEFAULTS["LOGGING"]["format"]),
            "file": self.get("LOGGING", "file", "error.log"),
            "max_size_mb": self.get_int("LOGGING", "max_size_mb", 5),
            "backup_count": self.get_int("LOGGING", "backup_count", 3),
            "console_output": self.get_boolean("LOGGING", "console_output", False),
        }


__all__ = ["Config", "CONFIG_ENV_VAR"]
