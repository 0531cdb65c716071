"""Configuration management for SMB Notifier.

Stores and retrieves settings from a JSON config file in the
platform-appropriate application data directory.  Connection
credentials are never stored here; they come from the command line.
"""

import json
import logging
import math
from pathlib import Path
from typing import Any

from smb_notify.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from smb_notify.platform_utils import (
    get_log_path as _platform_log_path,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 500
MIN_POLL_INTERVAL_MS = 50
DEFAULT_SMB_PORT = 445

DEFAULT_CONFIG: dict[str, Any] = {
    "poll_interval_ms": DEFAULT_POLL_INTERVAL_MS,
    "smb_port": DEFAULT_SMB_PORT,
    "connection_timeout_seconds": 60,
    "include_patterns": [],  # Glob patterns to report (e.g. ["*.mp3"])
    "exclude_patterns": [],  # Glob patterns to ignore (e.g. ["*.tmp", "~*"])
    "log_level": "INFO",
    # ---- log rotation ----
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
}


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


def get_log_path() -> Path:
    """Return the path to the log file."""
    return _platform_log_path()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same_kind(value: Any, default: Any) -> bool:
    """Return True if a stored *value* can stand in for *default*."""
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(default, int):
        return _is_number(value)
    return isinstance(value, type(default))


class Config:
    """Configuration manager backed by a JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    # ---- persistence ----

    def load(self) -> None:
        """Read the JSON file; keys that are missing or mistyped keep defaults.

        A missing file is written out with the defaults so users have
        something to edit.
        """
        self._data = dict(DEFAULT_CONFIG)
        if not self._path.exists():
            self.save()
            logger.info("Created default configuration at %s", self._path)
            return
        try:
            stored = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Could not read config (%s); using defaults.", exc)
            return
        if not isinstance(stored, dict):
            logger.warning("Config %s is not a JSON object; using defaults.", self._path)
            return
        for key, value in stored.items():
            default = DEFAULT_CONFIG.get(key)
            if default is not None and not _same_kind(value, default):
                logger.warning("Ignoring config %s=%r (expected %s)",
                               key, value, type(default).__name__)
                continue
            self._data[key] = value
        logger.info("Configuration loaded from %s", self._path)

    def save(self) -> None:
        """Write the current settings back to the JSON file."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    def _int(self, key: str) -> int:
        value = self._data.get(key)
        if not _is_number(value) or not math.isfinite(value):
            return DEFAULT_CONFIG[key]
        return int(value)

    def _patterns(self, key: str) -> list[str]:
        value = self._data.get(key)
        if not isinstance(value, list):
            return []
        return [p for p in value if isinstance(p, str) and p.strip()]

    # ---- polling ----

    @property
    def poll_interval_ms(self) -> int:
        """Return the poll interval in milliseconds."""
        return max(MIN_POLL_INTERVAL_MS, self._int("poll_interval_ms"))

    @poll_interval_ms.setter
    def poll_interval_ms(self, value: int) -> None:
        """Set the poll interval (minimum 50 ms)."""
        self._data["poll_interval_ms"] = max(MIN_POLL_INTERVAL_MS, int(value))

    # ---- connection ----

    @property
    def smb_port(self) -> int:
        """Return the TCP port used for SMB sessions."""
        return self._int("smb_port")

    @smb_port.setter
    def smb_port(self, value: int) -> None:
        port = int(value)
        if not 0 < port < 65536:
            port = DEFAULT_SMB_PORT
        self._data["smb_port"] = port

    @property
    def connection_timeout(self) -> int:
        """Return the SMB connection timeout in seconds."""
        return self._int("connection_timeout_seconds")

    @connection_timeout.setter
    def connection_timeout(self, value: int) -> None:
        """Set the SMB connection timeout (minimum 1 s)."""
        self._data["connection_timeout_seconds"] = max(1, int(value))

    # ---- filtering ----

    @property
    def include_patterns(self) -> list[str]:
        """Glob patterns a name must match to be reported (empty = all)."""
        return self._patterns("include_patterns")

    @include_patterns.setter
    def include_patterns(self, value: list[str]) -> None:
        self._data["include_patterns"] = [p.strip() for p in value if p.strip()]

    @property
    def exclude_patterns(self) -> list[str]:
        """Glob patterns for names that are never reported."""
        return self._patterns("exclude_patterns")

    @exclude_patterns.setter
    def exclude_patterns(self, value: list[str]) -> None:
        self._data["exclude_patterns"] = [p.strip() for p in value if p.strip()]

    # ---- logging ----

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        value = self._data.get("log_level")
        return value if isinstance(value, str) and value.strip() else "INFO"

    @log_level.setter
    def log_level(self, value: str) -> None:
        self._data["log_level"] = value.strip().upper() or "INFO"

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return self._int("max_log_size_mb")

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return self._int("log_backup_count")

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        """Set the number of rotated log backups to keep."""
        self._data["log_backup_count"] = max(0, int(value))
