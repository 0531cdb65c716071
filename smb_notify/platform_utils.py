"""
Cross-platform utilities for SMB Notifier.

Centralises the OS-detection logic so the config and logging code can
import a single canonical set of helpers rather than scattering
``sys.platform`` checks throughout the codebase.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"

APP_DIR_NAME = "SmbNotifier"

# ---- directories -------------------------------------------------------


def _config_base() -> Path:
    if IS_WINDOWS:
        return Path(os.environ.get("APPDATA") or Path.home())
    if IS_MACOS:
        return Path.home() / "Library" / "Application Support"
    return Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")


def get_config_dir() -> Path:
    """
    Return the per-user SmbNotifier directory, creating it on first use.

    Lives under ``%APPDATA%`` on Windows, ``~/Library/Application Support``
    on macOS and ``$XDG_CONFIG_HOME`` (or ``~/.config``) elsewhere.
    """
    path = _config_base() / APP_DIR_NAME
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_log_path() -> Path:
    """Rotating log file kept next to ``config.json``."""
    return get_config_dir() / "smb_notifier.log"
