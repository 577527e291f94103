"""Where prwright keeps its config file and state database."""

from __future__ import annotations

import os
import sys
from pathlib import Path

_APP_NAME = "prwright"


def _user_dir(override_var: str, windows_var: str, windows_default: Path,
              xdg_var: str, xdg_default: Path) -> Path:
    override = os.environ.get(override_var)
    if override:
        return Path(override)
    if sys.platform == "win32":
        return Path(os.environ.get(windows_var, windows_default)) / _APP_NAME
    if sys.platform == "darwin":
        # Config and data share one folder on macOS
        return Path.home() / "Library" / "Application Support" / _APP_NAME
    return Path(os.environ.get(xdg_var, xdg_default)) / _APP_NAME


def get_config_dir() -> Path:
    """Directory searched for ``config.yaml``; ``PRWRIGHT_CONFIG_DIR`` overrides it."""
    return _user_dir(
        "PRWRIGHT_CONFIG_DIR",
        "APPDATA", Path.home() / "AppData" / "Roaming",
        "XDG_CONFIG_HOME", Path.home() / ".config",
    )


def get_data_dir() -> Path:
    """Directory holding ``state.db``; ``PRWRIGHT_DATA_DIR`` overrides it."""
    return _user_dir(
        "PRWRIGHT_DATA_DIR",
        "LOCALAPPDATA", Path.home() / "AppData" / "Local",
        "XDG_DATA_HOME", Path.home() / ".local" / "share",
    )
