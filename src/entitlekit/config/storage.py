"""Data directory helpers (HTTP cache location)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "entitlekit"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


def get_data_dir() -> Path:
    """Return the directory where entitlekit stores persistent data."""

    env_dir = os.getenv("ENTITLEKIT_DATA_DIR")
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")

    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_http_cache_path() -> Path:
    """Return the HTTP cache database path, ensuring the data directory exists."""

    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / HTTP_CACHE_FILENAME
