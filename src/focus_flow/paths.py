"""Locate the activity database written by the desktop backend."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "FocusFlow"
DB_FILENAME = "activity.sqlite3"
DB_PATH_ENV = "FOCUS_FLOW_DB"


def get_data_dir() -> Path:
    return PlatformDirs(appname=APP_NAME, appauthor=APP_NAME, roaming=True).user_data_path


def get_db_path() -> Path:
    """Return ``$FOCUS_FLOW_DB`` when set, else the per-user data location."""
    override = os.environ.get(DB_PATH_ENV)
    if override:
        return Path(override).expanduser()
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / DB_FILENAME
