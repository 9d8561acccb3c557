"""Location of the listening database."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .env import bool_env_var

APP_DIR_NAME = "spinstats"
DATABASE_FILENAME = "spinstats.db"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")


def platform_data_dir() -> Path:
    """Per-user data directory: ``%LOCALAPPDATA%`` on Windows, XDG elsewhere."""

    if os.name == "nt":
        root = os.getenv("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
    else:
        root = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(root).expanduser().resolve() / APP_DIR_NAME


def data_dir(*, create: bool = True) -> Path:
    """``SPINSTATS_DATA_DIR`` when set, otherwise the platform data directory."""

    override = os.getenv("SPINSTATS_DATA_DIR")
    directory = Path(override).expanduser().resolve() if override else platform_data_dir()
    if create:
        directory.mkdir(parents=True, exist_ok=True)
    return directory


def get_database_config() -> DatabaseConfig:
    uri = os.getenv("DATABASE_URI") or f"sqlite+pysqlite:///{data_dir() / DATABASE_FILENAME}"
    return DatabaseConfig(uri=uri, echo=bool_env_var("SPINSTATS_SQL_ECHO"))
