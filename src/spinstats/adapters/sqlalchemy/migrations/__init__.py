"""Packaged Alembic migrations for the listening store."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from alembic import command
from alembic.config import Config

from spinstats.config.storage import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = getLogger(__name__)

MIGRATIONS_PATH = Path(__file__).resolve().parent


def alembic_config(database_uri: str | None = None) -> Config:
    """Alembic configuration without an ini file, rooted at this package."""

    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    config.set_main_option("version_locations", str(MIGRATIONS_PATH / "versions"))
    if database_uri is not None:
        # ConfigParser interpolation treats a bare ``%`` as a directive.
        config.set_main_option("sqlalchemy.url", database_uri.replace("%", "%%"))
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Bring the schema to the newest revision, reusing ``engine`` when given."""

    if engine is None:
        command.upgrade(alembic_config(database_uri or get_database_config().uri), "head")
        return
    config = alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
    log.debug("Schema on %s is at head", engine.url.render_as_string(hide_password=True))
