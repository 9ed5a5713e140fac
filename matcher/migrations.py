"""Schema versioning for the feedmatch database.

`main.py` only needs three things: where the schema stands
(`get_status`), bringing it to head (`run_migrations`), and adopting a
database that `init_db` created without alembic (`stamp_if_needed`).
Revision state is read through the application engine, so whatever
database `matcher.database` points at is the one inspected.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional, Tuple

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect

from . import database
from .config import PROJECT_ROOT
from .logging_config import get_logger

logger = get_logger(__name__)

# Any table from the initial revision marks a database created by init_db.
_SCHEMA_MARKER_TABLE = "feed_filters"


def _alembic_config() -> Config:
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    return config


def _database_file() -> Optional[Path]:
    name = database.get_engine().url.database
    return Path(name) if name and name != ":memory:" else None


def _current_revision() -> Optional[str]:
    with database.get_engine().connect() as conn:
        return MigrationContext.configure(conn).get_current_revision()


def get_status() -> Tuple[Optional[str], str]:
    """(revision the database is at, head revision of the scripts)."""
    head = ScriptDirectory.from_config(_alembic_config()).get_current_head() or "unknown"
    db_file = _database_file()
    if db_file is not None and not db_file.exists():
        return None, head
    return _current_revision(), head


def run_migrations(backup: bool = True) -> None:
    """Upgrade to head, keeping a `.bak` copy of the previous database file."""
    db_file = _database_file()
    if backup and db_file is not None and db_file.exists():
        backup_file = db_file.with_suffix(db_file.suffix + ".bak")
        shutil.copy2(db_file, backup_file)
        logger.info(f"Backed up database to {backup_file}")
    command.upgrade(_alembic_config(), "head")


def stamp_if_needed() -> None:
    """Mark an unversioned database that already holds the schema as head."""
    db_file = _database_file()
    if db_file is not None and not db_file.exists():
        return
    with database.get_engine().connect() as conn:
        tables = inspect(conn)
        if tables.has_table("alembic_version") or not tables.has_table(_SCHEMA_MARKER_TABLE):
            return
    logger.info("Stamping existing database at the current schema revision")
    command.stamp(_alembic_config(), "head")
