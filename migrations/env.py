"""Alembic environment for feedmatch.

Migrations always run against `matcher.database.get_engine()`, the same
engine the service and CLI use, so DATA_DIR decides which file is migrated.
"""

from __future__ import annotations

import logging
from logging.config import fileConfig

from alembic import context
from sqlmodel import SQLModel

from matcher import database
from matcher import models  # noqa: F401  (registers the tables)

config = context.config

# A bare `alembic` invocation gets the ini logging; under feedmatch the
# application's handlers are already installed.
if config.config_file_name and not logging.getLogger().handlers:
    fileConfig(config.config_file_name)


def _configure(**kwargs) -> None:
    # SQLite cannot ALTER most constraints in place, so alterations are batched.
    context.configure(
        target_metadata=SQLModel.metadata,
        render_as_batch=True,
        compare_type=True,
        **kwargs,
    )


if context.is_offline_mode():
    _configure(url=str(database.get_engine().url), literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()
else:
    with database.get_engine().connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()
