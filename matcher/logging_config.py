"""Logging for feedmatch.

Two streams are configured:

- the application log: rich console output at the `[logging] level` from
  config.ini, plus everything at DEBUG in `feedmatch.log`;
- the decision log: one line per processed item (what it matched, or why
  it went to the manual queue) in `decisions.log`, kept out of the console
  so a busy feed does not drown the service output.

Both files live in DATA_DIR and rotate at 10MB with 5 backups.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

DECISION_LOGGER = "feedmatch.decisions"
APP_LOG_FILENAME = "feedmatch.log"
DECISION_LOG_FILENAME = "decisions.log"

_ROTATE_BYTES = 10 * 1024 * 1024
_ROTATE_BACKUPS = 5

# The config monitor watches the database directory, so every SQLite write
# makes watchdog and its inotify buffer chatter at DEBUG.
_QUIET_LOGGERS = (
    "watchdog",
    "watchdog.observers",
    "watchdog.observers.inotify_buffer",
    "uvicorn.access",
    "sqlalchemy.engine",
)

_logging_initialized = False


def _default_log_dir() -> Path:
    # Mirrors config.DATA_DIR; config imports this module, not the other way round.
    env = os.environ.get("DATA_DIR")
    if env:
        return Path(env)
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


def _rotating_file(path: Path, fmt: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path, maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _parse_level(level: str) -> int:
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    level: str = "INFO",
    *,
    decisions: bool = True,
    log_dir: Optional[Path] = None,
) -> None:
    """Install the console, application-file and decision-file handlers.

    Calling it again is a no-op, so every CLI command can call it freely.
    With ``decisions=False`` decision lines go to the application log
    like any other record.
    """
    global _logging_initialized

    if _logging_initialized:
        return

    directory = log_dir or _default_log_dir()
    directory.mkdir(parents=True, exist_ok=True)

    console_handler = RichHandler(
        console=Console(theme=Theme({"logging.level.info": "bold cyan"})),
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    console_handler.setLevel(_parse_level(level))

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(console_handler)
    root.addHandler(
        _rotating_file(directory / APP_LOG_FILENAME, "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s")
    )

    decision_logger = logging.getLogger(DECISION_LOGGER)
    decision_logger.setLevel(logging.INFO)
    if decisions:
        decision_logger.addHandler(
            _rotating_file(directory / DECISION_LOG_FILENAME, "%(asctime)s %(message)s")
        )
        decision_logger.propagate = False

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Route alembic through the handlers above even if its ini logging ran first
    alembic_logger = logging.getLogger("alembic")
    alembic_logger.handlers = []
    alembic_logger.propagate = True

    _logging_initialized = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_decision_logger() -> logging.Logger:
    """Logger that receives one line per item decision."""
    return logging.getLogger(DECISION_LOGGER)
