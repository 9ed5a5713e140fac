"""Database connection and session management using SQLModel."""

from __future__ import annotations

from sqlmodel import SQLModel, create_engine

from .config import DATA_DIR, DATABASE_FILENAME

DB_PATH = DATA_DIR / DATABASE_FILENAME
SQLITE_URL = f"sqlite:///{DB_PATH}"


def make_engine(url: str):
    """Create an engine suitable for concurrent item processing.

    check_same_thread=False lets FastAPI worker threads share the pool;
    timeout makes concurrent ledger writers wait on the SQLite lock instead
    of failing with "database is locked".
    """
    return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})


engine = make_engine(SQLITE_URL)


def init_db() -> None:
    """Create database tables."""
    # Import models to ensure they are registered with SQLModel.metadata
    from . import models  # noqa: F401

    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
        conn.exec_driver_sql("PRAGMA foreign_keys=ON;")

    SQLModel.metadata.create_all(engine)


def get_engine():
    """Return the global engine instance."""
    return engine
