"""Config management for feedmatch.

Reads `config.ini` from DATA_DIR (the project root unless the DATA_DIR
environment variable points elsewhere). Reference data such as filters,
authors and subscriptions lives in the database, not here; this file only
carries process-level settings.
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
import sys
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)


def _get_project_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parents[1]


PROJECT_ROOT = _get_project_root()

# DATA_DIR holds all persistent state (config.ini, feedmatch.db, feedmatch.log).
DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"
DATABASE_FILENAME = "feedmatch.db"


@dataclasses.dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8282


@dataclasses.dataclass
class MatchingConfig:
    """Knobs for how raw feed text is interpreted before matching."""

    # Separates the author part from the book title in listing titles
    # ("B. Sanderson - Mistborn") when the feed gives no explicit authors.
    title_author_separator: str = " - "
    # Feed categories starting with this prefix are audiobooks, the rest ebooks.
    audiobook_category_prefix: str = "Audiobooks"
    # Worker threads used by `feedmatch process` for batch files.
    workers: int = 4


@dataclasses.dataclass
class MonitoringConfig:
    enabled: bool = True
    debounce_seconds: int = 2


@dataclasses.dataclass
class LoggingConfig:
    level: str = "INFO"
    # Write one line per item decision to decisions.log.
    decisions: bool = True


@dataclasses.dataclass
class FeedmatchConfig:
    server: ServerConfig
    matching: MatchingConfig
    monitoring: MonitoringConfig
    logging: LoggingConfig

    @property
    def server_host(self) -> str:
        return self.server.host

    @property
    def server_port(self) -> int:
        return self.server.port

    @property
    def database_path(self) -> pathlib.Path:
        return DATA_DIR / DATABASE_FILENAME


def default_config() -> FeedmatchConfig:
    """Return a config with every section at its defaults."""
    return FeedmatchConfig(
        server=ServerConfig(),
        matching=MatchingConfig(),
        monitoring=MonitoringConfig(),
        logging=LoggingConfig(),
    )


def _parse_bool(value: str, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_separator(value: str) -> str:
    # configparser strips surrounding whitespace, so separators are written quoted
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def load_config(config_path: Optional[pathlib.Path] = None) -> FeedmatchConfig:
    """Load configuration from config.ini.

    Defaults to `config.ini` in DATA_DIR.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)

    server = ServerConfig(
        host=parser.get("server", "host", fallback="127.0.0.1"),
        port=parser.getint("server", "port", fallback=8282),
    )

    matching = MatchingConfig(
        title_author_separator=_parse_separator(
            parser.get("matching", "title_author_separator", fallback='" - "')
        ),
        audiobook_category_prefix=parser.get(
            "matching", "audiobook_category_prefix", fallback="Audiobooks"
        ),
        workers=max(1, parser.getint("matching", "workers", fallback=4)),
    )
    if not matching.title_author_separator:
        logger.warning("Empty title_author_separator in config, using default")
        matching.title_author_separator = MatchingConfig.title_author_separator

    monitoring = MonitoringConfig(
        enabled=_parse_bool(
            parser.get("monitoring", "enabled", fallback="true"), True
        ),
        debounce_seconds=parser.getint(
            "monitoring", "debounce_seconds", fallback=2
        ),
    )

    logging_section = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO").upper(),
        decisions=_parse_bool(parser.get("logging", "decisions", fallback="true"), True),
    )

    return FeedmatchConfig(
        server=server,
        matching=matching,
        monitoring=monitoring,
        logging=logging_section,
    )


_cached_config: Optional[FeedmatchConfig] = None


def get_config() -> FeedmatchConfig:
    """Return the cached config singleton. Loads from disk on first call."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (useful for tests)."""
    global _cached_config
    _cached_config = None


def write_default_config(config_path: Optional[pathlib.Path] = None) -> pathlib.Path:
    """Write a config.ini holding the defaults and return its path."""
    path = config_path or DEFAULT_CONFIG_PATH
    defaults = default_config()

    parser = configparser.ConfigParser()
    parser["server"] = {
        "host": defaults.server.host,
        "port": str(defaults.server.port),
    }
    parser["matching"] = {
        "title_author_separator": f'"{defaults.matching.title_author_separator}"',
        "audiobook_category_prefix": defaults.matching.audiobook_category_prefix,
        "workers": str(defaults.matching.workers),
    }
    parser["monitoring"] = {
        "enabled": "true",
        "debounce_seconds": str(defaults.monitoring.debounce_seconds),
    }
    parser["logging"] = {
        "level": defaults.logging.level,
        "decisions": "true",
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        parser.write(handle)
    return path
