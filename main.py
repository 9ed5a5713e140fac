"""feedmatch CLI entry point."""

from __future__ import annotations

import json
import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from sqlmodel import Session

from matcher.config import DEFAULT_CONFIG_PATH, FeedmatchConfig, load_config, write_default_config
from matcher.database import get_engine, init_db
from matcher.items import FeedItem
from matcher.logging_config import setup_logging
from matcher.manual_queue import ManualQueue
from matcher.migrations import get_status, run_migrations, stamp_if_needed
from matcher.monitor import start_config_monitoring
from matcher.orchestrator import create_orchestrator, outcome_to_dict
from matcher.repository import Repository
from matcher.snapshot import build_snapshot


__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="feedmatch feed item matching CLI")
logger = logging.getLogger("feedmatch")

STARTUP_BANNER = r"""
  __              _                 _       _
 / _| ___  ___  __| |_ __ ___   __ _| |_ ___| |__
| |_ / _ \/ _ \/ _` | '_ ` _ \ / _` | __/ __| '_ \
|  _|  __/  __/ (_| | | | | | | (_| | || (__| | | |
|_|  \___|\___|\__,_|_| |_| |_|\__,_|\__\___|_| |_|
"""


def _ensure_config() -> FeedmatchConfig:
    try:
        return load_config()
    except FileNotFoundError:
        typer.echo("[ERROR] config.ini not found. Run: feedmatch init")
        raise typer.Exit(code=1)


def _prepare_database() -> None:
    """Create missing tables, then bring the schema to head."""
    init_db()
    stamp_if_needed()
    current, head = get_status()
    if current != head:
        logger.info(f"Migrating database {current} -> {head} ...")
        run_migrations(backup=True)
        logger.info("Migration complete.")
    else:
        logger.info(f"Database at {head} (up to date).")


def _load_items(path: Path, raw: bool, config: FeedmatchConfig) -> List[FeedItem]:
    """Read a JSON array of items (or raw feed entries with --raw)."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        typer.echo(f"[ERROR] Cannot read {path}: {e}")
        raise typer.Exit(code=1)

    if isinstance(data, dict):
        data = [data]

    items = []
    for index, entry in enumerate(data):
        try:
            if raw:
                items.append(
                    FeedItem.from_feed_entry(
                        guid=entry["guid"],
                        title=entry["title"],
                        link=entry.get("link"),
                        description=entry.get("description", ""),
                        feed_id=entry.get("feed_id"),
                        audiobook_category_prefix=config.matching.audiobook_category_prefix,
                    )
                )
            else:
                items.append(FeedItem.model_validate(entry))
        except (KeyError, TypeError, ValidationError) as e:
            logger.warning(f"Skipping entry {index} in {path.name}: {e}")
    return items


@app.command()
def init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config.ini"),
) -> None:
    """Initialize config.ini with default settings and create the database."""
    config_path = DEFAULT_CONFIG_PATH
    if config_path.exists() and not force:
        typer.echo(f"[INFO] Config already exists at {config_path} (use --force to overwrite)")
    else:
        write_default_config(config_path)
        typer.echo(f"[OK] Config created at {config_path}")

    init_db()
    stamp_if_needed()
    with Session(get_engine()) as session:
        repo = Repository(session)
        repo.seed_reference_data()
        repo.commit()
    typer.echo("[OK] Database ready")


@app.command()
def migrate(
    check: bool = typer.Option(False, "--check", help="Print status and exit (1 if not at head)"),
) -> None:
    """Run pending database migrations (or check status with --check)."""
    config = _ensure_config()
    setup_logging(config.logging.level, decisions=config.logging.decisions)
    init_db()

    current, head = get_status()

    if check:
        if current == head:
            typer.echo(f"[OK] Database at {head} (head).")
            raise typer.Exit(code=0)
        typer.echo(f"[WARN] Database behind, current: {current}, head: {head}")
        raise typer.Exit(code=1)

    if current == head:
        logger.info(f"Database already at {head} (head). Nothing to do.")
        raise typer.Exit(code=0)

    logger.info(f"Migrating database {current} -> {head} ...")
    run_migrations(backup=True)
    logger.info("Migration complete.")


@app.command()
def seed() -> None:
    """Insert missing reference rows (filter keys, operators, set types, notification types)."""
    config = _ensure_config()
    setup_logging(config.logging.level, decisions=config.logging.decisions)
    init_db()

    with Session(get_engine()) as session:
        repo = Repository(session)
        created = repo.seed_reference_data()
        repo.commit()

    for table, count in created.items():
        typer.echo(f"  {table}: {count} added")


@app.command()
def check() -> None:
    """Compile every filter and report configuration errors (exit 1 if any)."""
    config = _ensure_config()
    setup_logging(config.logging.level, decisions=config.logging.decisions)
    init_db()

    with Session(get_engine()) as session:
        snapshot = build_snapshot(Repository(session), config.matching.title_author_separator)

    typer.echo(
        f"Rule filters: {snapshot.rule_filter_count}, "
        f"author filters: {snapshot.author_filter_count}, "
        f"subscriptions: {len(snapshot.authors.subscriptions)}"
    )
    if not snapshot.errors:
        typer.echo("[OK] All filters compiled.")
        return

    for error in snapshot.errors:
        typer.echo(f"[ERROR] {error}")
    raise typer.Exit(code=1)


@app.command()
def process(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file of feed items"),
    raw: bool = typer.Option(False, "--raw", help="Entries are raw feed entries (guid, title, link, description)"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Worker threads"),
) -> None:
    """Match the items in FILE and print one outcome per item."""
    config = _ensure_config()
    setup_logging(config.logging.level, decisions=config.logging.decisions)
    init_db()

    items = _load_items(file, raw, config)
    if not items:
        typer.echo("[INFO] No items to process.")
        return

    orchestrator = create_orchestrator(get_engine(), config.matching.title_author_separator)
    worker_count = max(1, workers or config.matching.workers)

    with ThreadPoolExecutor(max_workers=worker_count) as executor:
        outcomes = list(executor.map(orchestrator.process, items))

    totals: Counter = Counter()
    for item, outcome in zip(items, outcomes):
        result = outcome_to_dict(outcome)
        totals[result["outcome"]] += 1
        typer.echo(json.dumps({"identifier": item.identifier, **result}))

    summary = ", ".join(f"{count} {name}" for name, count in sorted(totals.items()))
    typer.echo(f"✓ Processed {len(items)} items: {summary}")


@app.command()
def queue(
    limit: int = typer.Option(20, "--limit", help="Number of entries to show"),
) -> None:
    """Show items waiting for manual review."""
    _ensure_config()
    init_db()

    rows = ManualQueue(get_engine()).list(limit)
    if not rows:
        typer.echo("Manual queue is empty.")
        return
    for row in rows:
        typer.echo(f"  [{row.queued_at:%Y-%m-%d %H:%M}] {row.item_identifier}  {row.title}")


@app.command()
def stats() -> None:
    """Show configuration and ledger statistics."""
    _ensure_config()
    init_db()

    with Session(get_engine()) as session:
        counts = Repository(session).get_stats()

    typer.echo("feedmatch Statistics:")
    typer.echo(f"  Feeds: {counts['feeds']}")
    typer.echo(f"  Rule filters: {counts['feed_filters']}")
    typer.echo(f"  Author filters: {counts['author_filters']}")
    typer.echo(f"  Authors: {counts['authors']} ({counts['aliases']} aliases)")
    typer.echo(f"  Subscriptions: {counts['subscriptions']}")
    typer.echo(f"  Subscription deliveries: {counts['subscription_items']}")
    typer.echo(f"  Manual queue: {counts['manual_queue']}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", help="Server port"),
    no_watch: bool = typer.Option(False, "--no-watch", help="Disable configuration monitoring"),
) -> None:
    """Start the item intake server with optional configuration monitoring."""
    from matcher.api import run_server

    config = _ensure_config()
    setup_logging(config.logging.level, decisions=config.logging.decisions)

    typer.echo(typer.style(STARTUP_BANNER, fg=typer.colors.CYAN, bold=True))
    _prepare_database()

    orchestrator = create_orchestrator(get_engine(), config.matching.title_author_separator)
    orchestrator.holder.reload()

    observer = None
    if not no_watch and config.monitoring.enabled:
        observer = start_config_monitoring(config, orchestrator.holder)
    elif no_watch:
        logger.info("Configuration monitoring disabled")

    try:
        run_server(
            config,
            host=host,
            port=port,
            orchestrator=orchestrator,
            monitoring_enabled=observer is not None,
        )
    except KeyboardInterrupt:
        pass
    finally:
        if observer:
            observer.stop()
            observer.join()


if __name__ == "__main__":
    app()
