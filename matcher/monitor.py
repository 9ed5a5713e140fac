"""Configuration change monitoring for feedmatch.

Uses Watchdog to notice writes to the database file (administrators editing
filters, authors or subscriptions through another process) and reloads the
matching snapshot. The reload is signature-gated, so the engine's own ledger
and queue writes trigger a cheap rebuild but never swap the snapshot.
"""

from __future__ import annotations

import queue
import time
from pathlib import Path
from threading import Event, Thread
from typing import Dict, NamedTuple, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import FeedmatchConfig
from .logging_config import get_logger
from .snapshot import SnapshotHolder

logger = get_logger(__name__)

DATABASE_SUFFIXES = ("", "-wal", "-journal")


class MonitorTask(NamedTuple):
    action: str
    path: Path


class ConfigChangeHandler(FileSystemEventHandler):
    """Push database modification events to a processing queue."""

    def __init__(self, task_queue: queue.Queue, database_path: Path, debounce_seconds: int = 2):
        super().__init__()
        self.task_queue = task_queue
        self.watched = {database_path.name + suffix for suffix in DATABASE_SUFFIXES}
        self.debounce_seconds = debounce_seconds
        self._last_modified: Dict[str, float] = {}

    def _is_database_file(self, path: Path) -> bool:
        return path.name in self.watched

    def on_created(self, event: FileSystemEvent) -> None:
        path = Path(event.src_path)
        if event.is_directory or not self._is_database_file(path):
            return
        self.task_queue.put(MonitorTask("reload", path))

    def on_moved(self, event: FileSystemEvent) -> None:
        dest_path = Path(event.dest_path)
        if event.is_directory or not self._is_database_file(dest_path):
            return
        self.task_queue.put(MonitorTask("reload", dest_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        path = Path(event.src_path)
        if not self._is_database_file(path):
            return

        now = time.time()
        key = str(path)
        last = self._last_modified.get(key, 0)
        if now - last < self.debounce_seconds:
            return

        self._last_modified[key] = now
        self.task_queue.put(MonitorTask("reload", path))

        cutoff = now - self.debounce_seconds * 2
        self._last_modified = {
            k: v for k, v in self._last_modified.items() if v > cutoff
        }


def optimize_tasks(tasks: list[MonitorTask]) -> list[MonitorTask]:
    """Collapse a batch of events into at most one reload."""
    reloads = [t for t in tasks if t.action == "reload"]
    if not reloads:
        return []
    return [reloads[-1]]


def process_queue(
    task_queue: queue.Queue,
    holder: SnapshotHolder,
    stop_event: Event,
    batch_window: float = 1.0,
) -> None:
    """Worker function to reload the snapshot once per burst of events."""
    while not stop_event.is_set():
        try:
            first_task = task_queue.get(timeout=1.0)
        except queue.Empty:
            continue

        batch = [first_task]
        start_time = time.time()

        while (time.time() - start_time) < batch_window:
            try:
                batch.append(task_queue.get_nowait())
            except queue.Empty:
                time.sleep(0.1)
                continue

        optimized_tasks = optimize_tasks(batch)
        for _ in range(len(batch)):
            try:
                task_queue.task_done()
            except ValueError:
                pass

        for task in optimized_tasks:
            try:
                if holder.reload():
                    logger.info(f"Matching configuration reloaded after change to {task.path.name}")
            except Exception as e:
                logger.error(f"Error processing task {task}: {e}")


def start_config_monitoring(
    config: FeedmatchConfig,
    holder: SnapshotHolder,
    database_path: Optional[Path] = None,
) -> Optional[Observer]:
    """Start watching the database directory if enabled in config."""
    if not config.monitoring.enabled:
        return None

    database_path = database_path or config.database_path
    watch_dir = database_path.parent
    if not watch_dir.exists():
        logger.error(f"Database directory does not exist: {watch_dir}")
        return None

    task_queue: queue.Queue = queue.Queue()
    stop_event = Event()

    debounce = config.monitoring.debounce_seconds
    worker = Thread(
        target=process_queue,
        args=(task_queue, holder, stop_event, float(max(debounce, 1))),
        daemon=True,
        name="FeedmatchMonitorWorker",
    )
    worker.start()

    event_handler = ConfigChangeHandler(task_queue, database_path, debounce)

    observer = Observer()
    observer.schedule(event_handler, str(watch_dir), recursive=False)
    observer.start()
    logger.info(f"Watching {database_path} for configuration changes")

    return observer
