"""Tests for configuration change monitoring."""

import queue
import threading
from pathlib import Path
from unittest.mock import Mock

from matcher.monitor import ConfigChangeHandler, MonitorTask, optimize_tasks, process_queue


DB = Path("/data/feedmatch.db")


def _event(path, is_directory=False):
    event = Mock()
    event.src_path = str(path)
    event.dest_path = str(path)
    event.is_directory = is_directory
    return event


def test_optimize_tasks_collapses_to_one_reload():
    tasks = [
        MonitorTask("reload", DB),
        MonitorTask("reload", DB.with_name("feedmatch.db-wal")),
        MonitorTask("reload", DB),
    ]
    assert optimize_tasks(tasks) == [MonitorTask("reload", DB)]
    assert optimize_tasks([]) == []


def test_handler_queues_database_modifications():
    task_queue = queue.Queue()
    handler = ConfigChangeHandler(task_queue, DB, debounce_seconds=0)

    handler.on_modified(_event(DB))
    handler.on_modified(_event(DB.with_name("feedmatch.db-wal")))

    assert task_queue.qsize() == 2


def test_handler_ignores_unrelated_files():
    task_queue = queue.Queue()
    handler = ConfigChangeHandler(task_queue, DB, debounce_seconds=0)

    handler.on_modified(_event(DB.with_name("feedmatch.log")))
    handler.on_created(_event(DB.with_name("config.ini")))
    handler.on_modified(_event(DB.parent, is_directory=True))

    assert task_queue.empty()


def test_handler_debounces_repeated_modifications():
    task_queue = queue.Queue()
    handler = ConfigChangeHandler(task_queue, DB, debounce_seconds=60)

    handler.on_modified(_event(DB))
    handler.on_modified(_event(DB))

    assert task_queue.qsize() == 1


def test_process_queue_reloads_once_per_batch():
    task_queue = queue.Queue()
    stop_event = threading.Event()
    reloaded = threading.Event()
    holder = Mock()

    def reload():
        reloaded.set()
        return True

    holder.reload.side_effect = reload
    for _ in range(3):
        task_queue.put(MonitorTask("reload", DB))

    worker = threading.Thread(
        target=process_queue, args=(task_queue, holder, stop_event, 0.2), daemon=True
    )
    worker.start()
    assert reloaded.wait(timeout=5)
    stop_event.set()
    worker.join(timeout=5)

    assert holder.reload.call_count == 1
