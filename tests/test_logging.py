"""Tests for the application and decision log setup."""

import logging

import pytest

from matcher import logging_config
from matcher.items import FeedItem
from matcher.logging_config import DECISION_LOGGER, get_decision_logger, setup_logging
from matcher.orchestrator import create_orchestrator


@pytest.fixture
def isolated_logging(monkeypatch):
    root = logging.getLogger()
    decisions = logging.getLogger(DECISION_LOGGER)
    previous_levels = {name: logging.getLogger(name).level for name in ("", DECISION_LOGGER, "watchdog")}
    monkeypatch.setattr(logging_config, "_logging_initialized", False)
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(decisions, "handlers", [])
    monkeypatch.setattr(decisions, "propagate", True)
    yield root, decisions
    for handler in root.handlers + decisions.handlers:
        handler.close()
    for name, level in previous_levels.items():
        logging.getLogger(name).setLevel(level)


def _flush(*loggers):
    for logger in loggers:
        for handler in logger.handlers:
            handler.flush()


def test_decisions_get_their_own_file(tmp_path, isolated_logging):
    root, decisions = isolated_logging
    setup_logging("warning", log_dir=tmp_path)

    get_decision_logger().info("matched_rule item=42 feed=1 filter_id=7")
    logging.getLogger("matcher.test").debug("debug detail")
    _flush(root, decisions)

    assert "matched_rule item=42" in (tmp_path / "decisions.log").read_text()
    app_log = (tmp_path / "feedmatch.log").read_text()
    assert "debug detail" in app_log
    assert "item=42" not in app_log
    console = [h for h in root.handlers if h.level == logging.WARNING]
    assert len(console) == 1


def test_decisions_can_stay_in_the_application_log(tmp_path, isolated_logging):
    root, decisions = isolated_logging
    setup_logging(decisions=False, log_dir=tmp_path)

    get_decision_logger().info("no_match item=9 feed=None reason=no-match")
    _flush(root, decisions)

    assert not (tmp_path / "decisions.log").exists()
    assert "item=9" in (tmp_path / "feedmatch.log").read_text()


def test_watchdog_noise_is_quieted(tmp_path, isolated_logging):
    setup_logging("DEBUG", log_dir=tmp_path)

    assert logging.getLogger("watchdog").level == logging.WARNING
    assert not logging.getLogger("watchdog.observers.inotify_buffer").isEnabledFor(logging.DEBUG)


def test_setup_is_idempotent(tmp_path, isolated_logging):
    root, _ = isolated_logging
    setup_logging(log_dir=tmp_path)
    setup_logging(log_dir=tmp_path)

    assert len(root.handlers) == 2


def test_each_processed_item_leaves_one_decision(db_engine, builder, notifier, category_assigner, caplog):
    feed = builder.feed()
    books = builder.category("books")
    rule = builder.rule_filter(feed, "kings", books, [("all", [("title", "contains", "kings")])])
    orchestrator = create_orchestrator(db_engine, notifier=notifier, category_assigner=category_assigner)
    caplog.set_level(logging.INFO, logger=DECISION_LOGGER)

    orchestrator.process(FeedItem(identifier="1", title="The Way of Kings", feed_id=feed))
    orchestrator.process(FeedItem(identifier="2", title="Unrelated", feed_id=feed))

    lines = [r.getMessage() for r in caplog.records if r.name == DECISION_LOGGER]
    assert lines == [
        f"matched_rule item=1 feed={feed} filter_id={rule} filter_name=kings category=books",
        f"no_match item=2 feed={feed} reason=no-match",
    ]
