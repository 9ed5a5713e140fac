"""Tests for snapshot building and reloading from the database."""

from functools import partial

import pytest
from sqlmodel import Session

from matcher.items import FeedItem
from matcher.repository import Repository
from matcher.snapshot import SnapshotHolder, build_snapshot, load_snapshot


def _snapshot(engine):
    with Session(engine) as session:
        return build_snapshot(Repository(session))


def test_builds_rule_filters_per_feed(builder, db_engine):
    feed = builder.feed()
    other_feed = builder.feed("other")
    books = builder.category("books")
    builder.rule_filter(feed, "fantasy", books, [("all", [("category", "contains", "fantasy")])])
    builder.rule_filter(other_feed, "scifi", books, [("any", [("tags", "contains", "scifi")])])

    snapshot = _snapshot(db_engine)

    assert snapshot.rule_filter_count == 2
    [compiled] = snapshot.rule_filters_for(feed)
    assert compiled.name == "fantasy"
    assert compiled.category == "books"
    assert snapshot.rule_filters_for(None) == ()
    assert snapshot.errors == ()


def test_broken_filter_is_skipped_and_reported(builder, db_engine):
    feed = builder.feed()
    books = builder.category("books")
    good = builder.rule_filter(feed, "good", books, [("all", [("title", "contains", "kings")])])
    bad_regex = builder.rule_filter(feed, "bad regex", books, [("all", [("title", "regex", "([")])])
    bad_operator = builder.rule_filter(feed, "bad op", books, [("all", [("title", "startswith", "x")])])
    bad_number = builder.rule_filter(feed, "bad number", books, [("all", [("seeders", "gt", "many")])])
    bad_not = builder.rule_filter(
        feed, "bad not", books, [("not", [("title", "contains", "a"), ("title", "contains", "b")])]
    )

    snapshot = _snapshot(db_engine)

    assert [f.filter_id for f in snapshot.rule_filters_for(feed)] == [good]
    assert sorted(e.feed_filter_id for e in snapshot.errors) == sorted(
        [bad_regex, bad_operator, bad_number, bad_not]
    )


def test_subscription_category_resolves_by_library_and_media_type(builder, db_engine):
    personal = builder.library("personal")
    builder.category("personal-ebooks", personal, "ebook")
    builder.category("personal-audiobooks", personal, "audiobook")
    author = builder.author("Ann Leckie")
    builder.subscription(author, "audiobook", library_id=personal)
    builder.subscription(builder.author("Inactive Author"), "ebook", active=False)

    snapshot = _snapshot(db_engine)

    [target] = snapshot.authors.subscriptions.values()
    assert target.category == "personal-audiobooks"
    assert target.author_name == "Ann Leckie"


def test_signature_changes_only_with_configuration(builder, db_engine):
    feed = builder.feed()
    books = builder.category("books")
    first = _snapshot(db_engine).signature
    assert _snapshot(db_engine).signature == first

    builder.rule_filter(feed, "new", books, [("all", [("title", "contains", "x")])])
    assert _snapshot(db_engine).signature != first


def test_holder_swaps_only_on_change(builder, db_engine):
    holder = SnapshotHolder(partial(load_snapshot, db_engine))
    initial = holder.current
    assert holder.generation == 1

    assert holder.reload() is False
    assert holder.current is initial

    builder.author("Ann Leckie")
    assert holder.reload() is True
    assert holder.generation == 2
    assert holder.current is not initial


def test_holder_keeps_previous_snapshot_when_rebuild_fails(db_engine):
    calls = {"count": 0}

    def loader():
        calls["count"] += 1
        if calls["count"] > 1:
            raise RuntimeError("database is locked")
        return load_snapshot(db_engine)

    holder = SnapshotHolder(loader)
    initial = holder.current
    assert holder.reload() is False
    assert holder.current is initial


def test_holder_without_snapshot_propagates_load_error():
    def loader():
        raise RuntimeError("no database")

    holder = SnapshotHolder(loader)
    with pytest.raises(RuntimeError):
        holder.current


def test_in_flight_item_keeps_its_snapshot(builder, db_engine):
    feed = builder.feed()
    books = builder.category("books")
    builder.rule_filter(feed, "kings", books, [("all", [("title", "contains", "kings")])])
    holder = SnapshotHolder(partial(load_snapshot, db_engine))
    snapshot = holder.current

    builder.rule_filter(feed, "queens", books, [("all", [("title", "contains", "queens")])])
    holder.reload()

    item = FeedItem(identifier="1", title="Queens", feed_id=feed)
    assert all(not f.matches(item) for f in snapshot.rule_filters_for(feed))
    assert any(f.matches(item) for f in holder.current.rule_filters_for(feed))
