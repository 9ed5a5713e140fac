"""Shared fixtures: a temporary database and a builder for reference data."""

from typing import Iterable, Optional, Sequence, Tuple

import pytest
from sqlmodel import Session, select

from matcher.database import init_db, make_engine
from matcher.models import (
    Author,
    AuthorAlias,
    AuthorSubscription,
    Feed,
    FeedAuthorFilter,
    FeedFilter,
    FeedFilterSet,
    FeedFilterSetEntry,
    FeedFilterSetType,
    FilterKey,
    FilterOperator,
    Library,
    Notifier,
    TorrentCategory,
)
from matcher.repository import Repository

# (set type, [(key, operator, value), ...])
SetSpec = Tuple[str, Sequence[Tuple[str, str, str]]]


@pytest.fixture
def db_engine(tmp_path, monkeypatch):
    """Create a seeded test database and point matcher.database at it."""
    db_file = tmp_path / "feedmatch.db"
    monkeypatch.setattr("matcher.database.DB_PATH", db_file, raising=True)

    engine = make_engine(f"sqlite:///{db_file}")
    monkeypatch.setattr("matcher.database.engine", engine, raising=True)

    init_db()
    with Session(engine) as session:
        repo = Repository(session)
        repo.seed_reference_data()
        repo.commit()
    return engine


class ConfigBuilder:
    """Writes feeds, filters, authors and subscriptions the way an admin would."""

    def __init__(self, engine):
        self.engine = engine

    def _add(self, row):
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return row.id

    def _lookup(self, session: Session, model, name: str) -> int:
        row = session.exec(select(model).where(model.name == name)).first()
        if row is None:
            row = model(name=name)
            session.add(row)
            session.flush()
        return row.id

    def feed(self, name: str = "main") -> int:
        return self._add(Feed(name=name, url=f"https://tracker.example/{name}.rss"))

    def library(self, name: str) -> int:
        return self._add(Library(name=name))

    def notifier(self, name: str = "discord") -> int:
        return self._add(Notifier(name=name, url=f"https://discord.example/{name}"))

    def category(self, name: str, library_id: Optional[int] = None, media_type: Optional[str] = None) -> int:
        return self._add(TorrentCategory(name=name, library_id=library_id, media_type=media_type))

    def rule_filter(
        self,
        feed_id: int,
        name: str,
        category_id: int,
        sets: Iterable[SetSpec],
        notifier_id: Optional[int] = None,
    ) -> int:
        with Session(self.engine) as session:
            feed_filter = FeedFilter(
                name=name, feed_id=feed_id, category_id=category_id, notifier_id=notifier_id
            )
            session.add(feed_filter)
            session.flush()
            for set_type, entries in sets:
                filter_set = FeedFilterSet(
                    feed_filter_id=feed_filter.id,
                    type_id=self._lookup(session, FeedFilterSetType, set_type),
                )
                session.add(filter_set)
                session.flush()
                for key, operator, value in entries:
                    session.add(
                        FeedFilterSetEntry(
                            feed_filter_set_id=filter_set.id,
                            key_id=self._lookup(session, FilterKey, key),
                            operator_id=self._lookup(session, FilterOperator, operator),
                            value=value,
                        )
                    )
            session.commit()
            return feed_filter.id

    def author_filter(
        self, feed_id: int, author: str, category_id: int, notifier_id: Optional[int] = None
    ) -> int:
        return self._add(
            FeedAuthorFilter(
                feed_id=feed_id, author=author, category_id=category_id, notifier_id=notifier_id
            )
        )

    def author(self, name: str, aliases: Sequence[str] = ()) -> int:
        author_id = self._add(Author(name=name))
        for alias in aliases:
            self._add(AuthorAlias(author_id=author_id, name=alias))
        return author_id

    def subscription(
        self,
        author_id: int,
        scope: str,
        notifier_id: Optional[int] = None,
        library_id: Optional[int] = None,
        active: bool = True,
    ) -> int:
        return self._add(
            AuthorSubscription(
                author_id=author_id,
                scope=scope,
                notifier_id=notifier_id,
                library_id=library_id,
                active=active,
            )
        )


@pytest.fixture
def builder(db_engine):
    return ConfigBuilder(db_engine)


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, notifier_id, payload):
        self.sent.append((notifier_id, payload))


class RecordingCategoryAssigner:
    def __init__(self):
        self.assigned = []

    def assign_category(self, item_identifier, category_name):
        self.assigned.append((item_identifier, category_name))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def category_assigner():
    return RecordingCategoryAssigner()
