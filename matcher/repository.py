"""Data Access Layer for feedmatch.

Read access to the reference/configuration tables the engine matches against,
plus seeding of the fixed reference rows. CRUD of filters, authors and
subscriptions belongs to the administration layer, not here.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Type

from sqlalchemy.orm import selectinload
from sqlmodel import Session, SQLModel, select, func

from .models import (
    Author,
    AuthorAlias,
    AuthorSubscription,
    AuthorSubscriptionItem,
    Feed,
    FeedAuthorFilter,
    FeedFilter,
    FeedFilterSet,
    FeedFilterSetType,
    FilterKey,
    FilterOperator,
    ManualQueueItem,
    NotificationType,
    TorrentCategory,
)

DEFAULT_FILTER_KEYS = (
    "author",
    "series",
    "title",
    "category",
    "summary",
    "tags",
    "description",
    "narrator",
    "size",
    "seeders",
    "leechers",
    "age_seconds",
)

DEFAULT_FILTER_OPERATORS = (
    "equals",
    "not-equals",
    "contains",
    "fnmatch",
    "regex",
    "gt",
    "gte",
    "lt",
    "lte",
)

DEFAULT_FILTER_SET_TYPES = ("all", "any", "not")

DEFAULT_NOTIFICATION_TYPES = ("discord",)


class Repository:
    """Data access layer over one SQLModel session.

    Callers control the session lifetime; a snapshot build uses a single
    session so every collection is read from the same database state.
    """

    def __init__(self, session: Session):
        self.session = session

    def commit(self) -> None:
        """Commit the current transaction. Callers control when to commit."""
        self.session.commit()

    # --- Reference lookups ---

    def _names_by_id(self, model: Type[SQLModel]) -> Dict[int, str]:
        rows = self.session.exec(select(model.id, model.name)).all()
        return {row_id: name for row_id, name in rows}

    def get_filter_key_names(self) -> Dict[int, str]:
        return self._names_by_id(FilterKey)

    def get_filter_operator_names(self) -> Dict[int, str]:
        return self._names_by_id(FilterOperator)

    def get_filter_set_type_names(self) -> Dict[int, str]:
        return self._names_by_id(FeedFilterSetType)

    def get_categories(self) -> List[TorrentCategory]:
        return self.session.exec(select(TorrentCategory).order_by(TorrentCategory.id)).all()

    # --- Filters ---

    def get_feed_filters(self) -> List[FeedFilter]:
        """Return every rule filter with its sets and entries, ascending id."""
        statement = (
            select(FeedFilter)
            .options(selectinload(FeedFilter.sets).selectinload(FeedFilterSet.entries))
            .order_by(FeedFilter.id)
        )
        return self.session.exec(statement).all()

    def get_author_filters(self) -> List[FeedAuthorFilter]:
        return self.session.exec(select(FeedAuthorFilter).order_by(FeedAuthorFilter.id)).all()

    # --- Authors ---

    def get_authors(self) -> List[Author]:
        return self.session.exec(select(Author).order_by(Author.id)).all()

    def get_aliases(self) -> List[AuthorAlias]:
        return self.session.exec(select(AuthorAlias).order_by(AuthorAlias.id)).all()

    def get_active_subscriptions(self) -> List[AuthorSubscription]:
        statement = (
            select(AuthorSubscription)
            .where(AuthorSubscription.active == True)  # noqa: E712
            .order_by(AuthorSubscription.id)
        )
        return self.session.exec(statement).all()

    # --- Seeding ---

    def _populate(self, model: Type[SQLModel], names: Sequence[str]) -> int:
        existing = set(self.session.exec(select(model.name)).all())
        created = 0
        for name in names:
            if name in existing:
                continue
            self.session.add(model(name=name))
            created += 1
        self.session.flush()
        return created

    def seed_reference_data(self) -> Dict[str, int]:
        """Insert the fixed reference rows that are missing. Returns created counts."""
        return {
            "filter_keys": self._populate(FilterKey, DEFAULT_FILTER_KEYS),
            "filter_operators": self._populate(FilterOperator, DEFAULT_FILTER_OPERATORS),
            "feed_filter_set_types": self._populate(FeedFilterSetType, DEFAULT_FILTER_SET_TYPES),
            "notification_types": self._populate(NotificationType, DEFAULT_NOTIFICATION_TYPES),
        }

    # --- Statistics ---

    def _count(self, model: Type[SQLModel]) -> int:
        return self.session.exec(select(func.count()).select_from(model)).one()

    def get_stats(self) -> Dict[str, int]:
        return {
            "feeds": self._count(Feed),
            "feed_filters": self._count(FeedFilter),
            "author_filters": self._count(FeedAuthorFilter),
            "authors": self._count(Author),
            "aliases": self._count(AuthorAlias),
            "subscriptions": self._count(AuthorSubscription),
            "subscription_items": self._count(AuthorSubscriptionItem),
            "manual_queue": self._count(ManualQueueItem),
        }
