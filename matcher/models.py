"""SQLModel database models for feedmatch."""

from datetime import datetime, timezone
from typing import Optional, List
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel, Relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Reference tables (administrator managed, name lookups) ---

class NotificationType(SQLModel, table=True):
    __tablename__ = "notification_types"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class Notifier(SQLModel, table=True):
    __tablename__ = "notifiers"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    notification_type_id: Optional[int] = Field(default=None, foreign_key="notification_types.id")
    url: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class Library(SQLModel, table=True):
    """Target library of a subscription (e.g. personal, family)."""
    __tablename__ = "libraries"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class TorrentCategory(SQLModel, table=True):
    __tablename__ = "torrent_categories"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    library_id: Optional[int] = Field(default=None, foreign_key="libraries.id")
    media_type: Optional[str] = None  # "ebook" or "audiobook"
    created_at: datetime = Field(default_factory=_utcnow)


class Feed(SQLModel, table=True):
    __tablename__ = "feeds"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    url: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class FilterKey(SQLModel, table=True):
    __tablename__ = "filter_keys"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class FilterOperator(SQLModel, table=True):
    __tablename__ = "filter_operators"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class FeedFilterSetType(SQLModel, table=True):
    __tablename__ = "feed_filter_set_types"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=_utcnow)


# --- Rule filters: FeedFilter -> FeedFilterSet -> FeedFilterSetEntry ---

class FeedFilter(SQLModel, table=True):
    __tablename__ = "feed_filters"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = ""
    feed_id: int = Field(foreign_key="feeds.id", index=True)
    category_id: int = Field(foreign_key="torrent_categories.id")
    notifier_id: Optional[int] = Field(default=None, foreign_key="notifiers.id")
    created_at: datetime = Field(default_factory=_utcnow)

    sets: List["FeedFilterSet"] = Relationship(
        back_populates="feed_filter",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "FeedFilterSet.id"},
    )


class FeedFilterSet(SQLModel, table=True):
    __tablename__ = "feed_filter_sets"
    id: Optional[int] = Field(default=None, primary_key=True)
    feed_filter_id: int = Field(foreign_key="feed_filters.id", index=True)
    type_id: int = Field(foreign_key="feed_filter_set_types.id")
    created_at: datetime = Field(default_factory=_utcnow)

    feed_filter: Optional[FeedFilter] = Relationship(back_populates="sets")
    entries: List["FeedFilterSetEntry"] = Relationship(
        back_populates="filter_set",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "FeedFilterSetEntry.id"},
    )


class FeedFilterSetEntry(SQLModel, table=True):
    __tablename__ = "feed_filter_set_entries"
    id: Optional[int] = Field(default=None, primary_key=True)
    feed_filter_set_id: int = Field(foreign_key="feed_filter_sets.id", index=True)
    key_id: int = Field(foreign_key="filter_keys.id")
    operator_id: int = Field(foreign_key="filter_operators.id")
    value: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    filter_set: Optional[FeedFilterSet] = Relationship(back_populates="entries")


class FeedAuthorFilter(SQLModel, table=True):
    __tablename__ = "feed_author_filters"
    __table_args__ = (UniqueConstraint("feed_id", "author", name="uq_feed_author_filters_feed_author"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    feed_id: int = Field(foreign_key="feeds.id", index=True)
    author: str
    category_id: int = Field(foreign_key="torrent_categories.id")
    notifier_id: Optional[int] = Field(default=None, foreign_key="notifiers.id")
    created_at: datetime = Field(default_factory=_utcnow)


# --- Authors and subscriptions ---

class Author(SQLModel, table=True):
    __tablename__ = "authors"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    external_ref: Optional[str] = None  # e.g. a metadata provider slug, nullable until linked
    created_at: datetime = Field(default_factory=_utcnow)

    aliases: List["AuthorAlias"] = Relationship(
        back_populates="author",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class AuthorAlias(SQLModel, table=True):
    __tablename__ = "author_aliases"
    __table_args__ = (UniqueConstraint("author_id", "name", name="uq_author_aliases_author_name"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    author_id: int = Field(foreign_key="authors.id", index=True)
    name: str
    created_at: datetime = Field(default_factory=_utcnow)

    author: Optional[Author] = Relationship(back_populates="aliases")


class AuthorSubscription(SQLModel, table=True):
    __tablename__ = "author_subscriptions"
    __table_args__ = (UniqueConstraint("author_id", "scope", name="uq_author_subscriptions_author_scope"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    author_id: int = Field(foreign_key="authors.id", index=True)
    scope: str  # media type: "ebook" or "audiobook"
    notifier_id: Optional[int] = Field(default=None, foreign_key="notifiers.id")
    library_id: Optional[int] = Field(default=None, foreign_key="libraries.id")
    active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)


class AuthorSubscriptionItem(SQLModel, table=True):
    """Append-only dedup/audit trail; written only by the orchestrator."""
    __tablename__ = "author_subscription_items"
    __table_args__ = (
        UniqueConstraint(
            "author_subscription_id",
            "item_identifier",
            name="uq_author_subscription_items_subscription_item",
        ),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    author_subscription_id: int = Field(foreign_key="author_subscriptions.id", index=True)
    item_identifier: str
    title: Optional[str] = None
    matched_at: datetime = Field(default_factory=_utcnow)


# --- Manual review ---

class ManualQueueItem(SQLModel, table=True):
    __tablename__ = "manual_queue_items"
    id: Optional[int] = Field(default=None, primary_key=True)
    item_identifier: str = Field(unique=True, index=True)
    feed_id: Optional[int] = Field(default=None, foreign_key="feeds.id")
    title: str
    payload: str  # JSON dump of the FeedItem as received
    queued_at: datetime = Field(default_factory=_utcnow)
