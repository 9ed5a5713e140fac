"""Initial schema: reference tables, filters, authors, subscriptions, ledger, manual queue

Revision ID: 0001
Revises: None
Create Date: 2026-01-01 00:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None

# Name-only lookup tables share one shape.
NAMED_REFERENCE_TABLES = (
    "notification_types",
    "libraries",
    "feeds",
    "filter_keys",
    "filter_operators",
    "feed_filter_set_types",
)


def _table_exists(name: str) -> bool:
    """Check whether a table already exists in the database."""
    conn = op.get_bind()
    result = conn.execute(
        sa.text("SELECT 1 FROM sqlite_master WHERE type='table' AND name=:n"),
        {"n": name},
    )
    return result.fetchone() is not None


def _create_named_table(name: str, *extra: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        *extra,
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(f"ix_{name}_name", name, ["name"], unique=True)


def upgrade() -> None:
    # Every CREATE is guarded by _table_exists so that the migration is
    # safe to run against a DB created by SQLModel.metadata.create_all().

    for name in NAMED_REFERENCE_TABLES:
        if _table_exists(name):
            continue
        if name == "feeds":
            _create_named_table(name, sa.Column("url", sa.String(), nullable=True))
        else:
            _create_named_table(name)

    if not _table_exists("notifiers"):
        _create_named_table(
            "notifiers",
            sa.Column(
                "notification_type_id",
                sa.Integer(),
                sa.ForeignKey("notification_types.id"),
                nullable=True,
            ),
            sa.Column("url", sa.String(), nullable=True),
        )

    if not _table_exists("torrent_categories"):
        _create_named_table(
            "torrent_categories",
            sa.Column("library_id", sa.Integer(), sa.ForeignKey("libraries.id"), nullable=True),
            sa.Column("media_type", sa.String(), nullable=True),
        )

    if not _table_exists("feed_filters"):
        op.create_table(
            "feed_filters",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("feed_id", sa.Integer(), sa.ForeignKey("feeds.id"), nullable=False),
            sa.Column("category_id", sa.Integer(), sa.ForeignKey("torrent_categories.id"), nullable=False),
            sa.Column("notifier_id", sa.Integer(), sa.ForeignKey("notifiers.id"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_feed_filters_feed_id", "feed_filters", ["feed_id"])

    if not _table_exists("feed_filter_sets"):
        op.create_table(
            "feed_filter_sets",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("feed_filter_id", sa.Integer(), sa.ForeignKey("feed_filters.id"), nullable=False),
            sa.Column("type_id", sa.Integer(), sa.ForeignKey("feed_filter_set_types.id"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_feed_filter_sets_feed_filter_id", "feed_filter_sets", ["feed_filter_id"])

    if not _table_exists("feed_filter_set_entries"):
        op.create_table(
            "feed_filter_set_entries",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "feed_filter_set_id", sa.Integer(), sa.ForeignKey("feed_filter_sets.id"), nullable=False
            ),
            sa.Column("key_id", sa.Integer(), sa.ForeignKey("filter_keys.id"), nullable=False),
            sa.Column("operator_id", sa.Integer(), sa.ForeignKey("filter_operators.id"), nullable=False),
            sa.Column("value", sa.String(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index(
            "ix_feed_filter_set_entries_feed_filter_set_id",
            "feed_filter_set_entries",
            ["feed_filter_set_id"],
        )

    if not _table_exists("feed_author_filters"):
        op.create_table(
            "feed_author_filters",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("feed_id", sa.Integer(), sa.ForeignKey("feeds.id"), nullable=False),
            sa.Column("author", sa.String(), nullable=False),
            sa.Column("category_id", sa.Integer(), sa.ForeignKey("torrent_categories.id"), nullable=False),
            sa.Column("notifier_id", sa.Integer(), sa.ForeignKey("notifiers.id"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("feed_id", "author", name="uq_feed_author_filters_feed_author"),
        )
        op.create_index("ix_feed_author_filters_feed_id", "feed_author_filters", ["feed_id"])

    if not _table_exists("authors"):
        op.create_table(
            "authors",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("external_ref", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_authors_name", "authors", ["name"])

    if not _table_exists("author_aliases"):
        op.create_table(
            "author_aliases",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("author_id", sa.Integer(), sa.ForeignKey("authors.id"), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("author_id", "name", name="uq_author_aliases_author_name"),
        )
        op.create_index("ix_author_aliases_author_id", "author_aliases", ["author_id"])

    if not _table_exists("author_subscriptions"):
        op.create_table(
            "author_subscriptions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("author_id", sa.Integer(), sa.ForeignKey("authors.id"), nullable=False),
            sa.Column("scope", sa.String(), nullable=False),
            sa.Column("notifier_id", sa.Integer(), sa.ForeignKey("notifiers.id"), nullable=True),
            sa.Column("library_id", sa.Integer(), sa.ForeignKey("libraries.id"), nullable=True),
            sa.Column("active", sa.Boolean(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("author_id", "scope", name="uq_author_subscriptions_author_scope"),
        )
        op.create_index("ix_author_subscriptions_author_id", "author_subscriptions", ["author_id"])

    if not _table_exists("author_subscription_items"):
        op.create_table(
            "author_subscription_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "author_subscription_id",
                sa.Integer(),
                sa.ForeignKey("author_subscriptions.id"),
                nullable=False,
            ),
            sa.Column("item_identifier", sa.String(), nullable=False),
            sa.Column("title", sa.String(), nullable=True),
            sa.Column("matched_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint(
                "author_subscription_id",
                "item_identifier",
                name="uq_author_subscription_items_subscription_item",
            ),
        )
        op.create_index(
            "ix_author_subscription_items_author_subscription_id",
            "author_subscription_items",
            ["author_subscription_id"],
        )

    if not _table_exists("manual_queue_items"):
        op.create_table(
            "manual_queue_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("item_identifier", sa.String(), nullable=False),
            sa.Column("feed_id", sa.Integer(), sa.ForeignKey("feeds.id"), nullable=True),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("payload", sa.String(), nullable=False),
            sa.Column("queued_at", sa.DateTime(), nullable=False),
        )
        op.create_index(
            "ix_manual_queue_items_item_identifier",
            "manual_queue_items",
            ["item_identifier"],
            unique=True,
        )


def downgrade() -> None:
    # Reverse FK order.
    for name in (
        "manual_queue_items",
        "author_subscription_items",
        "author_subscriptions",
        "author_aliases",
        "authors",
        "feed_author_filters",
        "feed_filter_set_entries",
        "feed_filter_sets",
        "feed_filters",
        "torrent_categories",
        "notifiers",
    ):
        op.drop_table(name)
    for name in reversed(NAMED_REFERENCE_TABLES):
        op.drop_table(name)
