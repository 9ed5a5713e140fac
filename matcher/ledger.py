"""Dedup ledger for author subscription deliveries.

One row per (subscription, item identifier). The unique constraint on that
pair is the single source of truth: whichever writer inserts first owns the
delivery, every other writer gets an IntegrityError and backs off.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .items import FeedItem
from .logging_config import get_logger
from .models import AuthorSubscriptionItem

logger = get_logger(__name__)


class DedupLedger:
    def __init__(self, engine=None):
        if engine is None:
            from .database import get_engine
            engine = get_engine()
        self.engine = engine

    def is_processed(self, subscription_id: int, identifier: str) -> bool:
        with Session(self.engine) as session:
            row = session.exec(
                select(AuthorSubscriptionItem.id).where(
                    AuthorSubscriptionItem.author_subscription_id == subscription_id,
                    AuthorSubscriptionItem.item_identifier == identifier,
                )
            ).first()
        return row is not None

    def claim(self, subscription_id: int, item: FeedItem) -> bool:
        """Record the delivery of `item` for a subscription.

        Returns True when this call wrote the row (first delivery) and False
        when the pair was already recorded, including when a concurrent
        writer won the insert.
        """
        if self.is_processed(subscription_id, item.identifier):
            logger.debug(
                f"Item {item.identifier} already delivered for subscription {subscription_id}"
            )
            return False

        with Session(self.engine) as session:
            session.add(
                AuthorSubscriptionItem(
                    author_subscription_id=subscription_id,
                    item_identifier=item.identifier,
                    title=item.title,
                )
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.info(
                    f"Lost dedup race for item {item.identifier} on subscription {subscription_id}"
                )
                return False
        return True

    def history(self, subscription_id: int, limit: Optional[int] = None) -> List[AuthorSubscriptionItem]:
        """Return the recorded deliveries for a subscription, newest first."""
        statement = (
            select(AuthorSubscriptionItem)
            .where(AuthorSubscriptionItem.author_subscription_id == subscription_id)
            .order_by(AuthorSubscriptionItem.matched_at.desc(), AuthorSubscriptionItem.id.desc())
        )
        if limit is not None:
            statement = statement.limit(limit)
        with Session(self.engine) as session:
            return list(session.exec(statement).all())
