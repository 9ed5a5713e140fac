"""SQL-backed manual review queue for items no filter or subscription claimed."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .items import FeedItem
from .logging_config import get_logger
from .models import ManualQueueItem

logger = get_logger(__name__)


class ManualQueue:
    def __init__(self, engine=None):
        if engine is None:
            from .database import get_engine
            engine = get_engine()
        self.engine = engine

    def enqueue(self, item: FeedItem) -> bool:
        """Queue an item for manual review. Returns False if it was already queued."""
        with Session(self.engine) as session:
            session.add(
                ManualQueueItem(
                    item_identifier=item.identifier,
                    feed_id=item.feed_id,
                    title=item.title,
                    payload=item.model_dump_json(),
                )
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.debug(f"Item {item.identifier} already in manual queue")
                return False
        logger.info(f"Queued item {item.identifier} ({item.title!r}) for manual review")
        return True

    def list(self, limit: Optional[int] = 50) -> List[ManualQueueItem]:
        """Return queued items, most recent first."""
        statement = select(ManualQueueItem).order_by(
            ManualQueueItem.queued_at.desc(), ManualQueueItem.id.desc()
        )
        if limit is not None:
            statement = statement.limit(limit)
        with Session(self.engine) as session:
            return list(session.exec(statement).all())

    def items(self, limit: Optional[int] = 50) -> List[FeedItem]:
        """Return queued entries decoded back into FeedItems."""
        return [FeedItem.model_validate_json(row.payload) for row in self.list(limit)]
