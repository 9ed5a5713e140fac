"""FastAPI router for item intake: submit feed items, inspect the manual queue."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from matcher.config import get_config, MatchingConfig
from matcher.items import FeedItem
from matcher.orchestrator import MatchingOrchestrator, outcome_to_dict

router = APIRouter(tags=["intake"])


class RawFeedEntry(BaseModel):
    """A feed entry as the poller scraped it, before description parsing."""

    guid: str
    title: str
    link: str | None = None
    description: str = ""
    feed_id: int | None = None


def _orchestrator(request: Request) -> MatchingOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Matching engine not ready")
    return orchestrator


def _matching_config(request: Request) -> MatchingConfig:
    matching = getattr(request.app.state, "matching", None)
    if matching is not None:
        return matching
    try:
        return get_config().matching
    except FileNotFoundError:
        return MatchingConfig()


# --- Intake ---


@router.post("/items")
def submit_item(request: Request, item: FeedItem):
    """Match one item; returns the outcome."""
    return outcome_to_dict(_orchestrator(request).process(item))


@router.post("/items/batch")
def submit_items(request: Request, items: List[FeedItem]):
    """Match several items in order; returns one outcome per item."""
    orchestrator = _orchestrator(request)
    return [outcome_to_dict(outcome) for outcome in orchestrator.process_many(items)]


@router.post("/items/raw")
def submit_raw_entry(request: Request, entry: RawFeedEntry):
    """Parse a raw feed entry into an item, then match it."""
    matching = _matching_config(request)
    item = FeedItem.from_feed_entry(
        guid=entry.guid,
        title=entry.title,
        link=entry.link,
        description=entry.description,
        feed_id=entry.feed_id,
        audiobook_category_prefix=matching.audiobook_category_prefix,
    )
    result = outcome_to_dict(_orchestrator(request).process(item))
    result["identifier"] = item.identifier
    return result


# --- Manual queue ---


@router.get("/queue")
def list_queue(request: Request, limit: int = 50):
    """JSON: items waiting for manual review, most recent first."""
    manual_queue = getattr(request.app.state, "manual_queue", None)
    if manual_queue is None:
        raise HTTPException(status_code=503, detail="Manual queue not available")
    rows = manual_queue.list(min(max(limit, 1), 500))
    return [
        {
            "identifier": row.item_identifier,
            "feed_id": row.feed_id,
            "title": row.title,
            "queued_at": row.queued_at.isoformat(),
        }
        for row in rows
    ]
