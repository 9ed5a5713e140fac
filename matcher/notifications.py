"""Notification payloads and the log-only default adapters.

Payloads follow the Discord webhook message shape (username, content, embeds)
so a webhook notifier can post them as-is.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .items import FeedItem
from .logging_config import get_logger

logger = get_logger(__name__)

EMBED_AUTHOR = "feedmatch"
EMBED_COLOR = 16761392
WEBHOOK_USERNAME = "feedmatch"
MAX_DESCRIPTION_LENGTH = 1000


def truncate_description(text: Optional[str], limit: int = MAX_DESCRIPTION_LENGTH) -> str:
    if not text:
        return ""
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def build_notification_payload(
    item: FeedItem,
    *,
    headline: str,
    category: Optional[str] = None,
    matched_by: Sequence[Tuple[str, str]] = (),
) -> Dict[str, Any]:
    """Build a webhook message describing a matched item.

    `matched_by` holds (label, value) pairs shown inline, such as the filter
    name or the subscribed author. Empty fields are left out.
    """
    fields: List[Dict[str, Any]] = []

    def add_field(name: str, value: Optional[str], inline: bool = False) -> None:
        if not value:
            return
        fields.append({"name": name, "value": value, "inline": inline})

    add_field("Category", category or item.category)
    add_field("Series", ", ".join(item.series))
    add_field("Authors", ", ".join(item.authors))
    add_field("Narrators", ", ".join(item.narrators))
    add_field("Tags", item.tags)
    for label, value in matched_by:
        add_field(label, value, inline=True)
    add_field("Description", truncate_description(item.description))

    embed = {
        "author": {"name": EMBED_AUTHOR},
        "title": item.title,
        "url": item.link or "",
        "description": headline,
        "color": EMBED_COLOR,
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "fields": fields,
    }
    return {"username": WEBHOOK_USERNAME, "content": "", "embeds": [embed]}


class LoggingNotifier:
    """Notifier that only logs; stands in until a real webhook sender is wired."""

    def notify(self, notifier_id: int, payload: Dict[str, Any]) -> None:
        embeds = payload.get("embeds") or [{}]
        logger.info(f"Notify {notifier_id}: {embeds[0].get('title')!r}")


class LoggingCategoryAssigner:
    """Category assigner that only logs what the torrent client would be told."""

    def assign_category(self, item_identifier: str, category_name: str) -> None:
        logger.info(f"Assign category {category_name!r} to item {item_identifier}")
