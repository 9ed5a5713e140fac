"""Feed item model and helpers for turning raw feed entries into items.

The feed poller hands the engine one `FeedItem` per discovered listing. Listing
feeds put most metadata in an HTML description made of `Label: value` parts
separated by `<br/>`; `parse_description` turns that into item fields.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .logging_config import get_logger

logger = get_logger(__name__)

MEDIA_TYPE_EBOOK = "ebook"
MEDIA_TYPE_AUDIOBOOK = "audiobook"
MEDIA_TYPES = (MEDIA_TYPE_EBOOK, MEDIA_TYPE_AUDIOBOOK)

# Numeric fields keep whatever the feed sent ("1.2 GiB", "n/a"); predicates parse.
RawNumber = Union[int, float, str]

# Filter key name -> FeedItem attribute. Keys not listed here are looked up
# in FeedItem.extra, so new keys can be added as data without code changes.
FIELD_ATTRIBUTES = {
    "identifier": "identifier",
    "title": "title",
    "author": "authors",
    "authors": "authors",
    "narrator": "narrators",
    "narrators": "narrators",
    "series": "series",
    "category": "category",
    "summary": "summary",
    "tags": "tags",
    "description": "description",
    "media_type": "media_type",
    "size": "size",
    "seeders": "seeders",
    "leechers": "leechers",
    "age_seconds": "age_seconds",
    "link": "link",
}

_LIST_LABELS = {
    "Author(s)": "authors",
    "Narrator(s)": "narrators",
    "Series": "series",
}

_TEXT_LABELS = {
    "Category": "category",
    "Summary": "summary",
    "Tags": "tags",
    "Description": "description",
    "Added": "added",
    "Seeders": "seeders",
    "Leechers": "leechers",
    "Size": "size",
}


class FeedItem(BaseModel):
    """A single discovered feed entry (torrent listing)."""

    model_config = {"extra": "ignore"}

    identifier: str
    title: str
    feed_id: Optional[int] = None
    link: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    narrators: List[str] = Field(default_factory=list)
    series: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    summary: Optional[str] = None
    tags: Optional[str] = None
    description: Optional[str] = None
    media_type: Literal["ebook", "audiobook"] = MEDIA_TYPE_EBOOK
    size: Optional[RawNumber] = None
    seeders: Optional[RawNumber] = None
    leechers: Optional[RawNumber] = None
    age_seconds: Optional[RawNumber] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    def field_values(self, key: str) -> List[str]:
        """Return the string values of the field named by a filter key.

        Multi-valued fields (authors, narrators, series) return one value per
        element. Missing or empty fields return an empty list.
        """
        attribute = FIELD_ATTRIBUTES.get(key)
        if attribute is not None:
            value = getattr(self, attribute)
        else:
            value = self.extra.get(key)

        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value if v is not None and str(v).strip()]
        text = str(value)
        return [text] if text.strip() else []

    def author_candidates(self, separator: str = " - ") -> List[str]:
        """Return the author names to resolve against subscriptions.

        Explicit authors win. Otherwise the title is expected to read
        "<authors><separator><book title>" and the leading part is split on
        commas.
        """
        if self.authors:
            return [a.strip() for a in self.authors if a.strip()]
        if not separator or separator not in self.title:
            return []
        head = self.title.split(separator, 1)[0]
        return [name.strip() for name in head.split(",") if name.strip()]

    @classmethod
    def from_feed_entry(
        cls,
        *,
        guid: str,
        title: str,
        link: Optional[str] = None,
        description: str = "",
        feed_id: Optional[int] = None,
        audiobook_category_prefix: str = "Audiobooks",
    ) -> "FeedItem":
        """Build an item from a raw feed entry (guid, title, link, description)."""
        fields = parse_description(description)
        added = fields.pop("added", None)
        extra = {"guid": guid}
        if added:
            extra["added"] = added
        return cls(
            identifier=extract_identifier(guid),
            title=title,
            link=link,
            feed_id=feed_id,
            media_type=media_type_for_category(
                fields.get("category"), audiobook_category_prefix
            ),
            extra=extra,
            **fields,
        )


def extract_identifier(guid: str) -> str:
    """Extract the listing id from a GUID URL.

    Example: "https://tracker.example/t/1213652" returns "1213652". GUIDs
    without a usable trailing segment are returned unchanged.
    """
    guid = guid.strip()
    last_slash = guid.rfind("/")
    if last_slash == -1 or last_slash == len(guid) - 1:
        return guid
    return guid[last_slash + 1:]


def media_type_for_category(category: Optional[str], audiobook_prefix: str = "Audiobooks") -> str:
    """Return the media type implied by a feed category."""
    if category and category.startswith(audiobook_prefix):
        return MEDIA_TYPE_AUDIOBOOK
    return MEDIA_TYPE_EBOOK


def parse_description(description: str) -> Dict[str, Any]:
    """Parse a `<br/>`-separated `Label: value` description into item fields.

    Unknown labels are ignored; parts without a colon are skipped with a
    warning.
    """
    parsed: Dict[str, Any] = {}
    if not description:
        return parsed

    for part in description.split("<br/>"):
        if not part.strip():
            continue

        label, sep, value = part.partition(":")
        if not sep:
            logger.warning(f"Unable to parse label and value from part: {part!r}")
            continue

        label = label.strip()
        value = value.strip()

        if label in _LIST_LABELS:
            parsed[_LIST_LABELS[label]] = [v.strip() for v in value.split(",") if v.strip()]
        elif label in _TEXT_LABELS:
            parsed[_TEXT_LABELS[label]] = value

    return parsed
