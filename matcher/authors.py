"""Author matching: per-feed author filters and global author subscriptions.

The two strategies deliberately differ:
- per-feed author filters are substring tests against the item's authors and
  title, acting like a simple rule filter;
- subscriptions resolve whole author names through aliases, so "Ann" never
  matches "Ann Leckie" and a subscription only fires for an exact name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .items import FeedItem
from .logging_config import get_logger

logger = get_logger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Normalize an author name for whole-field comparison.

    Periods are dropped ("J.R.R. Tolkien" == "JRR Tolkien"), whitespace is
    collapsed and case is folded.
    """
    name = name.replace(".", "")
    return _WHITESPACE_RE.sub(" ", name).strip().casefold()


# --- Per-feed author filters ---


@dataclass(frozen=True)
class CompiledAuthorFilter:
    filter_id: int
    feed_id: int
    author: str
    category: Optional[str]
    notifier_id: Optional[int]

    @property
    def needle(self) -> str:
        return self.author.strip().casefold()

    def matches(self, item: FeedItem) -> bool:
        needle = self.needle
        if not needle:
            return False
        haystacks = [a.casefold() for a in item.authors]
        haystacks.append(item.title.casefold())
        return any(needle in text for text in haystacks)


def match_author_filters(
    filters: Iterable[CompiledAuthorFilter], item: FeedItem
) -> Optional[CompiledAuthorFilter]:
    """Return the first per-feed author filter (by id) matching the item."""
    for author_filter in sorted(filters, key=lambda f: f.filter_id):
        if author_filter.matches(item):
            return author_filter
    return None


# --- Global author subscriptions ---


@dataclass(frozen=True)
class SubscriptionTarget:
    """An active subscription resolved for matching."""

    subscription_id: int
    author_id: int
    author_name: str
    scope: str
    notifier_id: Optional[int]
    library_id: Optional[int]
    category: Optional[str]


@dataclass(frozen=True)
class AuthorIndex:
    """Normalized author names and aliases mapped to authors and subscriptions."""

    names: Mapping[str, Tuple[int, ...]] = field(default_factory=dict)
    author_names: Mapping[int, str] = field(default_factory=dict)
    subscriptions: Mapping[Tuple[int, str], SubscriptionTarget] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        authors: Sequence[Tuple[int, str]],
        aliases: Sequence[Tuple[int, str]],
        subscriptions: Sequence[SubscriptionTarget],
    ) -> "AuthorIndex":
        """Build the index from (author_id, name), (author_id, alias) and targets.

        The author's own name is indexed as an implicit alias. Author ids
        under one name keep ascending id order.
        """
        author_names = {author_id: name for author_id, name in authors}
        by_name: Dict[str, List[int]] = {}

        def _add(author_id: int, name: str) -> None:
            key = normalize_name(name)
            if not key:
                return
            ids = by_name.setdefault(key, [])
            if author_id not in ids:
                ids.append(author_id)

        for author_id, name in sorted(authors):
            _add(author_id, name)
        for author_id, alias in sorted(aliases):
            if author_id not in author_names:
                logger.warning(f"Alias {alias!r} points at unknown author {author_id}, ignoring")
                continue
            _add(author_id, alias)

        active = {(target.author_id, target.scope): target for target in subscriptions}

        return cls(
            names={key: tuple(sorted(ids)) for key, ids in by_name.items()},
            author_names=author_names,
            subscriptions=active,
        )

    def resolve(self, name: str) -> Tuple[int, ...]:
        """Return the ids of every author known under this exact name or alias."""
        return self.names.get(normalize_name(name), ())

    def find_subscription(self, item: FeedItem, separator: str = " - ") -> Optional[SubscriptionTarget]:
        """Return the subscription matching the item's authors and media type."""
        for candidate in item.author_candidates(separator):
            for author_id in self.resolve(candidate):
                target = self.subscriptions.get((author_id, item.media_type))
                if target is not None:
                    return target
        return None
