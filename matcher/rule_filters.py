"""Rule filters: named, categorized rules made of OR-combined filter sets.

A feed's filters are tried in ascending id order and the first one whose any
set matches wins. Later filters are never evaluated once one matches, so
administrators order filters from most to least specific.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .filter_sets import CompiledFilterSet, evaluate as evaluate_set
from .items import FeedItem


@dataclass(frozen=True)
class CompiledRuleFilter:
    filter_id: int
    name: str
    feed_id: int
    category: Optional[str]
    notifier_id: Optional[int]
    sets: Tuple[CompiledFilterSet, ...]

    def matches(self, item: FeedItem) -> bool:
        return any(evaluate_set(s, item) for s in self.sets)


def match(feed_filters: Iterable[CompiledRuleFilter], item: FeedItem) -> Optional[CompiledRuleFilter]:
    """Return the first filter (by id) matching the item, or None."""
    for feed_filter in sorted(feed_filters, key=lambda f: f.filter_id):
        if feed_filter.matches(item):
            return feed_filter
    return None
