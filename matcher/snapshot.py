"""Compiled, immutable view of the matching configuration.

Every item is evaluated against exactly one MatchingSnapshot, read once at the
start of processing, so an administrator editing filters mid-flight can never
produce a decision that mixes old and new rules. The SnapshotHolder owns the
current snapshot and swaps it atomically when the configuration changes.
"""

from __future__ import annotations

import hashlib
import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from sqlmodel import Session

from .authors import AuthorIndex, CompiledAuthorFilter, SubscriptionTarget
from .errors import ConfigurationError
from .filter_sets import Combinator, compile_filter_set
from .logging_config import get_logger
from .models import FeedFilter
from .predicates import compile_entry
from .repository import Repository
from .rule_filters import CompiledRuleFilter

logger = get_logger(__name__)


@dataclass(frozen=True)
class MatchingSnapshot:
    rule_filters: Mapping[int, Tuple[CompiledRuleFilter, ...]] = field(default_factory=dict)
    author_filters: Mapping[int, Tuple[CompiledAuthorFilter, ...]] = field(default_factory=dict)
    authors: AuthorIndex = field(default_factory=AuthorIndex)
    errors: Tuple[ConfigurationError, ...] = ()
    title_author_separator: str = " - "
    signature: str = ""
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def rule_filters_for(self, feed_id: Optional[int]) -> Tuple[CompiledRuleFilter, ...]:
        if feed_id is None:
            return ()
        return self.rule_filters.get(feed_id, ())

    def author_filters_for(self, feed_id: Optional[int]) -> Tuple[CompiledAuthorFilter, ...]:
        if feed_id is None:
            return ()
        return self.author_filters.get(feed_id, ())

    @property
    def rule_filter_count(self) -> int:
        return sum(len(filters) for filters in self.rule_filters.values())

    @property
    def author_filter_count(self) -> int:
        return sum(len(filters) for filters in self.author_filters.values())


def compile_feed_filter(
    feed_filter: FeedFilter,
    *,
    key_names: Mapping[int, str],
    operator_names: Mapping[int, str],
    set_type_names: Mapping[int, str],
    category_names: Mapping[int, str],
) -> CompiledRuleFilter:
    """Compile a stored FeedFilter with its sets and entries.

    Raises:
        ConfigurationError: tagged with the filter id.
    """
    try:
        sets = []
        for filter_set in feed_filter.sets:
            type_name = set_type_names.get(filter_set.type_id)
            if type_name is None:
                raise ConfigurationError(f"Unknown filter set type id {filter_set.type_id}")
            combinator = Combinator.from_name(type_name)
            predicates = tuple(
                compile_entry(
                    entry.id,
                    entry.key_id,
                    entry.operator_id,
                    entry.value,
                    key_names,
                    operator_names,
                )
                for entry in filter_set.entries
            )
            sets.append(compile_filter_set(combinator, predicates, set_id=filter_set.id))
    except ConfigurationError as exc:
        raise exc.with_filter(feed_filter.id) from None

    category = category_names.get(feed_filter.category_id)
    if category is None:
        raise ConfigurationError(
            f"Unknown category id {feed_filter.category_id}", feed_filter_id=feed_filter.id
        )

    return CompiledRuleFilter(
        filter_id=feed_filter.id,
        name=feed_filter.name,
        feed_id=feed_filter.feed_id,
        category=category,
        notifier_id=feed_filter.notifier_id,
        sets=tuple(sets),
    )


def _signature(rows: Dict[str, list]) -> str:
    payload = json.dumps(rows, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _dump(models) -> list:
    return [m.model_dump(exclude={"created_at"}) for m in models]


def build_snapshot(repo: Repository, title_author_separator: str = " - ") -> MatchingSnapshot:
    """Load every reference collection through one repository and compile it.

    Filters that fail to compile are logged, recorded in `errors` and left out
    of the snapshot; the rest of the feed keeps matching.
    """
    key_names = repo.get_filter_key_names()
    operator_names = repo.get_filter_operator_names()
    set_type_names = repo.get_filter_set_type_names()
    categories = repo.get_categories()
    feed_filters = repo.get_feed_filters()
    author_filter_rows = repo.get_author_filters()
    authors = repo.get_authors()
    aliases = repo.get_aliases()
    subscriptions = repo.get_active_subscriptions()

    category_names = {c.id: c.name for c in categories}
    category_by_library = {
        (c.library_id, c.media_type): c.name for c in categories if c.media_type
    }

    errors: List[ConfigurationError] = []
    rule_filters: Dict[int, List[CompiledRuleFilter]] = {}
    for feed_filter in feed_filters:
        try:
            compiled = compile_feed_filter(
                feed_filter,
                key_names=key_names,
                operator_names=operator_names,
                set_type_names=set_type_names,
                category_names=category_names,
            )
        except ConfigurationError as exc:
            logger.warning(f"Skipping feed filter {feed_filter.id} ({feed_filter.name!r}): {exc.message}")
            errors.append(exc)
            continue
        rule_filters.setdefault(compiled.feed_id, []).append(compiled)

    author_filters: Dict[int, List[CompiledAuthorFilter]] = {}
    for row in author_filter_rows:
        author_filters.setdefault(row.feed_id, []).append(
            CompiledAuthorFilter(
                filter_id=row.id,
                feed_id=row.feed_id,
                author=row.author,
                category=category_names.get(row.category_id),
                notifier_id=row.notifier_id,
            )
        )

    author_names = {a.id: a.name for a in authors}
    targets = []
    for sub in subscriptions:
        if sub.author_id not in author_names:
            logger.warning(f"Subscription {sub.id} points at unknown author {sub.author_id}, ignoring")
            continue
        category = category_by_library.get((sub.library_id, sub.scope))
        if category is None:
            logger.warning(
                f"No category for subscription {sub.id} "
                f"(library={sub.library_id}, media_type={sub.scope}); matches will not be categorized"
            )
        targets.append(
            SubscriptionTarget(
                subscription_id=sub.id,
                author_id=sub.author_id,
                author_name=author_names[sub.author_id],
                scope=sub.scope,
                notifier_id=sub.notifier_id,
                library_id=sub.library_id,
                category=category,
            )
        )

    index = AuthorIndex.build(
        authors=[(a.id, a.name) for a in authors],
        aliases=[(a.author_id, a.name) for a in aliases],
        subscriptions=targets,
    )

    signature = _signature({
        "filter_keys": sorted(key_names.items()),
        "filter_operators": sorted(operator_names.items()),
        "feed_filter_set_types": sorted(set_type_names.items()),
        "torrent_categories": _dump(categories),
        "feed_filters": [
            {
                **_dump([f])[0],
                "sets": [
                    {**_dump([s])[0], "entries": _dump(s.entries)}
                    for s in f.sets
                ],
            }
            for f in feed_filters
        ],
        "feed_author_filters": _dump(author_filter_rows),
        "authors": _dump(authors),
        "author_aliases": _dump(aliases),
        "author_subscriptions": _dump(subscriptions),
        "title_author_separator": title_author_separator,
    })

    snapshot = MatchingSnapshot(
        rule_filters={feed_id: tuple(fs) for feed_id, fs in rule_filters.items()},
        author_filters={feed_id: tuple(fs) for feed_id, fs in author_filters.items()},
        authors=index,
        errors=tuple(errors),
        title_author_separator=title_author_separator,
        signature=signature,
    )
    logger.info(
        f"Loaded matching snapshot: {snapshot.rule_filter_count} rule filters, "
        f"{snapshot.author_filter_count} author filters, {len(targets)} subscriptions, "
        f"{len(errors)} configuration errors"
    )
    return snapshot


def load_snapshot(engine, title_author_separator: str = " - ") -> MatchingSnapshot:
    """Build a snapshot from the database in a single session."""
    with Session(engine) as session:
        return build_snapshot(Repository(session), title_author_separator)


class SnapshotHolder:
    """Owns the current snapshot and rebuilds it on configuration changes."""

    def __init__(self, loader: Callable[[], MatchingSnapshot]):
        self._loader = loader
        self._lock = threading.Lock()
        self._reload_lock = threading.Lock()
        self._current: Optional[MatchingSnapshot] = None
        self.generation = 0

    @property
    def current(self) -> MatchingSnapshot:
        """Return the current snapshot, loading it on first use."""
        with self._lock:
            snapshot = self._current
        if snapshot is None:
            self.reload()
            with self._lock:
                snapshot = self._current
        return snapshot

    def reload(self) -> bool:
        """Rebuild the snapshot; swap it in only when its content changed.

        Returns True when a new snapshot was installed. If rebuilding fails
        the previous snapshot stays active; with no previous snapshot the
        error propagates, since nothing can be matched without configuration.
        """
        with self._reload_lock:
            try:
                fresh = self._loader()
            except Exception as exc:
                with self._lock:
                    has_previous = self._current is not None
                if not has_previous:
                    raise
                logger.error(f"Failed to reload matching snapshot, keeping previous one: {exc}")
                return False

            with self._lock:
                if self._current is not None and self._current.signature == fresh.signature:
                    logger.debug("Matching configuration unchanged, keeping snapshot")
                    return False
                self._current = fresh
                self.generation += 1
                logger.info(f"Installed matching snapshot generation {self.generation}")
                return True
