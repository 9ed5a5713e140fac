"""Matching orchestrator: decides what happens to one feed item.

Evaluation order, each stage short-circuiting the next:

1. per-feed author filters (substring match, no dedup)
2. global author subscriptions (whole-name match, deduplicated in the ledger)
3. per-feed rule filters (first matching filter by id)
4. manual review queue

The snapshot is read once per item, so a concurrent configuration reload
never mixes rules from two generations in one decision.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, Iterable, List, Optional, Union

from .authors import match_author_filters
from .items import FeedItem
from .ledger import DedupLedger
from .logging_config import get_decision_logger, get_logger
from .manual_queue import ManualQueue
from .notifications import LoggingCategoryAssigner, LoggingNotifier, build_notification_payload
from .ports import CategoryAssignerPort, ManualQueuePort, NotifierPort
from .rule_filters import match as match_rule_filters
from .snapshot import MatchingSnapshot, SnapshotHolder, load_snapshot

logger = get_logger(__name__)
decisions = get_decision_logger()

NO_MATCH = "no-match"
ERROR = "error"


@dataclass(frozen=True)
class MatchedRule:
    filter_id: int
    filter_name: str
    category: Optional[str]
    notifier_id: Optional[int]


@dataclass(frozen=True)
class MatchedAuthorFilter:
    author_filter_id: int
    author: str
    category: Optional[str]
    notifier_id: Optional[int]


@dataclass(frozen=True)
class MatchedSubscription:
    subscription_id: int
    author_id: int
    author_name: str
    category: Optional[str]
    notifier_id: Optional[int]
    first_delivery: bool


@dataclass(frozen=True)
class NoMatch:
    reason: str = NO_MATCH


Outcome = Union[MatchedRule, MatchedAuthorFilter, MatchedSubscription, NoMatch]

_OUTCOME_NAMES = {
    MatchedRule: "matched_rule",
    MatchedAuthorFilter: "matched_author_filter",
    MatchedSubscription: "matched_subscription",
    NoMatch: "no_match",
}


def outcome_to_dict(outcome: Outcome) -> Dict[str, Any]:
    """Serialize an outcome for the CLI and HTTP responses."""
    data = dataclasses.asdict(outcome)
    data["outcome"] = _OUTCOME_NAMES[type(outcome)]
    return data


def _record_decision(item: FeedItem, outcome: Outcome) -> None:
    fields = outcome_to_dict(outcome)
    kind = fields.pop("outcome")
    detail = " ".join(f"{key}={value}" for key, value in fields.items() if value is not None)
    decisions.info(f"{kind} item={item.identifier} feed={item.feed_id} {detail}")


class MatchingOrchestrator:
    def __init__(
        self,
        holder: SnapshotHolder,
        ledger: DedupLedger,
        notifier: NotifierPort,
        category_assigner: CategoryAssignerPort,
        manual_queue: ManualQueuePort,
    ):
        self.holder = holder
        self.ledger = ledger
        self.notifier = notifier
        self.category_assigner = category_assigner
        self.manual_queue = manual_queue

    def process(self, item: FeedItem, snapshot: Optional[MatchingSnapshot] = None) -> Outcome:
        """Match one item and trigger its downstream effects.

        Never raises: unexpected failures are logged and reported as
        NoMatch(reason="error").
        """
        try:
            if snapshot is None:
                snapshot = self.holder.current
            outcome = self._process(item, snapshot)
        except Exception:
            logger.exception(f"Unexpected error while processing item {item.identifier}")
            outcome = NoMatch(reason=ERROR)
        _record_decision(item, outcome)
        return outcome

    def _process(self, item: FeedItem, snapshot: MatchingSnapshot) -> Outcome:
        author_filter = match_author_filters(snapshot.author_filters_for(item.feed_id), item)
        if author_filter is not None:
            logger.info(
                f"Item {item.identifier} matched author filter {author_filter.filter_id} "
                f"({author_filter.author!r})"
            )
            self._dispatch(
                item,
                category=author_filter.category,
                notifier_id=author_filter.notifier_id,
                headline="Matched author filter",
                matched_by=[("Author Filter", author_filter.author)],
            )
            return MatchedAuthorFilter(
                author_filter_id=author_filter.filter_id,
                author=author_filter.author,
                category=author_filter.category,
                notifier_id=author_filter.notifier_id,
            )

        target = snapshot.authors.find_subscription(item, snapshot.title_author_separator)
        if target is not None:
            first_delivery = self.ledger.claim(target.subscription_id, item)
            if first_delivery:
                logger.info(
                    f"Item {item.identifier} matched subscription {target.subscription_id} "
                    f"for {target.author_name!r} ({target.scope})"
                )
                self._dispatch(
                    item,
                    category=target.category,
                    notifier_id=target.notifier_id,
                    headline="Book Grabbed",
                    matched_by=[
                        ("Subscribed Author", target.author_name),
                        ("Subscription Scope", target.scope),
                    ],
                )
            else:
                logger.debug(
                    f"Item {item.identifier} already delivered for subscription "
                    f"{target.subscription_id}, skipping"
                )
            return MatchedSubscription(
                subscription_id=target.subscription_id,
                author_id=target.author_id,
                author_name=target.author_name,
                category=target.category,
                notifier_id=target.notifier_id,
                first_delivery=first_delivery,
            )

        rule = match_rule_filters(snapshot.rule_filters_for(item.feed_id), item)
        if rule is not None:
            logger.info(f"Item {item.identifier} matched filter {rule.filter_id} ({rule.name!r})")
            self._dispatch(
                item,
                category=rule.category,
                notifier_id=rule.notifier_id,
                headline="Matched filter",
                matched_by=[("Filter", rule.name)],
            )
            return MatchedRule(
                filter_id=rule.filter_id,
                filter_name=rule.name,
                category=rule.category,
                notifier_id=rule.notifier_id,
            )

        logger.debug(f"Item {item.identifier} matched nothing, queueing for manual review")
        try:
            self.manual_queue.enqueue(item)
        except Exception as e:
            logger.error(f"Failed to queue item {item.identifier} for manual review: {e}")
        return NoMatch(reason=NO_MATCH)

    def process_many(self, items: Iterable[FeedItem]) -> List[Outcome]:
        """Process items in order, each against the snapshot current at its start."""
        return [self.process(item) for item in items]

    def _dispatch(self, item: FeedItem, *, category, notifier_id, headline, matched_by) -> None:
        if category is not None:
            try:
                self.category_assigner.assign_category(item.identifier, category)
            except Exception as e:
                logger.error(f"Failed to assign category {category!r} to item {item.identifier}: {e}")

        if notifier_id is not None:
            payload = build_notification_payload(
                item, headline=headline, category=category, matched_by=matched_by
            )
            try:
                self.notifier.notify(notifier_id, payload)
            except Exception as e:
                logger.error(f"Failed to notify {notifier_id} about item {item.identifier}: {e}")


def create_orchestrator(
    engine,
    title_author_separator: str = " - ",
    *,
    notifier: Optional[NotifierPort] = None,
    category_assigner: Optional[CategoryAssignerPort] = None,
    manual_queue: Optional[ManualQueuePort] = None,
) -> MatchingOrchestrator:
    """Wire an orchestrator over one database with the default adapters."""
    holder = SnapshotHolder(partial(load_snapshot, engine, title_author_separator))
    return MatchingOrchestrator(
        holder=holder,
        ledger=DedupLedger(engine),
        notifier=notifier if notifier is not None else LoggingNotifier(),
        category_assigner=category_assigner if category_assigner is not None else LoggingCategoryAssigner(),
        manual_queue=manual_queue if manual_queue is not None else ManualQueue(engine),
    )
