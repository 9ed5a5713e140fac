"""Tests for filter sets and first-match rule filter selection."""

import pytest

from matcher.errors import ConfigurationError
from matcher.filter_sets import Combinator, CompiledFilterSet, compile_filter_set, evaluate
from matcher.items import FeedItem
from matcher.predicates import Operator, compile_predicate
from matcher.rule_filters import CompiledRuleFilter, match


ITEM = FeedItem(
    identifier="1213652",
    title="The Way of Kings",
    authors=["Brandon Sanderson"],
    category="Ebooks - Fantasy",
    feed_id=1,
)


def _pred(key, operator, value):
    return compile_predicate(key, Operator.from_name(operator), value)


TRUE = _pred("title", "contains", "kings")
FALSE = _pred("title", "contains", "queens")


def _set(combinator, *predicates):
    return compile_filter_set(combinator, tuple(predicates))


def _filter(filter_id, *sets, category="books"):
    return CompiledRuleFilter(
        filter_id=filter_id,
        name=f"filter-{filter_id}",
        feed_id=1,
        category=category,
        notifier_id=None,
        sets=tuple(sets),
    )


def test_and_set_requires_every_predicate():
    assert evaluate(_set(Combinator.AND, TRUE, TRUE), ITEM)
    assert not evaluate(_set(Combinator.AND, TRUE, FALSE), ITEM)


def test_or_set_requires_any_predicate():
    assert evaluate(_set(Combinator.OR, FALSE, TRUE), ITEM)
    assert not evaluate(_set(Combinator.OR, FALSE, FALSE), ITEM)


def test_not_set_negates_its_single_predicate():
    assert evaluate(_set(Combinator.NOT, FALSE), ITEM)
    assert not evaluate(_set(Combinator.NOT, TRUE), ITEM)


def test_not_set_with_other_than_one_entry_is_rejected():
    with pytest.raises(ConfigurationError):
        _set(Combinator.NOT, TRUE, FALSE)
    with pytest.raises(ConfigurationError):
        _set(Combinator.NOT)


def test_empty_sets():
    assert evaluate(CompiledFilterSet(Combinator.AND, ()), ITEM)
    assert not evaluate(CompiledFilterSet(Combinator.OR, ()), ITEM)


def test_combinator_aliases():
    assert Combinator.from_name("all") is Combinator.AND
    assert Combinator.from_name("ANY") is Combinator.OR
    assert Combinator.from_name("none") is Combinator.NOT
    with pytest.raises(ConfigurationError):
        Combinator.from_name("xor")


def test_sets_within_a_filter_are_or_combined():
    rule = _filter(1, _set(Combinator.AND, FALSE), _set(Combinator.AND, TRUE))
    assert rule.matches(ITEM)
    assert not _filter(2, _set(Combinator.AND, FALSE)).matches(ITEM)


def test_audiobook_or_ebook_filter():
    large_audiobook = _set(
        Combinator.AND,
        _pred("title", "contains", "audiobook"),
        _pred("size", "gte", "100000000"),
    )
    ebook = _set(Combinator.AND, _pred("title", "contains", "ebook"))
    rule = _filter(1, large_audiobook, ebook)

    def item(title, size=None):
        return FeedItem(identifier="x", title=title, size=size, feed_id=1)

    assert rule.matches(item("Mistborn (Audiobook)", "1.2 GiB"))
    assert rule.matches(item("Mistborn Audiobook", 250000000))
    assert rule.matches(item("Mistborn [EBOOK]"))
    assert not rule.matches(item("Mistborn (Audiobook)", "50 MB"))
    assert not rule.matches(item("Mistborn (Audiobook)"))
    assert not rule.matches(item("Mistborn (Paperback)", "2 GB"))


def test_filter_without_sets_never_matches():
    assert not _filter(1).matches(ITEM)


def test_first_matching_filter_by_id_wins():
    filters = [
        _filter(5, _set(Combinator.AND, TRUE), category="late"),
        _filter(2, _set(Combinator.AND, FALSE), category="miss"),
        _filter(3, _set(Combinator.AND, TRUE), category="early"),
    ]
    assert match(filters, ITEM).filter_id == 3


def test_no_filter_matches():
    assert match([_filter(1, _set(Combinator.AND, FALSE))], ITEM) is None
    assert match([], ITEM) is None
