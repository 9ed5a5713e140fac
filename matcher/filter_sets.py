"""Filter sets: a group of predicates reduced by the set's combinator."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import ConfigurationError
from .items import FeedItem
from .predicates import CompiledPredicate, evaluate as evaluate_predicate


class Combinator(str, enum.Enum):
    AND = "AND"
    OR = "OR"
    NOT = "NOT"

    @classmethod
    def from_name(cls, name: str) -> "Combinator":
        """Resolve a feed_filter_set_types row name, including the seeded aliases."""
        combinator = _COMBINATOR_ALIASES.get(name.strip().lower())
        if combinator is None:
            raise ConfigurationError(f"Unknown filter set type: {name!r}")
        return combinator


_COMBINATOR_ALIASES = {
    "and": Combinator.AND,
    "all": Combinator.AND,
    "or": Combinator.OR,
    "any": Combinator.OR,
    "not": Combinator.NOT,
    "none": Combinator.NOT,
}


@dataclass(frozen=True)
class CompiledFilterSet:
    combinator: Combinator
    predicates: Tuple[CompiledPredicate, ...]
    set_id: Optional[int] = None


def compile_filter_set(
    combinator: Combinator,
    predicates: Tuple[CompiledPredicate, ...],
    set_id: Optional[int] = None,
) -> CompiledFilterSet:
    """Build a filter set, rejecting NOT sets that do not hold exactly one entry."""
    if combinator is Combinator.NOT and len(predicates) != 1:
        raise ConfigurationError(
            f"NOT filter set {set_id} must hold exactly one entry, has {len(predicates)}"
        )
    return CompiledFilterSet(combinator=combinator, predicates=tuple(predicates), set_id=set_id)


def evaluate(filter_set: CompiledFilterSet, item: FeedItem) -> bool:
    """Evaluate every predicate, then reduce with the set's combinator.

    An empty AND set is True and an empty OR set is False.
    """
    results = [evaluate_predicate(p, item) for p in filter_set.predicates]

    if filter_set.combinator is Combinator.AND:
        return all(results)
    if filter_set.combinator is Combinator.OR:
        return any(results)
    return not results[0]
