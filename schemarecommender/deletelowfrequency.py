"""Backoff that drops the least frequent properties before recommending."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING

from .datatypes import IItem, sort_items
from .recommendation import PropertyRecommendations, recommend_property

if TYPE_CHECKING:
    from .tree import SchemaTree

StepsizeFunc = Callable[[int, int, int], int]
InternalCondition = Callable[[PropertyRecommendations], bool]


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def stepsize_linear(size: int, iterator: int, parallel_executions: int) -> int:
    """Remove ``iterator`` items, but always keep at least one."""
    if iterator < size:
        return iterator
    return size - 1


def stepsize_proportional(size: int, iterator: int, parallel_executions: int) -> int:
    """Remove a share of the items growing with ``iterator``, up to 40% of them."""
    return _round_half_away(0.4 * iterator / parallel_executions * size)


def more_than_condition(threshold: int) -> InternalCondition:
    """Accept recommendations holding more than ``threshold`` candidates."""

    def condition(recommendations: PropertyRecommendations) -> bool:
        return len(recommendations) > threshold

    return condition


def more_than_probability_condition(threshold: float) -> InternalCondition:
    """Accept recommendations whose top ten average probability exceeds ``threshold``."""

    def condition(recommendations: PropertyRecommendations) -> bool:
        return recommendations.top10_avg_probability() > threshold

    return condition


def recommend_without(
    tree: SchemaTree, items: Sequence[IItem], removed: Iterable[IItem]
) -> PropertyRecommendations:
    """Recommend for ``items`` and drop the candidates that were ``removed`` beforehand."""
    removed_iris = {item.iri for item in removed}
    recommendations = recommend_property(tree, items)
    return PropertyRecommendations(
        candidate for candidate in recommendations if candidate.property.iri not in removed_iris
    )


class BackoffDeleteLowFrequencyItems:
    """Recommend on ever smaller prefixes of the support-sorted property list.

    The recommendation on the largest prefix that satisfies ``condition`` is
    returned; the smallest prefix is used when none does.
    """

    def __init__(
        self,
        tree: SchemaTree | None,
        parallel_executions: int,
        stepsize: StepsizeFunc,
        condition: InternalCondition | None = None,
    ) -> None:
        self.tree = tree
        self.parallel_executions = parallel_executions
        self.stepsize = stepsize
        self.condition = condition

    def recommend(self, property_list: Sequence[IItem]) -> PropertyRecommendations:
        splits = self.split(property_list)
        if not splits:
            return recommend_property(self.tree, list(property_list))
        last = len(splits) - 1
        for position, (kept, removed) in enumerate(splits):
            recommendations = recommend_without(self.tree, kept, removed)
            if position == last or (self.condition is not None and self.condition(recommendations)):
                return recommendations
        raise AssertionError("unreachable")

    def split(self, property_list: Sequence[IItem]) -> list[tuple[list[IItem], list[IItem]]]:
        """Pairs of (kept, removed) items, one per valid step size, in step order."""
        ordered = list(property_list)
        sort_items(ordered)
        splits = []
        for iterator in range(1, self.parallel_executions + 1):
            count = self.stepsize(len(ordered), iterator, self.parallel_executions)
            try:
                splits.append(self.manipulate(ordered, count))
            except ValueError:
                continue
        return splits

    def manipulate(
        self, property_list: Sequence[IItem], count: int
    ) -> tuple[list[IItem], list[IItem]]:
        """Split off the last ``count`` items: return (kept, removed)."""
        if count < 0 or len(property_list) < count:
            raise ValueError(
                "invalid manipulation of the property list since property list is too short"
            )
        cut = len(property_list) - count
        return list(property_list[:cut]), list(property_list[cut:])