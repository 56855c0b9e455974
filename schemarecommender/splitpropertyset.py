"""Backoff that splits the property set, recommends on each part and merges."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from .datatypes import IItem, sort_items
from .deletelowfrequency import recommend_without
from .recommendation import PropertyRecommendations, RankedPropertyCandidate

if TYPE_CHECKING:
    from .tree import SchemaTree

SplitterFunc = Callable[[Sequence[IItem]], list[list[IItem]]]
MergerFunc = Callable[[Sequence[PropertyRecommendations]], PropertyRecommendations]


def every_second_item_splitter(properties: Sequence[IItem]) -> list[list[IItem]]:
    """Two sublists alternating through the support-sorted properties."""
    ordered = list(properties)
    sort_items(ordered)
    return [ordered[0::2], ordered[1::2]]


def two_support_ranges_splitter(properties: Sequence[IItem]) -> list[list[IItem]]:
    """The less frequent half first, then the more frequent half."""
    ordered = list(properties)
    sort_items(ordered)
    mid = len(ordered) // 2
    return [ordered[mid:], ordered[:mid]]


def dummy_merger(recommendations: Sequence[PropertyRecommendations]) -> PropertyRecommendations:
    """Take the first recommendation as it is."""
    return recommendations[0]


def _sorted_descending(candidates) -> PropertyRecommendations:
    merged = PropertyRecommendations(candidates)
    merged.sort(key=lambda candidate: candidate.probability, reverse=True)
    return merged


def max_merger(recommendations: Sequence[PropertyRecommendations]) -> PropertyRecommendations:
    """Keep, per property, the candidate with the highest probability."""
    best: dict[str, RankedPropertyCandidate] = {}
    for recommendation in recommendations:
        for candidate in recommendation:
            current = best.get(candidate.property.iri)
            current_probability = current.probability if current is not None else 0.0
            if current_probability < candidate.probability:
                best[candidate.property.iri] = candidate
    return _sorted_descending(best.values())


def avg_merger(recommendations: Sequence[PropertyRecommendations]) -> PropertyRecommendations:
    """Average each property's probability over all recommendations (missing counts as 0)."""
    grouped: dict[str, list[RankedPropertyCandidate]] = {}
    for recommendation in recommendations:
        for candidate in recommendation:
            grouped.setdefault(candidate.property.iri, []).append(candidate)
    merged = []
    for candidates in grouped.values():
        total = 0.0
        for candidate in candidates:
            total += candidate.probability
        merged.append(
            RankedPropertyCandidate(candidates[0].property, total / len(recommendations))
        )
    return _sorted_descending(merged)


class BackoffSplitPropertySet:
    """Recommend on each part of a split property set and merge the results."""

    def __init__(
        self, tree: SchemaTree | None, splitter: SplitterFunc, merger: MergerFunc
    ) -> None:
        self.tree = tree
        self.splitter = splitter
        self.merger = merger

    def recommend(self, property_list: Sequence[IItem]) -> PropertyRecommendations:
        sublists = self.splitter(property_list)
        recommendations = []
        for position, sublist in enumerate(sublists):
            removed = [
                item
                for other, other_list in enumerate(sublists)
                if other != position
                for item in other_list
            ]
            recommendations.append(recommend_without(self.tree, sublist, removed))
        return self.merger(recommendations)