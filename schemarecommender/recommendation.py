"""Ranking candidate properties from a schema tree."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from itertools import islice
from typing import TYPE_CHECKING

from .datatypes import TYPE_PREFIX, IItem, sort_items

if TYPE_CHECKING:
    from .tree import SchemaTree


@dataclass(frozen=True)
class RankedPropertyCandidate:
    """A recommended item together with its estimated probability."""

    property: IItem
    probability: float


def _format_float(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


class PropertyRecommendations(list):
    """A list of ranked candidates, most probable first."""

    def top10_avg_probability(self) -> float:
        """Average probability of the first ten candidates; missing ones count as 0."""
        return sum(candidate.probability for candidate in self[:10]) / 10.0

    def __str__(self) -> str:
        return "".join(
            f"{candidate.property.iri}: {_format_float(candidate.probability)}\n"
            for candidate in self
        )


def build_property_list(
    tree: SchemaTree,
    properties: Iterable[str] | None,
    types: Iterable[str] | None,
) -> list[IItem]:
    """Look up the items for property names and type names, skipping unknown ones."""
    names = list(properties or ())
    names.extend(TYPE_PREFIX + name for name in types or ())
    found = (tree.prop_map.get_if_existing(name) for name in names)
    return [item for item in found if item is not None]


def _ratio(support: int, total: int) -> float:
    if total:
        return support / total
    return math.nan if support == 0 else math.inf


def _rank_all(tree: SchemaTree) -> PropertyRecommendations:
    items = tree.prop_map.list_properties()
    sort_items(items)
    total = tree.root.support
    return PropertyRecommendations(
        RankedPropertyCandidate(item, _ratio(item.total_count, total)) for item in items
    )


def _rank(
    tree: SchemaTree,
    properties: Sequence[IItem],
    include: Callable[[IItem], bool],
) -> PropertyRecommendations:
    if not properties:
        return _rank_all(tree)

    ordered = list(properties)
    sort_items(ordered)
    wanted = set(ordered)
    candidates: dict[IItem, int] = {}
    set_support = 0

    start = ordered[-1].traversal_pointer
    chain = start.same_id_chain() if start is not None else ()
    for leaf in chain:
        if not leaf.prefix_contains(ordered):
            continue
        set_support += leaf.support
        node = leaf
        while node.parent is not None:
            if node.item not in wanted and include(node.item):
                candidates[node.item] = candidates.get(node.item, 0) + leaf.support
            node = node.parent
        for descendant in islice(leaf.walk(), 1, None):
            if include(descendant.item):
                candidates[descendant.item] = (
                    candidates.get(descendant.item, 0) + descendant.support
                )

    ranked = PropertyRecommendations(
        RankedPropertyCandidate(item, _ratio(support, set_support))
        for item, support in candidates.items()
    )
    ranked.sort(key=lambda candidate: candidate.probability, reverse=True)
    return ranked


def recommend_property(tree: SchemaTree, properties: Sequence[IItem]) -> PropertyRecommendations:
    """Rank the properties (not types) that co-occur with all given items.

    With no items, every known item is ranked by its overall frequency.
    """
    return _rank(tree, properties, IItem.is_prop)


def recommend_properties_and_types(
    tree: SchemaTree, properties: Sequence[IItem]
) -> PropertyRecommendations:
    """Rank the properties and types that co-occur with all given items."""
    return _rank(tree, properties, lambda item: True)


def recommend(
    tree: SchemaTree,
    properties: Iterable[str] | None,
    types: Iterable[str] | None,
) -> PropertyRecommendations:
    """Rank property candidates for property and type names."""
    return recommend_property(tree, build_property_list(tree, properties, types))