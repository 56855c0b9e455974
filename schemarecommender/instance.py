"""An assessment on a set of properties, with optional cached recommendations."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from .datatypes import IItem
from .recommendation import PropertyRecommendations, build_property_list, recommend_property

if TYPE_CHECKING:
    from .tree import SchemaTree


class Instance:
    """Properties of one subject to recommend for.

    With ``use_cache`` the first computed recommendations are kept, on the
    assumption that ``props`` is not altered afterwards.
    """

    def __init__(self, props: list[IItem], tree: SchemaTree, use_cache: bool) -> None:
        self.props = props
        self.tree = tree
        self.use_cache = use_cache
        self._cached: PropertyRecommendations | None = None

    @classmethod
    def from_input(
        cls,
        properties: Iterable[str] | None,
        types: Iterable[str] | None,
        tree: SchemaTree,
        use_cache: bool,
    ) -> Instance:
        """Build an instance from property and type names."""
        return cls(build_property_list(tree, properties, types), tree, use_cache)

    def calc_recommendations(self) -> PropertyRecommendations:
        if not self.use_cache:
            return recommend_property(self.tree, self.props)
        if self._cached is None:
            self._cached = recommend_property(self.tree, self.props)
        return self._cached