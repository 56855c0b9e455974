"""Recommendation workflows: ordered (condition, procedure) steps and presets."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .deletelowfrequency import (
    BackoffDeleteLowFrequencyItems,
    InternalCondition,
    StepsizeFunc,
    more_than_condition,
    stepsize_linear,
    stepsize_proportional,
)
from .instance import Instance
from .recommendation import PropertyRecommendations
from .splitpropertyset import (
    BackoffSplitPropertySet,
    MergerFunc,
    SplitterFunc,
    every_second_item_splitter,
    max_merger,
)

if TYPE_CHECKING:
    from .tree import SchemaTree

Condition = Callable[[Instance], bool]
Procedure = Callable[[Instance], PropertyRecommendations]


@dataclass(frozen=True)
class _Step:
    condition: Condition
    procedure: Procedure
    description: str


class Workflow:
    """Steps tried in order; the first whose condition holds produces the result."""

    def __init__(self) -> None:
        self._steps: list[_Step] = []

    def __len__(self) -> int:
        return len(self._steps)

    def push(self, condition: Condition, procedure: Procedure, description: str) -> None:
        """Append a step with lower priority than all existing ones."""
        self._steps.append(_Step(condition, procedure, description))

    def recommend(self, instance: Instance) -> PropertyRecommendations:
        """Run the first step whose condition holds; empty if none does."""
        for step in self._steps:
            if step.condition(instance):
                return step.procedure(instance)
        return PropertyRecommendations()


def always_condition() -> Condition:
    """A condition that always holds."""
    return lambda instance: True


def above_threshold_condition(threshold: int) -> Condition:
    """Holds when the instance has more than ``threshold`` properties."""
    return lambda instance: len(instance.props) > threshold


def below_threshold_condition(threshold: int) -> Condition:
    """Holds when the instance has fewer than ``threshold`` properties."""
    return lambda instance: len(instance.props) < threshold


def too_many_recommendations_condition(threshold: int) -> Condition:
    """Holds when the direct recommender yields more than ``threshold`` candidates."""
    return lambda instance: len(instance.calc_recommendations()) > threshold


def too_few_recommendations_condition(threshold: int) -> Condition:
    """Holds when the direct recommender yields fewer than ``threshold`` candidates."""
    return lambda instance: len(instance.calc_recommendations()) < threshold


def too_unlikely_recommendations_condition(threshold: float) -> Condition:
    """Holds when the top ten average probability is below ``threshold``."""
    return lambda instance: instance.calc_recommendations().top10_avg_probability() < threshold


def direct_procedure() -> Procedure:
    """Run the core recommender, using the instance's cache."""
    return lambda instance: instance.calc_recommendations()


def delete_low_frequency_procedure(
    tree: SchemaTree,
    parallel_executions: int,
    stepsize: StepsizeFunc,
    condition: InternalCondition,
) -> Procedure:
    """Run the delete-low-frequency backoff on the instance's properties."""
    backoff = BackoffDeleteLowFrequencyItems(tree, parallel_executions, stepsize, condition)
    return lambda instance: backoff.recommend(instance.props)


def split_property_procedure(
    tree: SchemaTree, splitter: SplitterFunc, merger: MergerFunc
) -> Procedure:
    """Run the split-property-set backoff on the instance's properties."""
    backoff = BackoffSplitPropertySet(tree, splitter, merger)
    return lambda instance: backoff.recommend(instance.props)


def make_preset_workflow(name: str, tree: SchemaTree) -> Workflow:
    """Build one of the hard-coded workflows."""
    workflow = Workflow()
    if name == "deletelowfrequency":
        workflow.push(
            always_condition(),
            delete_low_frequency_procedure(
                tree, 4, stepsize_proportional, more_than_condition(10)
            ),
            "always run deletelowfrequency with 4 parallel processes",
        )
    elif name == "best":
        workflow.push(
            too_few_recommendations_condition(1),
            delete_low_frequency_procedure(tree, 4, stepsize_linear, more_than_condition(4)),
            "run deletelowfrequency with 4 parallel processes",
        )
        workflow.push(always_condition(), direct_procedure(), "always run direct algorithm")
    elif name == "splitproperty":
        workflow.push(
            above_threshold_condition(2),
            split_property_procedure(tree, every_second_item_splitter, max_merger),
            "with 3 or more properties run splitproperty",
        )
        workflow.push(
            always_condition(), direct_procedure(), "default to running direct algorithm"
        )
    elif name == "toofewrecommendations":
        workflow.push(
            too_few_recommendations_condition(10),
            delete_low_frequency_procedure(
                tree, 4, stepsize_proportional, more_than_condition(10)
            ),
            "if less than 10 recommendations are generated, run the deletelowfrequency backoff",
        )
        workflow.push(
            always_condition(),
            direct_procedure(),
            "default to direct algorithm, but use assessment cache if possible",
        )
    elif name == "direct":
        workflow.push(always_condition(), direct_procedure(), "always run direct algorithm")
    else:
        raise ValueError(f"Given strategy name {name!r} does not exist as a preset.")
    return workflow