"""Workflow configuration files: reading, validation and conversion."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .deletelowfrequency import more_than_condition, stepsize_linear, stepsize_proportional
from .splitpropertyset import (
    avg_merger,
    every_second_item_splitter,
    max_merger,
    two_support_ranges_splitter,
)
from .strategy import (
    Condition,
    Procedure,
    Workflow,
    above_threshold_condition,
    always_condition,
    delete_low_frequency_procedure,
    direct_procedure,
    split_property_procedure,
    too_few_recommendations_condition,
    too_unlikely_recommendations_condition,
)

if TYPE_CHECKING:
    from .tree import SchemaTree


class ConfigurationError(ValueError):
    """A workflow configuration cannot be read or used."""


@dataclass
class Layer:
    """One (condition, backoff) pair of a workflow."""

    condition: str = ""
    backoff: str = ""
    threshold: int = 0
    threshold_float: float = 0.0
    merger: str = ""
    splitter: str = ""
    stepsize: str = ""
    parallel_executions: int = 0


_LAYER_KEYS = {
    "condition": ("condition", str),
    "backoff": ("backoff", str),
    "threshold": ("threshold", int),
    "thresholdfloat": ("threshold_float", float),
    "merger": ("merger", str),
    "splitter": ("splitter", str),
    "stepsize": ("stepsize", str),
    "parallelexecutions": ("parallel_executions", int),
}


def _convert(key: str, value: Any, kind: type) -> Any:
    if kind is str and isinstance(value, str):
        return value
    if kind is int and isinstance(value, int) and not isinstance(value, bool):
        return value
    if kind is float and isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ConfigurationError(f"field {key!r} has a value of the wrong type: {value!r}")


def _layer_from_dict(data: Any) -> Layer:
    if not isinstance(data, dict):
        raise ConfigurationError(f"a layer must be an object, got {data!r}")
    values = {}
    for key, value in data.items():
        known = _LAYER_KEYS.get(key.lower().replace("_", ""))
        if known is None or value is None:
            continue
        name, kind = known
        values[name] = _convert(key, value, kind)
    return Layer(**values)


@dataclass
class Configuration:
    """A workflow configuration: an optional test set name and its layers."""

    testset: str = ""
    layers: list[Layer] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Configuration:
        """Build a configuration from decoded JSON; keys match case-insensitively."""
        if not isinstance(data, dict):
            raise ConfigurationError("a configuration must be a JSON object")
        config = cls()
        for key, value in data.items():
            lowered = key.lower()
            if value is None:
                continue
            if lowered == "testset":
                config.testset = _convert(key, value, str)
            elif lowered == "layers":
                if not isinstance(value, list):
                    raise ConfigurationError("'Layers' must be a list")
                config.layers = [_layer_from_dict(layer) for layer in value]
        return config

    def validate(self) -> None:
        """Check that every layer names a backoff and the settings it needs."""
        if not self.layers:
            raise ConfigurationError("Configuration File Failure: No Layers Specified")
        for index, layer in enumerate(self.layers):
            if layer.backoff == "":
                raise ConfigurationError(
                    f"Configuration File Failure: Layer {index} Backoff Strategy is empty"
                )
            if layer.backoff == "splitProperty" and (layer.merger == "" or layer.splitter == ""):
                raise ConfigurationError(
                    f"Configuration File Failure: Layer {index} needs splitter and merger"
                )
            if layer.backoff == "deleteLowFrequency" and (
                layer.stepsize == "" or layer.parallel_executions == 0
            ):
                raise ConfigurationError(
                    f"Configuration File Failure: Layer {index} needs Stepsize Function"
                    " and #parallel executions"
                )


def read_config_file(path: str | Path) -> Configuration:
    """Read a JSON workflow configuration file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as error:
        raise ConfigurationError("Read File failed") from error
    try:
        data = json.loads(text)
    except json.JSONDecodeError as error:
        raise ConfigurationError(f"invalid JSON in configuration: {error}") from error
    return Configuration.from_dict(data)


def _make_condition(layer: Layer) -> Condition:
    if layer.condition == "aboveThreshold":
        return above_threshold_condition(layer.threshold)
    if layer.condition == "tooUnlikelyRecommendationsCondition":
        return too_unlikely_recommendations_condition(layer.threshold_float)
    if layer.condition == "tooFewRecommendations":
        return too_few_recommendations_condition(layer.threshold)
    if layer.condition == "always":
        return always_condition()
    raise ConfigurationError(f"Condition not found: {layer.condition}")


def _make_procedure(layer: Layer, tree: SchemaTree) -> Procedure:
    if layer.backoff == "deleteLowFrequency":
        stepsizes = {
            "stepsizeLinear": stepsize_linear,
            "stepsizeProportional": stepsize_proportional,
        }
        stepsize = stepsizes.get(layer.stepsize)
        if stepsize is None:
            raise ConfigurationError(f"Stepsize not found: {layer.stepsize}")
        return delete_low_frequency_procedure(
            tree, layer.parallel_executions, stepsize, more_than_condition(layer.threshold)
        )
    if layer.backoff == "standard":
        return direct_procedure()
    if layer.backoff == "splitProperty":
        merger = {"max": max_merger, "avg": avg_merger}.get(layer.merger)
        if merger is None:
            raise ConfigurationError(f"Merger not found: {layer.merger}")
        splitter = {
            "everySecondItem": every_second_item_splitter,
            "twoSupportRanges": two_support_ranges_splitter,
        }.get(layer.splitter)
        if splitter is None:
            raise ConfigurationError(f"Splitter not found: {layer.splitter}")
        return split_property_procedure(tree, splitter, merger)
    raise ConfigurationError(f"Backoff not found: {layer.backoff}")


def config_to_workflow(config: Configuration, tree: SchemaTree) -> Workflow:
    """Turn a configuration into a workflow over ``tree``."""
    workflow = Workflow()
    for index, layer in enumerate(config.layers):
        condition = _make_condition(layer)
        procedure = _make_procedure(layer, tree)
        workflow.push(condition, procedure, f"layer {index}")
    return workflow