import io

import pytest

from schemarecommender.deletelowfrequency import (
    BackoffDeleteLowFrequencyItems,
    more_than_condition,
    stepsize_linear,
)
from schemarecommender.instance import Instance
from schemarecommender.recommendation import recommend_property
from schemarecommender.splitpropertyset import (
    BackoffSplitPropertySet,
    every_second_item_splitter,
    max_merger,
)
from schemarecommender.strategy import (
    Workflow,
    above_threshold_condition,
    always_condition,
    below_threshold_condition,
    delete_low_frequency_procedure,
    direct_procedure,
    make_preset_workflow,
    split_property_procedure,
    too_few_recommendations_condition,
    too_many_recommendations_condition,
    too_unlikely_recommendations_condition,
)
from schemarecommender.transactions import simple_reader_transaction_source
from schemarecommender.tree import create

TSV = "a b c d\na b c\na b d\na b\nb c e\na c e\n"


@pytest.fixture
def tree():
    return create(simple_reader_transaction_source(lambda: io.StringIO(TSV)))


def item(tree, name):
    found = tree.prop_map.get_if_existing(name)
    assert found is not None
    return found


def pairs(recommendations):
    return [(c.property.iri, c.probability) for c in recommendations]


def test_conditions(tree):
    asm_b = Instance([item(tree, "b")], tree, True)
    asm_e = Instance([item(tree, "e")], tree, True)
    asm_eb = Instance([item(tree, "e"), item(tree, "b")], tree, True)

    assert len(asm_b.calc_recommendations()) == 4
    assert len(asm_e.calc_recommendations()) == 3

    too_few = too_few_recommendations_condition(4)
    assert not too_few(asm_b)
    assert too_few(asm_e)

    too_many = too_many_recommendations_condition(3)
    assert too_many(asm_b)
    assert not too_many(asm_e)

    above = above_threshold_condition(1)
    assert not above(asm_b)
    assert above(asm_eb)


def test_below_threshold_and_always(tree):
    single = Instance([item(tree, "a")], tree, False)
    double = Instance([item(tree, "a"), item(tree, "b")], tree, False)
    below = below_threshold_condition(2)
    assert below(single)
    assert not below(double)
    assert always_condition()(single) is True


def test_too_unlikely_condition(tree):
    asm_b = Instance([item(tree, "b")], tree, True)
    assert too_unlikely_recommendations_condition(1.0)(asm_b)
    assert not too_unlikely_recommendations_condition(0.0)(asm_b)


def test_empty_workflow_returns_nothing(tree):
    workflow = Workflow()
    assert len(workflow) == 0
    assert list(workflow.recommend(Instance([item(tree, "a")], tree, True))) == []


def test_workflow_runs_first_matching_step(tree):
    workflow = Workflow()
    calls = []

    def first(instance):
        calls.append("first")
        return "first"

    def second(instance):
        calls.append("second")
        return "second"

    workflow.push(lambda instance: False, first, "never")
    workflow.push(always_condition(), second, "always")
    workflow.push(always_condition(), first, "shadowed")
    assert len(workflow) == 3
    assert workflow.recommend(Instance([], tree, True)) == "second"
    assert calls == ["second"]


def test_direct_procedure(tree):
    props = [item(tree, "b")]
    result = direct_procedure()(Instance(props, tree, True))
    assert pairs(result) == pairs(recommend_property(tree, props))


def test_delete_low_frequency_procedure(tree):
    props = [item(tree, "a"), item(tree, "b"), item(tree, "e")]
    procedure = delete_low_frequency_procedure(tree, 2, stepsize_linear, more_than_condition(1))
    expected = BackoffDeleteLowFrequencyItems(
        tree, 2, stepsize_linear, more_than_condition(1)
    ).recommend(props)
    assert pairs(procedure(Instance(props, tree, True))) == pairs(expected)


def test_split_property_procedure(tree):
    props = [item(tree, "a"), item(tree, "b"), item(tree, "c")]
    procedure = split_property_procedure(tree, every_second_item_splitter, max_merger)
    expected = BackoffSplitPropertySet(tree, every_second_item_splitter, max_merger).recommend(
        props
    )
    assert sorted(pairs(procedure(Instance(props, tree, True)))) == sorted(pairs(expected))


@pytest.mark.parametrize(
    "name, steps",
    [
        ("deletelowfrequency", 1),
        ("best", 2),
        ("splitproperty", 2),
        ("toofewrecommendations", 2),
        ("direct", 1),
    ],
)
def test_preset_sizes(tree, name, steps):
    assert len(make_preset_workflow(name, tree)) == steps


def test_unknown_preset(tree):
    with pytest.raises(ValueError):
        make_preset_workflow("nonsense", tree)


@pytest.mark.parametrize("name", ["best", "direct", "splitproperty"])
def test_presets_fall_back_to_direct(tree, name):
    props = [item(tree, "b")]
    workflow = make_preset_workflow(name, tree)
    result = workflow.recommend(Instance(props, tree, True))
    assert pairs(result) == pairs(recommend_property(tree, props))


def test_best_preset_backs_off_when_nothing_found(tree):
    props = [item(tree, name) for name in "abcde"]
    assert len(recommend_property(tree, props)) == 0
    workflow = make_preset_workflow("best", tree)
    result = workflow.recommend(Instance(props, tree, True))
    expected = BackoffDeleteLowFrequencyItems(
        tree, 4, stepsize_linear, more_than_condition(4)
    ).recommend(props)
    assert pairs(result) == pairs(expected)