import pytest

from schemarecommender.instance import Instance
from schemarecommender.recommendation import build_property_list, recommend_property
from schemarecommender.tree import SchemaTree


@pytest.fixture
def tree():
    schema = SchemaTree(False, 1)
    a, b, c = (schema.prop_map.get_or_create(name) for name in ("a", "b", "c"))
    schema.insert([a, b])
    schema.insert([a, c])
    schema.insert([a, b, c])
    return schema


def _names(recs):
    return [(r.property.iri, r.probability) for r in recs]


def test_cached_recommendations_are_reused(tree):
    instance = Instance([tree.prop_map.get_if_existing("a")], tree, True)
    first = instance.calc_recommendations()
    assert instance.calc_recommendations() is first


def test_uncached_recommendations_are_recomputed(tree):
    instance = Instance([tree.prop_map.get_if_existing("a")], tree, False)
    first = instance.calc_recommendations()
    second = instance.calc_recommendations()
    assert first is not second
    assert _names(first) == _names(second)


def test_recommendations_match_tree(tree):
    props = [tree.prop_map.get_if_existing("b")]
    instance = Instance(props, tree, True)
    assert _names(instance.calc_recommendations()) == _names(recommend_property(tree, props))


def test_cache_is_optimistic_about_props(tree):
    instance = Instance([tree.prop_map.get_if_existing("a")], tree, True)
    first = _names(instance.calc_recommendations())
    instance.props.append(tree.prop_map.get_if_existing("b"))
    assert _names(instance.calc_recommendations()) == first


def test_from_input_drops_unknown_names(tree):
    instance = Instance.from_input(["a", "zzz", "c"], ["missing"], tree, False)
    assert instance.props == build_property_list(tree, ["a", "c"], None)
    assert [item.iri for item in instance.props] == ["a", "c"]
    assert instance.use_cache is False
    assert instance.tree is tree