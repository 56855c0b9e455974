import io
import random

import pytest

from schemarecommender.datatypes import IItem
from schemarecommender.recommendation import PropertyRecommendations, RankedPropertyCandidate
from schemarecommender.splitpropertyset import (
    BackoffSplitPropertySet,
    avg_merger,
    dummy_merger,
    every_second_item_splitter,
    max_merger,
    two_support_ranges_splitter,
)
from schemarecommender.transactions import simple_reader_transaction_source
from schemarecommender.tree import create

DATA = "a b c d\na b c\na b d\na c e\nb c e\na b\n"


def i2i_item(i):
    return IItem(str(i), i, i)


@pytest.fixture
def tree():
    return create(simple_reader_transaction_source(lambda: io.StringIO(DATA)))


@pytest.fixture
def props():
    return [IItem("P31", 10, 0), IItem("P21", 5, 1), IItem("P27", 3, 2)]


def rec(*pairs):
    return PropertyRecommendations(RankedPropertyCandidate(p, prob) for p, prob in pairs)


def by_iri(recommendations):
    return {c.property.iri: c.probability for c in recommendations}


def test_every_second_item_splitter():
    items = [i2i_item(i) for i in range(5)]
    shuffled = items[:]
    random.Random(3).shuffle(shuffled)
    assert every_second_item_splitter(shuffled) == [
        [items[0], items[2], items[4]],
        [items[1], items[3]],
    ]


def test_two_support_ranges_splitter():
    items = [i2i_item(i) for i in range(5)]
    shuffled = items[:]
    random.Random(5).shuffle(shuffled)
    assert two_support_ranges_splitter(shuffled) == [items[2:], items[:2]]


def test_dummy_merger(props):
    first = rec((props[0], 0.3))
    assert dummy_merger([first, rec((props[1], 0.9))]) is first


def test_avg_merger(props):
    p1, p2, p3 = props
    recommendations = [
        rec((p1, 0.2), (p2, 0.5)),
        rec((p1, 0.8), (p3, 0.4)),
        rec((p2, 0.2)),
        rec((p2, 0.3)),
    ]
    result = avg_merger(recommendations)
    values = by_iri(result)
    assert values["P31"] == pytest.approx(0.25)
    assert values["P21"] == pytest.approx(0.25)
    assert values["P27"] == pytest.approx(0.1)
    probabilities = [c.probability for c in result]
    assert probabilities == sorted(probabilities, reverse=True)


def test_max_merger(props):
    p1, p2, p3 = props
    recommendations = [
        rec((p1, 0.2), (p2, 0.5)),
        rec((p1, 0.8), (p3, 0.4)),
        rec((p2, 0.2)),
    ]
    result = max_merger(recommendations)
    assert by_iri(result) == {"P31": 0.8, "P21": 0.5, "P27": 0.4}
    assert [c.property.iri for c in result] == ["P31", "P21", "P27"]


def test_recommend_with_dummy_merger(tree):
    strategy = BackoffSplitPropertySet(tree, two_support_ranges_splitter, dummy_merger)
    props = [tree.prop_map.get_if_existing(name) for name in ("a", "b", "c")]
    result = strategy.recommend(props)
    values = by_iri(result)
    assert set(values) == {"d", "e"}
    assert values["d"] == pytest.approx(1 / 3)
    assert values["e"] == pytest.approx(1 / 3)


def test_recommend_with_max_merger(tree):
    strategy = BackoffSplitPropertySet(tree, two_support_ranges_splitter, max_merger)
    props = [tree.prop_map.get_if_existing(name) for name in ("a", "b", "c")]
    result = strategy.recommend(props)
    assert [c.property.iri for c in result] == ["d", "e"]
    assert [c.probability for c in result] == pytest.approx([0.4, 1 / 3])