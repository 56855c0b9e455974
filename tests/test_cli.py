import json
import logging
import pstats
import tracemalloc

import pytest

from schemarecommender.cli import build_tree, load_workflow, main, serve
from schemarecommender.configuration import ConfigurationError
from schemarecommender.instance import Instance
from schemarecommender.recommendation import recommend
from schemarecommender.tree import SchemaTree

DATA = "a b c\na b\nb c d\na c e\nb t#Q1\na b c d\n"
NAMES = {"a", "b", "c", "d", "e", "t#Q1"}


@pytest.fixture
def dataset(tmp_path):
    path = tmp_path / "data.tsv"
    path.write_text(DATA, encoding="utf-8")
    return path


@pytest.fixture
def model(dataset):
    output = build_tree(dataset, False, "pb")
    with open(output, "rb") as stream:
        return SchemaTree.load(stream)


def _as_pairs(recommendations):
    return sorted((c.property.iri, c.probability) for c in recommendations)


def test_build_tree_writes_loadable_model(dataset):
    output = build_tree(dataset, False, "pb")
    assert output.name == "data.tsv.schemaTree.typed.pb"
    with open(output, "rb") as stream:
        tree = SchemaTree.load(stream)
    assert set(tree.all_properties()) == NAMES
    assert tree.typed is True
    assert tree.root.support == len(DATA.splitlines())


def test_build_tree_preserves_support(model):
    a = model.prop_map.get_if_existing("a")
    b = model.prop_map.get_if_existing("b")
    expected = sum(1 for line in DATA.splitlines() if {"a", "b"} <= set(line.split()))
    assert model.support([a, b]) == expected


def test_build_tree_rejects_unknown_format(dataset):
    with pytest.raises(ValueError):
        build_tree(dataset, False, "xml")
    assert not (dataset.parent / "data.tsv.schemaTree.typed.xml").exists()


def test_main_build_from_tsv(dataset):
    assert main(["build-tree", "from-tsv", str(dataset)]) == 0
    output = dataset.parent / "data.tsv.schemaTree.typed.pb"
    with open(output, "rb") as stream:
        assert set(SchemaTree.load(stream).all_properties()) == NAMES


def test_main_build_with_bad_format_fails(dataset):
    assert main(["build-tree", "--format", "xml", "from-tsv", str(dataset)]) == 1


def test_main_build_with_missing_dataset_fails(tmp_path):
    assert main(["build-tree", "from-tsv", str(tmp_path / "missing.tsv")]) == 1


def test_main_measures_time(dataset, caplog):
    caplog.set_level(logging.INFO)
    assert main(["-t", "build-tree", "from-tsv", str(dataset)]) == 0
    assert any("Execution Time" in record.getMessage() for record in caplog.records)


def test_main_rejects_unknown_command():
    with pytest.raises(SystemExit):
        main(["unknown"])


def test_load_workflow_defaults_to_best(model):
    workflow = load_workflow(None, model)
    instance = Instance.from_input(["b"], None, model, True)
    assert _as_pairs(workflow.recommend(instance)) == _as_pairs(recommend(model, ["b"], None))


def test_load_workflow_from_config_file(model, tmp_path):
    config = tmp_path / "Workflow.json"
    config.write_text(
        json.dumps({"Layers": [{"Condition": "always", "Backoff": "standard"}]}),
        encoding="utf-8",
    )
    workflow = load_workflow(config, model)
    assert len(workflow) == 1
    instance = Instance.from_input(["a"], None, model, True)
    assert _as_pairs(workflow.recommend(instance)) == _as_pairs(recommend(model, ["a"], None))


def test_load_workflow_rejects_config_without_layers(model, tmp_path):
    config = tmp_path / "Workflow.json"
    config.write_text(json.dumps({"Layers": []}), encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_workflow(config, model)


def test_serve_requires_both_cert_and_key(tmp_path):
    with pytest.raises(ValueError):
        serve(tmp_path / "model.pb", 0, None, "cert.pem", None, 500)


def test_main_serve_with_missing_model_fails(tmp_path):
    assert main(["serve", str(tmp_path / "missing.pb"), "-w", ""]) == 1


def test_main_serve_rejects_invalid_hard_limit(dataset):
    output = build_tree(dataset, False, "pb")
    assert main(["serve", str(output), "-w", "", "--hard_limit", "0", "-p", "0"]) == 1