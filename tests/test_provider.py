import json
import logging

import pytest
import yaml

from bsmi_tools.errors import ConnectionFailed, MalformedModel, ModelNotFound
from bsmi_tools.index import ModelIndex
from bsmi_tools.model import EndpointKind
from bsmi_tools.provider import expand_nested_elements, iteration_from_dict, load_iteration


def _values(nested):
    return {n.short_name: {v.short_name: v.actual_value for v in n.parameter_values} for n in nested}


def test_load_example_snapshot(example_model_path):
    iteration = load_iteration(example_model_path, model="SAT", iteration_number=1, domain="PWR")

    assert iteration.model_name == "Demonstration Satellite"
    assert [s.short_name for s in iteration.specifications] == ["MRD", "SRD"]
    assert len(iteration.requirements) == 5
    assert iteration.top_element_id == "e-sat"

    srd_002 = next(r for r in iteration.requirements if r.short_name == "SRD-002")
    assert srd_002.is_deprecated
    mrd_003 = next(r for r in iteration.requirements if r.short_name == "MRD-003")
    assert mrd_003.parameter_values == {"BSMI": "2000"}
    assert iteration.relationships[0].source.kind is EndpointKind.ELEMENT
    assert iteration.relationships[2].links_requirements

    ModelIndex.build(iteration)


@pytest.mark.parametrize(
    "kwargs",
    [{"model": "OTHER"}, {"iteration_number": 2}, {"domain": "THERMAL"}],
)
def test_load_wrong_model_iteration_or_domain(example_model_path, kwargs):
    with pytest.raises(ModelNotFound):
        load_iteration(example_model_path, **kwargs)


def test_load_missing_or_unreadable_sources(tmp_path):
    with pytest.raises(ConnectionFailed):
        load_iteration(tmp_path / "missing.yaml")

    unsupported = tmp_path / "model.txt"
    unsupported.write_text("model: {short_name: X}", encoding="utf-8")
    with pytest.raises(ConnectionFailed):
        load_iteration(unsupported)

    broken = tmp_path / "broken.yaml"
    broken.write_text("model: [unclosed", encoding="utf-8")
    with pytest.raises(ConnectionFailed):
        load_iteration(broken)


def test_load_json_snapshot(tmp_path, example_model_path):
    data = yaml.safe_load(example_model_path.read_text(encoding="utf-8"))
    snapshot = tmp_path / "model.json"
    snapshot.write_text(json.dumps(data), encoding="utf-8")

    iteration = load_iteration(snapshot)
    assert iteration.model_short_name == "SAT"
    assert len(iteration.relationships) == 4


def test_iid_falls_back_to_short_name():
    iteration = iteration_from_dict(
        {
            "model": {"short_name": "M"},
            "categories": [{"short_name": "FUNC"}],
            "specifications": [{"short_name": "S", "requirements": [{"short_name": "S-1"}]}],
        }
    )
    assert iteration.categories[0].iid == "FUNC"
    assert iteration.requirements[0].iid == "S-1"
    assert iteration.requirements[0].specification_id == "S"


@pytest.mark.parametrize(
    "data",
    [
        [],
        {"model": {}},
        {"model": {"short_name": "M"}, "relationships": [{"iid": "x", "source": {"port": "p"}}]},
        {"model": {"short_name": "M"}, "relationships": [{"iid": "x", "source": "e1"}]},
        {"model": {"short_name": "M"}, "relationships": [{"source": {"element": "e1"}, "target": {"requirement": "r1"}}]},
        {"model": {"short_name": "M"}, "relationships": [{"iid": "", "source": {"element": "e1"}}]},
        {"model": {"short_name": "M"}, "specifications": [{"short_name": "S", "requirements": ["r1"]}]},
        {"model": {"short_name": "M"}, "specifications": ["S"]},
        {"model": {"short_name": "M"}, "elements": {"e1": {}}},
        {"model": {"short_name": "M"}, "elements": [{"short_name": "E", "parameters": ["BSMI"]}]},
        {"model": "M"},
        {"model": {"short_name": "M"}, "iteration": [1]},
    ],
)
def test_malformed_snapshots(data):
    with pytest.raises(MalformedModel):
        iteration_from_dict(data)


def test_expand_nested_elements_per_option(example_model_path):
    index = ModelIndex.build(load_iteration(example_model_path))

    opt_a = expand_nested_elements(index, index.option_by_short_name("OPT_A"))
    assert [n.short_name for n in opt_a] == ["SAT", "SAT.eps", "SAT.eps.bat"]
    assert _values(opt_a)["SAT.eps.bat"] == {"BSMI": "1210"}

    opt_b = expand_nested_elements(index, index.option_by_short_name("OPT_B"))
    assert [n.short_name for n in opt_b] == ["SAT", "SAT.eps", "SAT.eps.bat", "SAT.bat2"]
    # option dependent value, then usage override
    assert _values(opt_b)["SAT.eps.bat"] == {"BSMI": "1211"}
    assert _values(opt_b)["SAT.bat2"] == {"BSMI": "1220"}
    assert {n.option_id for n in opt_b} == {"opt-b"}


def test_expand_nested_elements_detects_cycles():
    iteration = iteration_from_dict(
        {
            "model": {"short_name": "M"},
            "options": [{"short_name": "O"}],
            "top_element": "A",
            "elements": [
                {"short_name": "A", "usages": [{"short_name": "b", "element": "B"}]},
                {"short_name": "B", "usages": [{"short_name": "a", "element": "A"}]},
            ],
        }
    )
    index = ModelIndex.build(iteration)
    with pytest.raises(MalformedModel, match="cycle"):
        expand_nested_elements(index, index.option_by_short_name("O"))


def test_expand_without_top_element(caplog):
    index = ModelIndex.build(iteration_from_dict({"model": {"short_name": "M"}, "options": [{"short_name": "O"}]}))
    with caplog.at_level(logging.WARNING):
        assert expand_nested_elements(index, index.option_by_short_name("O")) == []
    assert "no top element" in caplog.text
