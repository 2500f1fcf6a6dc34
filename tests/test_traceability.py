import logging
from dataclasses import replace

import pytest

from bsmi_tools.errors import EmptyPartitionList, NullIteration, NullPartitions
from bsmi_tools.index import ModelIndex
from bsmi_tools.model import Endpoint, Relationship
from bsmi_tools.traceability import (
    Partition,
    build_traceability_graph,
    dot_id,
    escape_dot_text,
    parse_partitions,
    render_dot,
)


def _partitions(index):
    return parse_partitions(index, ["SPEC-A:FUNC:PERF", "SPEC-B:FUNC"])


def test_parse_partitions(index):
    partitions = _partitions(index)
    assert [p.specification.short_name for p in partitions] == ["SPEC-A", "SPEC-B"]
    assert [c.short_name for c in partitions[0].categories] == ["FUNC", "PERF"]


def test_parse_partitions_skips_unknown_names(index, caplog):
    with caplog.at_level(logging.WARNING):
        partitions = parse_partitions(index, ["NOPE:FUNC", "SPEC-A:FUNC:GHOST"])
    assert len(partitions) == 1
    assert [c.short_name for c in partitions[0].categories] == ["FUNC"]
    assert "NOPE" in caplog.text
    assert "GHOST" in caplog.text


def test_parse_partitions_requires_specification(index):
    with pytest.raises(ValueError):
        parse_partitions(index, [""])


def test_each_requirement_declared_once(index):
    document = build_traceability_graph(index, _partitions(index))

    spec_a = document.subgraphs[0]
    assert spec_a.name == "specification_SPEC_A"
    assert [c.name for c in spec_a.categories] == ["category_FUNC", "category_PERF"]
    assert [n.identifier for n in spec_a.categories[0].nodes] == ["A_001", "A_002"]
    # A-002 is both FUNC and PERF; it is declared under FUNC only
    assert [n.identifier for n in spec_a.categories[1].nodes] == ["A_004"]

    identifiers = [n.identifier for n in document.nodes]
    assert len(identifiers) == len(set(identifiers))
    assert "B_003" not in identifiers


def test_edges_only_between_declared_nodes(index):
    document = build_traceability_graph(index, _partitions(index))
    identifiers = {n.identifier for n in document.nodes}

    assert [(e.source, e.target) for e in document.edges] == [("B_005", "A_001"), ("A_002", "A_001")]
    for edge in document.edges:
        assert edge.source in identifiers
        assert edge.target in identifiers


def test_edges_dropped_when_endpoint_not_selected(index):
    partitions = parse_partitions(index, ["SPEC-A:FUNC"])
    document = build_traceability_graph(index, partitions)
    assert [(e.source, e.target) for e in document.edges] == [("A_002", "A_001")]


def test_duplicate_relationships_give_one_edge(iteration):
    iteration.relationships.append(Relationship("rel-d4", Endpoint.requirement("r2"), Endpoint.requirement("r1")))
    index = ModelIndex.build(iteration)
    document = build_traceability_graph(index, _partitions(index))
    assert [(e.source, e.target) for e in document.edges].count(("A_002", "A_001")) == 1


def test_build_is_deterministic(index):
    first = render_dot(build_traceability_graph(index, _partitions(index)))
    second = render_dot(build_traceability_graph(index, _partitions(index)))
    assert first == second


def test_tuple_partitions_are_accepted(index):
    spec_b = index.specification_by_short_name("SPEC-B")
    func = index.category_by_short_name("FUNC")
    document = build_traceability_graph(index, [(spec_b, [func])])
    assert [n.identifier for n in document.nodes] == ["B_005"]
    assert document.subgraphs[0].categories[0].nodes[0].partition == "SPEC-B:FUNC"
    assert isinstance(_partitions(index)[0], Partition)


def test_argument_validation(index):
    with pytest.raises(NullIteration):
        build_traceability_graph(None, _partitions(index))
    with pytest.raises(NullPartitions):
        build_traceability_graph(index, None)
    with pytest.raises(EmptyPartitionList):
        build_traceability_graph(index, [])


def test_render_dot(index):
    text = render_dot(build_traceability_graph(index, _partitions(index)))

    assert text.startswith("digraph SAT_1 {\n  rankdir=LR;\n")
    assert text.endswith("}\n")
    assert "    subgraph specification_SPEC_A {" in text
    assert '      label="SPEC_A";' in text
    assert "        subgraph category_FUNC {" in text
    assert '  B_005 -> A_001 [tooltip="B-005 -> A-001"];' in text
    assert 'A_001 [label="A_001", tooltip="A-001 [SYS]\\nSupply 28 V.\\nFUNC\\nSYS"];' in text


def test_escape_dot_text():
    assert escape_dot_text('say "hi"\nnow') == 'say \\"hi\\"\\nnow'
    assert escape_dot_text("a\\b") == "a\\\\b"


def test_render_dot_quotes_names_that_are_not_barewords(iteration):
    iteration.specifications[0] = replace(iteration.specifications[0], short_name='SPEC"A')
    iteration.categories[0] = replace(iteration.categories[0], short_name="node")
    index = ModelIndex.build(iteration)
    spec_a = index.specifications["s-a"]
    func = index.categories["c-func"]

    text = render_dot(build_traceability_graph(index, [(spec_a, [func])]))

    assert '    subgraph "specification_SPEC\\"A" {' in text
    assert '      label="SPEC\\"A";' in text
    assert "        subgraph category_node {" in text
    assert '          label="node";' in text


def test_dot_id():
    assert dot_id("A_001") == "A_001"
    assert dot_id("node") == '"node"'
    assert dot_id("1A") == '"1A"'
    assert dot_id('a"b') == '"a\\"b"'
