from bsmi_tools.derivation import DerivationIndex
from bsmi_tools.index import ModelIndex
from bsmi_tools.model import Endpoint, Relationship
from bsmi_tools.object_level import cleanup_short_name
from bsmi_tools.traceability import build_traceability_graph, parse_partitions


def test_incoming_and_outgoing(index):
    derivations = DerivationIndex(index)
    a001 = index.requirement("r1")

    # B-003 is retired; element links are not derivations
    assert derivations.incoming_short_names(a001) == ["B-005", "A-002"]
    assert derivations.outgoing_short_names(a001) == []
    assert derivations.outgoing_short_names(index.requirement("r5")) == ["A-001"]


def test_derivation_symmetry(index):
    derivations = DerivationIndex(index)
    live = [r for r in index.requirements.values() if not r.is_deprecated]
    for source in live:
        for target in live:
            assert (target in derivations.outgoing(source)) == (source in derivations.incoming(target))


def test_links_of_any_kind_match_graph_edges(iteration):
    iteration.relationships.append(
        Relationship("rel-t", Endpoint.requirement("r4"), Endpoint.requirement("r1"), kind="traces")
    )
    index = ModelIndex.build(iteration)
    derivations = DerivationIndex(index)
    assert derivations.outgoing_short_names(index.requirement("r4")) == ["A-001"]
    assert derivations.incoming_short_names(index.requirement("r1")) == ["B-005", "A-002", "A-004"]

    document = build_traceability_graph(index, parse_partitions(index, ["SPEC-A:FUNC:PERF", "SPEC-B:FUNC"]))
    drawn = {(e.source, e.target) for e in document.edges}
    for requirement in index.requirements.values():
        if requirement.is_deprecated:
            continue
        for target in derivations.outgoing(requirement):
            assert (cleanup_short_name(requirement.short_name), cleanup_short_name(target.short_name)) in drawn
