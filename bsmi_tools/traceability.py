"""Requirement traceability graph.

The graph is partitioned by (specification, categories) selections. Each requirement
is declared at most once, under the first partition and category that selects it, and
only derivation edges between declared requirements are kept. ``render_dot`` turns
the resulting ``GraphDocument`` into GraphViz DOT text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .errors import EmptyPartitionList, NullIteration, NullPartitions
from .index import ModelIndex
from .model import Category, Requirement, RequirementsSpecification
from .object_level import cleanup_short_name

LOGGER = logging.getLogger(__name__)

PARTITION_SEPARATOR = ":"
LINE_BREAK = "\\n"
BAREWORD = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
DOT_KEYWORDS = {"node", "edge", "graph", "digraph", "subgraph", "strict"}


@dataclass(frozen=True)
class Partition:
    specification: RequirementsSpecification
    categories: Tuple[Category, ...] = ()


@dataclass(frozen=True)
class GraphNode:
    identifier: str
    label: str
    tooltip: str
    requirement_iid: str
    partition: str


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    tooltip: str


@dataclass
class CategorySubgraph:
    name: str
    label: str
    nodes: List[GraphNode] = field(default_factory=list)


@dataclass
class SpecificationSubgraph:
    name: str
    label: str
    categories: List[CategorySubgraph] = field(default_factory=list)


@dataclass
class GraphDocument:
    name: str
    subgraphs: List[SpecificationSubgraph] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)

    @property
    def nodes(self) -> List[GraphNode]:
        return [node for sub in self.subgraphs for cat in sub.categories for node in cat.nodes]


def escape_dot_text(text: str) -> str:
    """Escape free text for use inside a double-quoted DOT string."""
    text = text.replace("\\", "\\\\").replace('"', '\\"')
    return text.replace("\r\n", LINE_BREAK).replace("\n", LINE_BREAK).replace("\r", LINE_BREAK)


def dot_id(name: str) -> str:
    """Bare identifier when DOT accepts one, otherwise a quoted string."""
    if BAREWORD.fullmatch(name) and name.lower() not in DOT_KEYWORDS:
        return name
    return f'"{escape_dot_text(name)}"'


def requirement_tooltip(index: ModelIndex, requirement: Requirement) -> str:
    parts = [
        f"{requirement.short_name} [{requirement.owner}]",
        requirement.text,
        index.category_short_names(requirement.category_ids),
        requirement.owner,
    ]
    return LINE_BREAK.join(escape_dot_text(p) for p in parts)


def parse_partitions(index: ModelIndex, arguments: Iterable[str]) -> List[Partition]:
    """
    Turn "SPEC:CAT1:CAT2" arguments into partitions.

    Unknown specifications and categories are skipped with a warning.
    """
    partitions: List[Partition] = []
    for argument in arguments:
        parts = [p for p in str(argument).split(PARTITION_SEPARATOR) if p]
        if not parts:
            raise ValueError("Specification input must contain at least a specification shortname.")

        spec_short_name, category_short_names = parts[0], parts[1:]
        spec = index.specification_by_short_name(spec_short_name)
        if spec is None:
            LOGGER.warning(f"Specification {spec_short_name} not found, skipping")
            continue

        categories: List[Category] = []
        for short_name in category_short_names:
            category = index.category_by_short_name(short_name)
            if category is None:
                LOGGER.warning(f"Category {short_name} not found, skipping for {spec_short_name}")
                continue
            categories.append(category)

        partitions.append(Partition(spec, tuple(categories)))
    return partitions


def _as_partition(item) -> Partition:
    if isinstance(item, Partition):
        return item
    spec, categories = item
    return Partition(spec, tuple(categories))


def _category_subgraph(
    index: ModelIndex,
    spec: RequirementsSpecification,
    category: Category,
    candidates: Sequence[Requirement],
    seen: Set[str],
    identifiers: Set[str],
) -> CategorySubgraph:
    name = cleanup_short_name(category.short_name)
    subgraph = CategorySubgraph(name=f"category_{name}", label=name)
    for requirement in candidates:
        if not requirement.is_member_of(category.iid) or requirement.iid in seen:
            continue

        identifier = cleanup_short_name(requirement.short_name)
        if identifier in identifiers:
            LOGGER.warning(
                f"Requirement {requirement.short_name} collides with an already declared node {identifier}, skipping"
            )
            continue

        seen.add(requirement.iid)
        identifiers.add(identifier)
        subgraph.nodes.append(
            GraphNode(
                identifier=identifier,
                label=identifier,
                tooltip=requirement_tooltip(index, requirement),
                requirement_iid=requirement.iid,
                partition=f"{spec.short_name}{PARTITION_SEPARATOR}{category.short_name}",
            )
        )
    return subgraph


def _edges(index: ModelIndex, seen: Set[str]) -> List[GraphEdge]:
    edges: List[GraphEdge] = []
    emitted: Set[Tuple[str, str]] = set()
    for relationship in index.iteration.relationships:
        if not relationship.links_requirements:
            continue
        if relationship.source.iid not in seen or relationship.target.iid not in seen:
            continue

        source = index.requirement(relationship.source.iid)
        target = index.requirement(relationship.target.iid)
        key = (source.iid, target.iid)
        if key in emitted:
            continue
        emitted.add(key)
        edges.append(
            GraphEdge(
                source=cleanup_short_name(source.short_name),
                target=cleanup_short_name(target.short_name),
                tooltip=escape_dot_text(f"{source.short_name} -> {target.short_name}"),
            )
        )
    return edges


def build_traceability_graph(index: Optional[ModelIndex], partitions) -> GraphDocument:
    """Build the partitioned traceability graph; identical inputs give identical documents."""
    if index is None:
        raise NullIteration()
    if partitions is None:
        raise NullPartitions()
    partitions = [_as_partition(p) for p in partitions]
    if not partitions:
        raise EmptyPartitionList()

    LOGGER.info("Start generating the traceability graph")

    seen: Set[str] = set()
    identifiers: Set[str] = set()
    document = GraphDocument(name=cleanup_short_name(index.iteration.model_short_name))

    for partition in partitions:
        spec = partition.specification
        spec_name = cleanup_short_name(spec.short_name)
        subgraph = SpecificationSubgraph(name=f"specification_{spec_name}", label=spec_name)
        candidates = sorted(
            (r for r in index.requirements_of(spec) if not r.is_deprecated),
            key=lambda r: r.short_name,
        )
        for category in partition.categories:
            subgraph.categories.append(_category_subgraph(index, spec, category, candidates, seen, identifiers))
        document.subgraphs.append(subgraph)

    document.edges = _edges(index, seen)

    LOGGER.info(f"Traceability graph has {len(seen)} requirements and {len(document.edges)} links")
    return document


def render_dot(document: GraphDocument) -> str:
    lines: List[str] = [
        f"digraph {dot_id(document.name)} {{",
        "  rankdir=LR;",
        '  node [shape=box, style=filled, fillcolor=white, fontname="Helvetica"];',
        "",
    ]

    for subgraph in document.subgraphs:
        lines.append("")
        lines.append(f"    subgraph {dot_id(subgraph.name)} {{")
        lines.append(f'      label="{escape_dot_text(subgraph.label)}";')
        lines.append("      style=filled;")
        lines.append("      color=lightgrey;")
        for category in subgraph.categories:
            lines.append(f"        subgraph {dot_id(category.name)} {{")
            lines.append(f'          label="{escape_dot_text(category.label)}";')
            for node in category.nodes:
                lines.append(f'          {dot_id(node.identifier)} [label="{escape_dot_text(node.label)}", tooltip="{node.tooltip}"];')
            lines.append("        }")
        lines.append("")
        lines.append("    }")

    lines.append("")
    for edge in document.edges:
        lines.append(f'  {dot_id(edge.source)} -> {dot_id(edge.target)} [tooltip="{edge.tooltip}"];')

    lines.append("}")
    return "\n".join(lines) + "\n"
