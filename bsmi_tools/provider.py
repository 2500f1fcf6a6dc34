"""
File-based model provider.

A model snapshot is a YAML or JSON document describing one iteration:

    model: {short_name: BSMI, name: ..., definition: ...}
    iteration: {number: 1, description: ...}
    domains: [SYS]
    categories: [{iid: c1, short_name: FUNC}]
    options: [{iid: o1, short_name: OPT_A}]
    top_element: e-sat
    specifications:
      - iid: s1
        short_name: MRD
        groups: [{iid: g1, short_name: PWR, parent: null}]
        requirements:
          - {iid: r1, short_name: MRD-001, definition: "...", owner: SYS,
             categories: [c1], group: g1, parameters: {BSMI: "1200"}}
    elements:
      - iid: e-sat
        short_name: SAT
        parameters: [{short_name: BSMI, value: "1000", option_values: {o1: "1100"}}]
        usages: [{iid: u1, short_name: bat, element: e-bat, excluded_options: [o2]}]
    relationships:
      - {iid: rel1, source: {element: e-bat}, target: {requirement: r1}}

``iid`` falls back to ``short_name`` where omitted; an entry with neither, including
a relationship, is rejected as malformed.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Union

import yaml

from .errors import ConnectionFailed, MalformedModel, ModelNotFound
from .model import (
    SATISFIES,
    Category,
    ElementDefinition,
    ElementUsage,
    Endpoint,
    EndpointKind,
    Iteration,
    NestedElement,
    Option,
    Parameter,
    ParameterValue,
    Relationship,
    Requirement,
    RequirementsGroup,
    RequirementsSpecification,
)

LOGGER = logging.getLogger(__name__)

SNAPSHOT_SUFFIXES = {".yaml", ".yml", ".json"}


def _mapping(raw: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(raw, dict):
        raise MalformedModel(f"Expected a mapping for {what}, got {raw!r}")
    return raw


def _entries(raw: Any, what: str) -> List[Mapping[str, Any]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise MalformedModel(f"Expected a list of {what} entries, got {raw!r}")
    return [_mapping(entry, what) for entry in raw]


def _iid(entry: Mapping[str, Any]) -> str:
    value = entry.get("iid") or entry.get("short_name")
    if not value:
        raise MalformedModel(f"Entry without iid or short_name: {dict(entry)}")
    return str(value)


def _str_tuple(raw: Any) -> tuple:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return (raw,)
    return tuple(str(x) for x in raw)


def _str_map(raw: Any) -> Dict[str, str]:
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise MalformedModel(f"Expected a mapping, got {raw!r}")
    return {str(k): "" if v is None else str(v) for k, v in raw.items()}


def _endpoint(raw: Any) -> Optional[Endpoint]:
    if raw is None:
        return None
    if not isinstance(raw, dict) or len(raw) != 1:
        raise MalformedModel(f"Relationship endpoint must be {{element: iid}} or {{requirement: iid}}, got {raw!r}")
    (kind, iid), = raw.items()
    try:
        return Endpoint(EndpointKind(str(kind)), str(iid))
    except ValueError:
        raise MalformedModel(f"Unknown relationship endpoint kind {kind!r}") from None


def _parse_specification(entry: Mapping[str, Any], iteration: Iteration) -> None:
    entry = _mapping(entry, "specification")
    spec_id = _iid(entry)
    group_ids: List[str] = []
    for g in _entries(entry.get("groups"), "group"):
        group = RequirementsGroup(
            iid=_iid(g),
            short_name=str(g.get("short_name", "")),
            name=str(g.get("name", "")),
            parent_id=str(g["parent"]) if g.get("parent") else None,
        )
        iteration.groups.append(group)
        group_ids.append(group.iid)

    requirement_ids: List[str] = []
    for r in _entries(entry.get("requirements"), "requirement"):
        requirement = Requirement(
            iid=_iid(r),
            short_name=str(r.get("short_name", "")),
            specification_id=spec_id,
            name=str(r.get("name", "")),
            definitions=_str_tuple(r.get("definition")),
            owner=str(r.get("owner", "")),
            category_ids=_str_tuple(r.get("categories")),
            group_id=str(r["group"]) if r.get("group") else None,
            is_deprecated=bool(r.get("deprecated", False)),
            parameter_values=_str_map(r.get("parameters")),
        )
        iteration.requirements.append(requirement)
        requirement_ids.append(requirement.iid)

    iteration.specifications.append(
        RequirementsSpecification(
            iid=spec_id,
            short_name=str(entry.get("short_name", "")),
            name=str(entry.get("name", "")),
            is_deprecated=bool(entry.get("deprecated", False)),
            requirement_ids=tuple(requirement_ids),
            group_ids=tuple(group_ids),
        )
    )


def _parse_element(entry: Mapping[str, Any]) -> ElementDefinition:
    entry = _mapping(entry, "element")
    parameters = tuple(
        Parameter(
            short_name=str(p.get("short_name", "")),
            value="" if p.get("value") is None else str(p.get("value")),
            is_compound=bool(p.get("compound", False)),
            option_values=_str_map(p.get("option_values")),
        )
        for p in _entries(entry.get("parameters"), "parameter")
    )
    usages = tuple(
        ElementUsage(
            iid=_iid(u),
            short_name=str(u.get("short_name", "")),
            element_definition_id=str(u.get("element", "")),
            excluded_option_ids=_str_tuple(u.get("excluded_options")),
            parameter_overrides=_str_map(u.get("overrides")),
        )
        for u in _entries(entry.get("usages"), "usage")
    )
    return ElementDefinition(
        iid=_iid(entry),
        short_name=str(entry.get("short_name", "")),
        name=str(entry.get("name", "")),
        owner=str(entry.get("owner", "")),
        category_ids=_str_tuple(entry.get("categories")),
        parameters=parameters,
        usages=usages,
    )


def iteration_from_dict(data: Mapping[str, Any]) -> Iteration:
    """Build an ``Iteration`` from a parsed snapshot document."""
    if not isinstance(data, dict):
        raise MalformedModel("Model snapshot must be a mapping.")

    model = _mapping(data.get("model") or {}, "model")
    iteration_info = _mapping(data.get("iteration") or {}, "iteration")
    if not model.get("short_name"):
        raise MalformedModel("Model snapshot has no model short_name.")

    iteration = Iteration(
        model_short_name=str(model["short_name"]),
        model_name=str(model.get("name", "")),
        model_definition=str(model.get("definition", "")),
        iteration_number=int(iteration_info.get("number", 1)),
        description=str(iteration_info.get("description", "")),
        domains=[str(d) for d in data.get("domains") or []],
        top_element_id=str(data["top_element"]) if data.get("top_element") else None,
    )

    for c in _entries(data.get("categories"), "category"):
        iteration.categories.append(Category(iid=_iid(c), short_name=str(c.get("short_name", "")), name=str(c.get("name", ""))))
    for o in _entries(data.get("options"), "option"):
        iteration.options.append(Option(iid=_iid(o), short_name=str(o.get("short_name", "")), name=str(o.get("name", ""))))
    for s in _entries(data.get("specifications"), "specification"):
        _parse_specification(s, iteration)
    for e in _entries(data.get("elements"), "element"):
        iteration.elements.append(_parse_element(e))
    for rel in _entries(data.get("relationships"), "relationship"):
        iteration.relationships.append(
            Relationship(
                iid=_iid(rel),
                source=_endpoint(rel.get("source")),
                target=_endpoint(rel.get("target")),
                kind=str(rel.get("kind", SATISFIES)),
            )
        )
    return iteration


def load_iteration(
    data_source: Union[str, Path],
    model: Optional[str] = None,
    iteration_number: Optional[int] = None,
    domain: Optional[str] = None,
) -> Iteration:
    """Read the snapshot at ``data_source`` and check it is the requested model iteration."""
    path = Path(data_source)
    if not path.exists():
        raise ConnectionFailed(f"The datasource was not found ({path})")
    if path.suffix.lower() not in SNAPSHOT_SUFFIXES:
        raise ConnectionFailed(f"Unsupported datasource type '{path.suffix}', expected one of {sorted(SNAPSHOT_SUFFIXES)}")

    raw_text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            parsed = json.loads(raw_text)
        else:
            parsed = yaml.safe_load(raw_text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConnectionFailed(f"Failed to parse model snapshot at {path}") from exc

    iteration = iteration_from_dict(parsed)

    if model and iteration.model_short_name != model:
        raise ModelNotFound(f"Model {model} not found in {path} (found {iteration.model_short_name})")
    if iteration_number is not None and iteration.iteration_number != iteration_number:
        raise ModelNotFound(f"Iteration {iteration_number} of model {iteration.model_short_name} not found in {path}")
    if domain and iteration.domains and domain not in iteration.domains:
        raise ModelNotFound(f"Domain of expertise {domain} is not a participant of {iteration.model_short_name}")

    LOGGER.info(
        f"Read iteration {iteration.iteration_number} of {iteration.model_short_name}: "
        f"{len(iteration.requirements)} requirements, {len(iteration.elements)} elements"
    )
    return iteration


def expand_nested_elements(index, option: Option, include_empty_containers: bool = False) -> List[NestedElement]:
    """
    Materialize the product tree of ``option`` starting at the top element.

    Usages excluded from the option are pruned together with their subtree. Parameter
    values resolve as usage override, then option-dependent value, then plain value.
    """
    top_id = index.iteration.top_element_id
    if top_id is None:
        LOGGER.warning(f"Iteration has no top element, option {option.short_name} has no product tree")
        return []

    nested: List[NestedElement] = []

    def walk(definition: ElementDefinition, path: str, overrides: Mapping[str, str], stack: Set[str]) -> None:
        values = tuple(
            ParameterValue(
                short_name=p.short_name,
                element_id=definition.iid,
                actual_value=overrides.get(p.short_name, p.value_for(option.iid)),
                is_compound=p.is_compound,
            )
            for p in definition.parameters
        )
        if values or include_empty_containers:
            nested.append(NestedElement(short_name=path, element_id=definition.iid, option_id=option.iid, parameter_values=values))

        for usage in definition.usages:
            if option.iid in usage.excluded_option_ids:
                continue
            child = index.element(usage.element_definition_id)
            if child.iid in stack:
                raise MalformedModel(f"Element usage {path}.{usage.short_name} creates a cycle through {child.short_name}")
            walk(child, f"{path}.{usage.short_name}", usage.parameter_overrides, stack | {child.iid})

    top = index.element(top_id)
    walk(top, top.short_name, {}, {top.iid})
    LOGGER.debug(f"Option {option.short_name}: {len(nested)} nested elements")
    return nested
