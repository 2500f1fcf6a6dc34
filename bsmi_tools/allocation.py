"""Allocation of requirements to BSMI codes for one option.

A requirement is allocated structurally when an element carrying a plain "BSMI"
parameter in the option's nested-element tree satisfies it. Requirements that are not
reached that way fall back to a "BSMI" value held by the requirement itself, and
finally to the fallback code supplied by the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import ArgumentValidationError, MalformedModel, NullIteration
from .index import ModelIndex
from .model import (
    ALLOCATION_MARKER,
    SATISFIES,
    NestedElement,
    Option,
    ParameterValue,
    Relationship,
    Requirement,
    RequirementsSpecification,
)
from .provider import expand_nested_elements

LOGGER = logging.getLogger(__name__)

DEFAULT_UNALLOCATED_CODE = "9999"
UNSET_VALUE = "-"

CONFLICT = "conflict"
UNALLOCATED = "unallocated"


@dataclass(frozen=True)
class AllocationIssue:
    kind: str
    requirement: str
    message: str


@dataclass
class AllocationRecord:
    requirement: Requirement
    code: str
    relationships: List[Relationship] = field(default_factory=list)
    nested_elements: List[NestedElement] = field(default_factory=list)
    issues: List[AllocationIssue] = field(default_factory=list)

    def add_contribution(self, relationship: Relationship, nested_element: NestedElement) -> None:
        if all(r.iid != relationship.iid for r in self.relationships):
            self.relationships.append(relationship)
        if nested_element not in self.nested_elements:
            self.nested_elements.append(nested_element)

    @property
    def relationship_iids(self) -> List[str]:
        return [r.iid for r in self.relationships]

    @property
    def nested_element_names(self) -> List[str]:
        return [n.short_name for n in self.nested_elements]


def find_allocation_value(nested_element: NestedElement, marker: str = ALLOCATION_MARKER) -> Optional[ParameterValue]:
    """First plain (non-compound) parameter value tagged with ``marker``."""
    for value in nested_element.parameter_values:
        if value.short_name == marker and not value.is_compound:
            return value
    return None


def _satisfied_requirements(index: ModelIndex, element_id: str) -> Iterable[tuple]:
    for relationship in index.relationships_from(element_id):
        if relationship.kind != SATISFIES:
            continue
        source, target = relationship.source, relationship.target
        if source is None or not source.is_element:
            continue
        if target is None or not target.is_requirement:
            continue
        yield relationship, index.requirement(target.iid)


def _record_issue(record: AllocationRecord, kind: str, message: str) -> None:
    LOGGER.warning(message)
    record.issues.append(AllocationIssue(kind, record.requirement.short_name, message))


def resolve_allocations(
    index: ModelIndex,
    specifications: Sequence[RequirementsSpecification],
    option: Option,
    nested_elements: Optional[Iterable[NestedElement]] = None,
    fallback_code: str = DEFAULT_UNALLOCATED_CODE,
) -> List[AllocationRecord]:
    """
    Allocate every requirement of ``specifications`` to a BSMI code for ``option``.

    ``nested_elements`` is the option's nested-element tree in provider order; when
    omitted it is expanded from the index. Records come back sorted by code, ties in
    discovery order. Conflicting and missing allocations are logged and attached to
    the affected record, they never abort the run.
    """
    if index is None:
        raise NullIteration()
    if specifications is None:
        raise ArgumentValidationError("specifications must not be None")
    if option is None:
        raise ArgumentValidationError("option must not be None")

    if nested_elements is None:
        nested_elements = expand_nested_elements(index, option)

    spec_ids = {spec.iid for spec in specifications}
    records: Dict[str, AllocationRecord] = {}

    for nested_element in nested_elements:
        if nested_element.option_id != option.iid:
            raise MalformedModel(
                f"Nested element {nested_element.short_name} belongs to option {nested_element.option_id}, "
                f"not {option.short_name}"
            )
        value = find_allocation_value(nested_element)
        if value is None:
            continue

        element = index.element(value.element_id)
        for relationship, requirement in _satisfied_requirements(index, element.iid):
            if requirement.is_deprecated or requirement.specification_id not in spec_ids:
                continue

            record = records.get(requirement.iid)
            if record is None:
                record = AllocationRecord(requirement=requirement, code=value.actual_value)
                records[requirement.iid] = record
            elif record.code != value.actual_value:
                _record_issue(
                    record,
                    CONFLICT,
                    f"Requirement {requirement.short_name} is linked to multiple BSMI codes: "
                    f"keeping {record.code}, ignoring {value.actual_value} from {nested_element.short_name}",
                )
            record.add_contribution(relationship, nested_element)

    structural = len(records)

    for spec in specifications:
        for requirement in index.requirements_of(spec):
            if requirement.is_deprecated or requirement.iid in records:
                continue

            direct = str(requirement.parameter_values.get(ALLOCATION_MARKER, "") or "").strip()
            if direct and direct != UNSET_VALUE:
                records[requirement.iid] = AllocationRecord(requirement=requirement, code=direct)
                continue

            record = AllocationRecord(requirement=requirement, code=fallback_code)
            records[requirement.iid] = record
            _record_issue(
                record,
                UNALLOCATED,
                f"Requirement {requirement.short_name} has not been linked to a BSMI "
                f"and is therefore added to BSMI {fallback_code}",
            )

    LOGGER.info(
        f"Option {option.short_name}: {structural} requirements allocated through the product tree, "
        f"{len(records) - structural} through direct values or the fallback code"
    )
    return sorted(records.values(), key=lambda r: r.code)
