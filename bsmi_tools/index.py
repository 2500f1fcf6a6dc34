"""Lookup structures over one loaded iteration.

``ModelIndex`` is built once per invocation and never mutated afterwards. Building
it also validates the back-references the rest of the tools rely on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .errors import MalformedModel
from .model import (
    Category,
    ElementDefinition,
    Endpoint,
    Iteration,
    NestedElement,
    Option,
    Relationship,
    Requirement,
    RequirementsGroup,
    RequirementsSpecification,
)
from .provider import expand_nested_elements

LOGGER = logging.getLogger(__name__)

GROUP_PATH_SEPARATOR = "\\"


@dataclass
class ModelIndex:
    iteration: Iteration
    requirements: Dict[str, Requirement] = field(default_factory=dict)
    specifications: Dict[str, RequirementsSpecification] = field(default_factory=dict)
    groups: Dict[str, RequirementsGroup] = field(default_factory=dict)
    categories: Dict[str, Category] = field(default_factory=dict)
    elements: Dict[str, ElementDefinition] = field(default_factory=dict)
    options: Dict[str, Option] = field(default_factory=dict)
    relationships_by_source: Dict[str, List[Relationship]] = field(default_factory=dict)
    relationships_by_target: Dict[str, List[Relationship]] = field(default_factory=dict)
    group_paths: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, iteration: Iteration) -> "ModelIndex":
        index = cls(iteration=iteration)
        index.requirements = _unique_by_iid(iteration.requirements, "requirement")
        index.specifications = _unique_by_iid(iteration.specifications, "specification")
        index.groups = _unique_by_iid(iteration.groups, "group")
        index.categories = _unique_by_iid(iteration.categories, "category")
        index.elements = _unique_by_iid(iteration.elements, "element definition")
        index.options = _unique_by_iid(iteration.options, "option")
        _unique_by_iid(iteration.relationships, "relationship")

        index._check_containment()
        index._index_groups()
        index._index_relationships()

        LOGGER.debug(
            "Indexed %s requirements in %s specifications, %s elements, %s relationships",
            len(index.requirements),
            len(index.specifications),
            len(index.elements),
            len(iteration.relationships),
        )
        return index

    def _check_containment(self) -> None:
        for spec in self.specifications.values():
            for req_id in spec.requirement_ids:
                requirement = self.requirements.get(req_id)
                if requirement is None:
                    raise MalformedModel(f"Specification {spec.short_name} lists unknown requirement {req_id}")
                if requirement.specification_id != spec.iid:
                    raise MalformedModel(
                        f"Requirement {requirement.short_name} is listed by {spec.short_name} "
                        f"but its container is {requirement.specification_id!r}"
                    )
            for group_id in spec.group_ids:
                if group_id not in self.groups:
                    raise MalformedModel(f"Specification {spec.short_name} lists unknown group {group_id}")

        for requirement in self.requirements.values():
            if not requirement.specification_id:
                raise MalformedModel(f"Requirement {requirement.short_name} has no container specification")
            spec = self.specifications.get(requirement.specification_id)
            if spec is None or requirement.iid not in spec.requirement_ids:
                raise MalformedModel(
                    f"Requirement {requirement.short_name} refers to container "
                    f"{requirement.specification_id} that does not contain it"
                )
            if requirement.group_id is not None and requirement.group_id not in self.groups:
                raise MalformedModel(
                    f"Requirement {requirement.short_name} refers to unknown group {requirement.group_id}"
                )

    def _index_groups(self) -> None:
        for group in self.groups.values():
            if group.parent_id is not None and group.parent_id not in self.groups:
                raise MalformedModel(f"Group {group.short_name} refers to unknown parent {group.parent_id}")

        for group in self.groups.values():
            parts: List[str] = []
            seen = set()
            current: Optional[RequirementsGroup] = group
            while current is not None:
                if current.iid in seen:
                    raise MalformedModel(f"Group {group.short_name} is part of a parent cycle")
                seen.add(current.iid)
                parts.append(current.short_name)
                current = self.groups.get(current.parent_id) if current.parent_id else None
            self.group_paths[group.iid] = GROUP_PATH_SEPARATOR.join(reversed(parts))

    def _index_relationships(self) -> None:
        for relationship in self.iteration.relationships:
            for endpoint in (relationship.source, relationship.target):
                if endpoint is not None and not self._endpoint_exists(endpoint):
                    raise MalformedModel(
                        f"Relationship {relationship.iid} refers to unknown {endpoint.kind.value} {endpoint.iid}"
                    )
            if relationship.source is not None:
                self.relationships_by_source.setdefault(relationship.source.iid, []).append(relationship)
            if relationship.target is not None:
                self.relationships_by_target.setdefault(relationship.target.iid, []).append(relationship)

    def _endpoint_exists(self, endpoint: Endpoint) -> bool:
        if endpoint.is_requirement:
            return endpoint.iid in self.requirements
        return endpoint.iid in self.elements

    # -- lookups -------------------------------------------------------------

    def requirement(self, iid: str) -> Requirement:
        try:
            return self.requirements[iid]
        except KeyError:
            raise MalformedModel(f"Unknown requirement {iid}") from None

    def element(self, iid: str) -> ElementDefinition:
        try:
            return self.elements[iid]
        except KeyError:
            raise MalformedModel(f"Unknown element definition {iid}") from None

    def specification_of(self, requirement: Requirement) -> RequirementsSpecification:
        spec = self.specifications.get(requirement.specification_id or "")
        if spec is None:
            raise MalformedModel(f"Requirement {requirement.short_name} has no container specification")
        return spec

    def group_of(self, requirement: Requirement) -> Optional[RequirementsGroup]:
        if requirement.group_id is None:
            return None
        return self.groups[requirement.group_id]

    def group_path(self, group: RequirementsGroup) -> str:
        return self.group_paths[group.iid]

    def requirements_of(self, spec: RequirementsSpecification) -> List[Requirement]:
        return [self.requirements[req_id] for req_id in spec.requirement_ids]

    def contained_groups(self, spec: RequirementsSpecification) -> List[RequirementsGroup]:
        """All groups of a specification, depth-first, following the specification's group order."""

        members = [self.groups[group_id] for group_id in spec.group_ids]
        member_ids = {g.iid for g in members}
        children: Dict[Optional[str], List[RequirementsGroup]] = {}
        for group in members:
            parent = group.parent_id if group.parent_id in member_ids else None
            children.setdefault(parent, []).append(group)

        ordered: List[RequirementsGroup] = []

        def visit(parent_id: Optional[str]) -> None:
            for group in children.get(parent_id, []):
                ordered.append(group)
                visit(group.iid)

        visit(None)
        return ordered

    def specification_by_short_name(self, short_name: str) -> Optional[RequirementsSpecification]:
        for spec in self.specifications.values():
            if spec.short_name == short_name:
                return spec
        return None

    def category_by_short_name(self, short_name: str) -> Optional[Category]:
        for category in self.categories.values():
            if category.short_name == short_name:
                return category
        return None

    def option_by_short_name(self, short_name: str) -> Optional[Option]:
        for option in self.options.values():
            if option.short_name == short_name:
                return option
        return None

    def category_short_names(self, category_ids: Iterable[str]) -> str:
        names = [self.categories[c].short_name for c in category_ids if c in self.categories]
        return ", ".join(names)

    def relationships_from(self, iid: str) -> List[Relationship]:
        return self.relationships_by_source.get(iid, [])

    def relationships_to(self, iid: str) -> List[Relationship]:
        return self.relationships_by_target.get(iid, [])

    def nested_instances(self, element_id: str, option: Option) -> List[NestedElement]:
        """Occurrences of an element definition in the product tree of ``option``."""
        nested = expand_nested_elements(self, option, include_empty_containers=True)
        return [n for n in nested if n.element_id == element_id]


def _unique_by_iid(items, kind: str) -> Dict:
    mapping: Dict = {}
    for item in items:
        if item.iid in mapping:
            raise MalformedModel(f"Duplicate {kind} iid {item.iid}")
        mapping[item.iid] = item
    return mapping
