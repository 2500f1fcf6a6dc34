"""Read-only data model of a materialized engineering-model iteration.

All cross references are held as iids and resolved through ``ModelIndex``; no
entity owns a pointer to its container.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional, Tuple

ALLOCATION_MARKER = "BSMI"
SATISFIES = "satisfies"


@dataclass(frozen=True)
class Category:
    iid: str
    short_name: str
    name: str = ""


@dataclass(frozen=True)
class RequirementsGroup:
    iid: str
    short_name: str
    name: str = ""
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class Requirement:
    iid: str
    short_name: str
    specification_id: Optional[str]
    name: str = ""
    definitions: Tuple[str, ...] = ()
    owner: str = ""
    category_ids: Tuple[str, ...] = ()
    group_id: Optional[str] = None
    is_deprecated: bool = False
    parameter_values: Mapping[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """First definition content, empty when the requirement has no definition."""
        return self.definitions[0] if self.definitions else ""

    def is_member_of(self, category_id: str) -> bool:
        return category_id in self.category_ids


@dataclass(frozen=True)
class RequirementsSpecification:
    iid: str
    short_name: str
    name: str = ""
    is_deprecated: bool = False
    requirement_ids: Tuple[str, ...] = ()
    group_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Parameter:
    short_name: str
    value: str = ""
    is_compound: bool = False
    # option iid -> value, for option-dependent parameters
    option_values: Mapping[str, str] = field(default_factory=dict)

    def value_for(self, option_id: str) -> str:
        return self.option_values.get(option_id, self.value)


@dataclass(frozen=True)
class ElementUsage:
    iid: str
    short_name: str
    element_definition_id: str
    excluded_option_ids: Tuple[str, ...] = ()
    parameter_overrides: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ElementDefinition:
    iid: str
    short_name: str
    name: str = ""
    owner: str = ""
    category_ids: Tuple[str, ...] = ()
    parameters: Tuple[Parameter, ...] = ()
    usages: Tuple[ElementUsage, ...] = ()


@dataclass(frozen=True)
class Option:
    iid: str
    short_name: str
    name: str = ""


@dataclass(frozen=True)
class ParameterValue:
    short_name: str
    element_id: str
    actual_value: str
    is_compound: bool = False


@dataclass(frozen=True)
class NestedElement:
    short_name: str
    element_id: str
    option_id: str
    parameter_values: Tuple[ParameterValue, ...] = ()


class EndpointKind(Enum):
    ELEMENT = "element"
    REQUIREMENT = "requirement"


@dataclass(frozen=True)
class Endpoint:
    kind: EndpointKind
    iid: str

    @classmethod
    def element(cls, iid: str) -> "Endpoint":
        return cls(EndpointKind.ELEMENT, iid)

    @classmethod
    def requirement(cls, iid: str) -> "Endpoint":
        return cls(EndpointKind.REQUIREMENT, iid)

    @property
    def is_requirement(self) -> bool:
        return self.kind is EndpointKind.REQUIREMENT

    @property
    def is_element(self) -> bool:
        return self.kind is EndpointKind.ELEMENT


@dataclass(frozen=True)
class Relationship:
    iid: str
    source: Optional[Endpoint]
    target: Optional[Endpoint]
    kind: str = SATISFIES

    @property
    def links_requirements(self) -> bool:
        return bool(self.source and self.target and self.source.is_requirement and self.target.is_requirement)


@dataclass
class Iteration:
    """A fully materialized iteration of an engineering model."""

    model_short_name: str
    model_name: str = ""
    model_definition: str = ""
    iteration_number: int = 1
    description: str = ""
    domains: List[str] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    specifications: List[RequirementsSpecification] = field(default_factory=list)
    groups: List[RequirementsGroup] = field(default_factory=list)
    requirements: List[Requirement] = field(default_factory=list)
    elements: List[ElementDefinition] = field(default_factory=list)
    options: List[Option] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    top_element_id: Optional[str] = None
