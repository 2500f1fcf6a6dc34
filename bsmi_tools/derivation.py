from __future__ import annotations

from typing import List

from .index import ModelIndex
from .model import Requirement


class DerivationIndex:
    """
    Requirement-to-requirement derivation links of one iteration.

    Every relationship between two requirements counts, whatever its kind, so the
    report columns agree with the edges of the traceability graph.
    """

    def __init__(self, index: ModelIndex) -> None:
        self.index = index

    def incoming(self, requirement: Requirement) -> List[Requirement]:
        """Live requirements that derive ``requirement``, in relationship order."""
        found: List[Requirement] = []
        for relationship in self.index.relationships_to(requirement.iid):
            if not relationship.links_requirements:
                continue
            source = self.index.requirement(relationship.source.iid)
            if not source.is_deprecated:
                found.append(source)
        return found

    def outgoing(self, requirement: Requirement) -> List[Requirement]:
        """Live requirements derived from ``requirement``, in relationship order."""
        found: List[Requirement] = []
        for relationship in self.index.relationships_from(requirement.iid):
            if not relationship.links_requirements:
                continue
            target = self.index.requirement(relationship.target.iid)
            if not target.is_deprecated:
                found.append(target)
        return found

    def incoming_short_names(self, requirement: Requirement) -> List[str]:
        return [r.short_name for r in self.incoming(requirement)]

    def outgoing_short_names(self, requirement: Requirement) -> List[str]:
        return [r.short_name for r in self.outgoing(requirement)]
