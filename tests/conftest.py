from pathlib import Path

import pytest

from bsmi_tools.index import ModelIndex
from bsmi_tools.model import (
    Category,
    ElementDefinition,
    ElementUsage,
    Endpoint,
    Iteration,
    Option,
    Parameter,
    Relationship,
    Requirement,
    RequirementsGroup,
    RequirementsSpecification,
)

EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"


def make_iteration() -> Iteration:
    """
    Two specifications, two options and a two level product tree.

    SPEC-A: A-001 (allocated through EPS), A-002 (unallocated), A-004 (direct BSMI 3000)
    SPEC-B: B-003 (retired), B-005 (unallocated, derives A-001)
    """
    requirements = [
        Requirement("r1", "A-001", "s-a", name="Power", definitions=("Supply 28 V.",), owner="SYS",
                    category_ids=("c-func",), group_id="g-pwr"),
        Requirement("r2", "A-002", "s-a", name="Battery", definitions=("Store 40 Wh.",), owner="PWR",
                    category_ids=("c-func", "c-perf"), group_id="g-bat"),
        Requirement("r4", "A-004", "s-a", name="Lifetime", definitions=("Last 5 years.",), owner="SYS",
                    category_ids=("c-perf",), parameter_values={"BSMI": "3000"}),
        Requirement("r3", "B-003", "s-b", name="Retired", definitions=("Old bus.",), owner="PWR",
                    category_ids=("c-func",), is_deprecated=True),
        Requirement("r5", "B-005", "s-b", name="Bus", definitions=("Regulated bus.",), owner="PWR",
                    category_ids=("c-func",)),
    ]
    return Iteration(
        model_short_name="SAT-1",
        model_name="Test Satellite",
        model_definition="Fixture model",
        iteration_number=3,
        description="fixture",
        domains=["SYS", "PWR"],
        categories=[Category("c-func", "FUNC"), Category("c-perf", "PERF")],
        specifications=[
            RequirementsSpecification("s-a", "SPEC-A", name="Mission", requirement_ids=("r1", "r2", "r4"),
                                      group_ids=("g-pwr", "g-bat")),
            RequirementsSpecification("s-b", "SPEC-B", name="System", requirement_ids=("r3", "r5")),
        ],
        groups=[
            RequirementsGroup("g-pwr", "PWR"),
            RequirementsGroup("g-bat", "BAT", parent_id="g-pwr"),
        ],
        requirements=requirements,
        elements=[
            ElementDefinition(
                "e-top",
                "TOP",
                parameters=(Parameter("BSMI", "1000"),),
                usages=(ElementUsage("u-eps", "eps", "e-eps", excluded_option_ids=("o-b",)),),
            ),
            ElementDefinition("e-eps", "EPS", parameters=(Parameter("BSMI", "1200"), Parameter("mass", "3.5"))),
        ],
        options=[Option("o-a", "OPT_A"), Option("o-b", "OPT_B")],
        relationships=[
            Relationship("rel-e1", Endpoint.element("e-eps"), Endpoint.requirement("r1")),
            Relationship("rel-e3", Endpoint.element("e-eps"), Endpoint.requirement("r3")),
            Relationship("rel-d1", Endpoint.requirement("r5"), Endpoint.requirement("r1")),
            Relationship("rel-d2", Endpoint.requirement("r3"), Endpoint.requirement("r1")),
            Relationship("rel-d3", Endpoint.requirement("r2"), Endpoint.requirement("r1")),
        ],
        top_element_id="e-top",
    )


@pytest.fixture
def iteration():
    return make_iteration()


@pytest.fixture
def index(iteration):
    return ModelIndex.build(iteration)


@pytest.fixture
def example_model_path():
    return EXAMPLES_DIR / "bsmi_model.yaml"
