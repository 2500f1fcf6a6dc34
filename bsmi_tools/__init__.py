"""
BSMI allocation and requirement traceability reporting over an engineering-model
iteration snapshot.
"""

__version__ = "1.0.0"

from .errors import (  # noqa: F401,E402
    ArgumentValidationError,
    BsmiToolsError,
    ConnectionFailed,
    EmptyPartitionList,
    InvalidCodeFormat,
    MalformedModel,
    ModelNotFound,
    NullIteration,
    NullOutputTarget,
    NullPartitions,
    ProviderError,
)

from .model import (  # noqa: F401,E402
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

from .index import ModelIndex  # noqa: F401,E402
from .object_level import cleanup_short_name, compute_object_level  # noqa: F401,E402
from .allocation import AllocationIssue, AllocationRecord, resolve_allocations  # noqa: F401,E402
from .derivation import DerivationIndex  # noqa: F401,E402
from .traceability import GraphDocument, Partition, build_traceability_graph, parse_partitions, render_dot  # noqa: F401,E402
from .provider import expand_nested_elements, load_iteration  # noqa: F401,E402
from .reports import DotReportGenerator, HtmlReportGenerator, ReportGenerator, XlReportGenerator  # noqa: F401,E402

__all__ = [
    "__version__",
    "ArgumentValidationError",
    "BsmiToolsError",
    "ConnectionFailed",
    "EmptyPartitionList",
    "InvalidCodeFormat",
    "MalformedModel",
    "ModelNotFound",
    "NullIteration",
    "NullOutputTarget",
    "NullPartitions",
    "ProviderError",
    "Category",
    "ElementDefinition",
    "ElementUsage",
    "Endpoint",
    "EndpointKind",
    "Iteration",
    "NestedElement",
    "Option",
    "Parameter",
    "ParameterValue",
    "Relationship",
    "Requirement",
    "RequirementsGroup",
    "RequirementsSpecification",
    "ModelIndex",
    "cleanup_short_name",
    "compute_object_level",
    "AllocationIssue",
    "AllocationRecord",
    "resolve_allocations",
    "DerivationIndex",
    "GraphDocument",
    "Partition",
    "build_traceability_graph",
    "parse_partitions",
    "render_dot",
    "expand_nested_elements",
    "load_iteration",
    "DotReportGenerator",
    "HtmlReportGenerator",
    "ReportGenerator",
    "XlReportGenerator",
]
