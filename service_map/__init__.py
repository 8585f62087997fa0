"""
Service Map Core - Graph model, layout and import/export for service dependency maps.

This package is the single source of truth for graph logic, used by the
HTTP backend and the command line alike.
"""

from .models import (
    # Core models
    Node,
    Edge,
    ServiceGraph,
    # Request models (for API)
    CreateNodeRequest,
    UpdateNodeRequest,
    CreateEdgeRequest,
    UpdateEdgeRequest,
)

from .registry import NODE_TYPES, EDGE_TYPES, FALLBACK_NODE_TYPE, NODE_W, NODE_H
from .errors import (
    ServiceMapError,
    ImportParseError,
    StructuralError,
    SchemaValidationError,
    DanglingReferenceError,
    UnknownTypeError,
)
from .schema import validate_service_schema, service_schema_json_schema, SchemaError
from .layout import compute_layout, compute_depths
from .groups import compute_namespace_groups, NamespaceGroup
from .importers import import_service_schema, import_schema_export
from .exporters import to_mermaid, to_mermaid_markdown, to_schema_export, schema_export_dict
from .validation import validate_graph, ValidationIssue, IssueSeverity

__all__ = [
    # Models
    "Node",
    "Edge",
    "ServiceGraph",
    # Request models
    "CreateNodeRequest",
    "UpdateNodeRequest",
    "CreateEdgeRequest",
    "UpdateEdgeRequest",
    # Registry
    "NODE_TYPES",
    "EDGE_TYPES",
    "FALLBACK_NODE_TYPE",
    "NODE_W",
    "NODE_H",
    # Errors
    "ServiceMapError",
    "ImportParseError",
    "StructuralError",
    "SchemaValidationError",
    "DanglingReferenceError",
    "UnknownTypeError",
    # Schema
    "validate_service_schema",
    "service_schema_json_schema",
    "SchemaError",
    # Layout
    "compute_layout",
    "compute_depths",
    "compute_namespace_groups",
    "NamespaceGroup",
    # Import / export
    "import_service_schema",
    "import_schema_export",
    "to_mermaid",
    "to_mermaid_markdown",
    "to_schema_export",
    "schema_export_dict",
    # Validation
    "validate_graph",
    "ValidationIssue",
    "IssueSeverity",
]
