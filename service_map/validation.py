"""
Graph validation - Check a service graph for structural issues.

Used by the graph manager and the API to report problems in the
working graph. Unlike the schema validator this works on the
canonical model, not on raw import documents.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .registry import is_node_type, is_edge_type

if TYPE_CHECKING:
    from .models import ServiceGraph


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a graph."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


def validate_graph(graph: "ServiceGraph") -> list[ValidationIssue]:
    """
    Validate a graph and return a list of issues.

    Checks for:
    - Empty graph - INFO
    - Unknown node types - ERROR
    - Invalid edge references (source/target doesn't exist) - ERROR
    - Unknown integration types - ERROR
    - Self-referencing edges - WARNING
    - Duplicate edges (same source, target and connection points) - WARNING
    - Orphan nodes (no connections) - WARNING

    Args:
        graph: The graph to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    nodes = graph.nodes
    edges = graph.edges

    if not nodes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Graph has no nodes"
        ))
        return issues

    node_ids = {n.id for n in nodes}

    for node in nodes:
        if not is_node_type(node.type):
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Unknown node type: {node.type}",
                node_id=node.id
            ))

    for edge in edges:
        if edge.source not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent source node: {edge.source}",
                edge_id=edge.id
            ))
        if edge.target not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent target node: {edge.target}",
                edge_id=edge.id
            ))
        if edge.type is not None and not is_edge_type(edge.type):
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Unknown integration type: {edge.type}",
                edge_id=edge.id
            ))

    for edge in edges:
        if edge.source == edge.target:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Self-referencing edge (node points to itself)",
                edge_id=edge.id,
                node_id=edge.source
            ))

    seen: set[tuple] = set()
    for edge in edges:
        key = edge.handle_key()
        if key in seen:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Duplicate edge from {edge.source} to {edge.target}",
                edge_id=edge.id
            ))
        else:
            seen.add(key)

    connected: set[str] = set()
    for edge in edges:
        connected.add(edge.source)
        connected.add(edge.target)

    orphans = [n for n in nodes if n.id not in connected]
    if orphans:
        orphan_labels = [f"{n.name} ({n.id})" for n in orphans]
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"Orphan nodes (no connections): {', '.join(orphan_labels)}"
        ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }
