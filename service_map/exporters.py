"""
Export translators for service maps.

Supported formats:
- Mermaid: a `graph LR` flowchart with one subgraph per namespace
- Schema export: flat JSON snapshot with positions, re-importable
  with import_schema_export

All functions are pure and take the node/edge lists as arguments.
"""

import json
import re
from datetime import datetime, timezone
from typing import Optional

from .models import Node, Edge
from .registry import node_type_label

SCHEMA_EXPORT_VERSION = "1.0"

# Identifiers Mermaid accepts without quoting
_MERMAID_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def _mermaid_text(text: str) -> str:
    """Escape user text for Mermaid labels using Mermaid entity codes."""
    text = re.sub(r"[\r\n]+", " ", text)
    return (
        text.replace("&", "#amp;")
        .replace("<", "#lt;")
        .replace(">", "#gt;")
        .replace('"', "#quot;")
        .replace("|", "#124;")
    )


def _mermaid_node_line(node: Node, indent: str) -> str:
    name = _mermaid_text(node.name)
    type_label = _mermaid_text(node_type_label(node.type))
    return f'{indent}{node.id}["{name}<br/><small>{type_label}</small>"]'


def _subgraph_header(namespace: str, used_ids: set[str]) -> str:
    """
    `subgraph ns` for simple names; otherwise a generated id with the
    namespace as a quoted title.
    """
    if _MERMAID_ID.match(namespace) and namespace not in used_ids:
        used_ids.add(namespace)
        return f"  subgraph {namespace}"

    base = re.sub(r"[^A-Za-z0-9_]", "_", namespace) or "ns"
    sub_id = base
    suffix = 1
    while sub_id in used_ids:
        sub_id = f"{base}_{suffix}"
        suffix += 1
    used_ids.add(sub_id)
    return f'  subgraph {sub_id}["{_mermaid_text(namespace)}"]'


def to_mermaid(nodes: list[Node], edges: list[Edge]) -> str:
    """
    Generate a Mermaid diagram from the graph.

    Namespaces become `subgraph` blocks in first-appearance order;
    nodes without a namespace are declared at top level. Edge labels
    use the integration type, then the free-text label.

    Args:
        nodes: Graph nodes
        edges: Graph edges

    Returns:
        Mermaid source text (no trailing newline)
    """
    lines = ["graph LR"]

    namespaces: dict[str, list[Node]] = {}
    ungrouped: list[Node] = []
    for node in nodes:
        if node.namespace:
            namespaces.setdefault(node.namespace, []).append(node)
        else:
            ungrouped.append(node)

    used_ids: set[str] = set()
    for namespace, ns_nodes in namespaces.items():
        lines.append(_subgraph_header(namespace, used_ids))
        for node in ns_nodes:
            lines.append(_mermaid_node_line(node, "    "))
        lines.append("  end")

    for node in ungrouped:
        lines.append(_mermaid_node_line(node, "  "))

    for edge in edges:
        label = edge.type or edge.label
        if label:
            lines.append(f"  {edge.source} -->|{_mermaid_text(label)}| {edge.target}")
        else:
            lines.append(f"  {edge.source} --> {edge.target}")

    return "\n".join(lines)


def to_mermaid_markdown(nodes: list[Node], edges: list[Edge]) -> str:
    """Mermaid diagram wrapped in a fenced block, ready to save as .md."""
    return "```mermaid\n" + to_mermaid(nodes, edges) + "\n```\n"


def schema_export_dict(
    nodes: list[Node],
    edges: list[Edge],
    exported_at: Optional[datetime] = None,
) -> dict:
    """
    Build the schema-export structure. Absent optional fields are
    written as None (null) rather than omitted.
    """
    exported_at = exported_at or datetime.now(timezone.utc)
    return {
        "version": SCHEMA_EXPORT_VERSION,
        "exportedAt": exported_at.isoformat(),
        "nodes": [
            {
                "id": n.id,
                "name": n.name,
                "type": n.type,
                "namespace": n.namespace,
                "x": n.x,
                "y": n.y,
                "width": n.width,
                "height": n.height,
            }
            for n in nodes
        ],
        "edges": [
            {
                "id": e.id,
                "source": e.source,
                "target": e.target,
                "type": e.type,
                "label": e.label,
                "source_side": e.source_side,
                "target_side": e.target_side,
                "control_offset_x": e.control_offset_x,
                "control_offset_y": e.control_offset_y,
            }
            for e in edges
        ],
    }


def to_schema_export(nodes: list[Node], edges: list[Edge]) -> str:
    """
    Serialize the graph to schema-export JSON text.

    The output can be re-imported with import_schema_export to restore
    the exact canvas state.
    """
    return json.dumps(schema_export_dict(nodes, edges), indent=2, ensure_ascii=False, allow_nan=False)
