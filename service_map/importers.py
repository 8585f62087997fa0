"""
Import translators for service maps.

Two input formats are supported:
- service schema: services with nested integrations, validated strictly
  and then auto-laid out
- schema export: a flat node/edge snapshot with explicit positions,
  accepted leniently (unknown types fall back instead of failing)

Both return a fully built (nodes, edges) pair or raise; a partially
built graph is never returned.
"""

import json
import math
from typing import Any

from pydantic import BaseModel, ValidationError

from .errors import (
    ImportParseError,
    StructuralError,
    SchemaValidationError,
    DanglingReferenceError,
    UnknownTypeError,
)
from .layout import compute_layout
from .logger import get_logger
from .models import Node, Edge, NODE_SIDES, convert_legacy_endpoints
from .registry import FALLBACK_NODE_TYPE, is_node_type, is_edge_type, node_type_keys, edge_type_keys
from .schema import validate_service_schema

logger = get_logger(__name__)

ImportResult = tuple[list[Node], list[Edge]]


def parse_json(text: str) -> Any:
    """Parse JSON text, raising ImportParseError on malformed input."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ImportParseError() from e


def _is_number(value: Any) -> bool:
    # bool is an int subclass but not a coordinate; NaN/Infinity are not JSON
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return math.isfinite(value)


def _is_nonempty_str(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _build(model: type[BaseModel], owner: str, **fields) -> Any:
    """Construct a model, reporting field errors as StructuralError."""
    try:
        return model(**fields)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "value"
        raise StructuralError(f'{owner}: invalid "{location}" ({first["msg"]}).') from e


def import_service_schema(text: str) -> ImportResult:
    """
    Import a service-schema JSON string.

    Validates the whole document first and reports every violation at
    once. Integrations whose target is not a service id are rejected.
    The resulting nodes are positioned by compute_layout.

    Args:
        text: Raw JSON in service-schema format

    Returns:
        (nodes, edges) with layout applied

    Raises:
        ImportParseError, SchemaValidationError, UnknownTypeError,
        DanglingReferenceError, StructuralError
    """
    data = parse_json(text)

    errors = validate_service_schema(data)
    if errors:
        logger.info("service schema rejected", extra={"error_count": len(errors)})
        raise SchemaValidationError(errors)

    services = data["services"]
    nodes: list[Node] = []
    edges: list[Edge] = []
    edge_counter = 0

    for svc in services:
        svc_id = svc["id"]
        if not is_node_type(svc["type"]):
            raise UnknownTypeError(
                f'Service "{svc_id}": invalid type "{svc["type"]}". '
                f'Valid types: {", ".join(node_type_keys())}.'
            )

        namespace = svc.get("namespace")
        nodes.append(_build(
            Node, f'Service "{svc_id}"',
            id=svc_id,
            name=svc["name"],
            type=svc["type"],
            namespace=namespace if isinstance(namespace, str) and namespace else None,
            x=0,
            y=0,
        ))

        for integ in svc.get("integrations", []):
            edge_type = integ.get("type")
            if edge_type is not None and not is_edge_type(edge_type):
                raise UnknownTypeError(
                    f'Service "{svc_id}": invalid integration type "{edge_type}". '
                    f'Valid types: {", ".join(edge_type_keys())}.'
                )
            label = integ.get("label")
            edges.append(_build(
                Edge, f'Service "{svc_id}"',
                id=f"e-import-{edge_counter}",
                source=svc_id,
                target=integ["target"],
                type=edge_type,
                label=label if isinstance(label, str) else None,
            ))
            edge_counter += 1

    service_ids = {n.id for n in nodes}
    for edge in edges:
        if edge.target not in service_ids:
            raise DanglingReferenceError(
                f'Service "{edge.source}": integration target "{edge.target}" does not match any service id.',
                owner_id=edge.source,
                missing_id=edge.target,
            )

    laid_out = compute_layout(nodes, edges)
    logger.info("service schema imported", extra={"nodes": len(laid_out), "edges": len(edges)})
    return laid_out, edges


def _optional_number(value: Any):
    return value if _is_number(value) else None


def _node_from_snapshot(raw: Any, index: int) -> Node:
    if not isinstance(raw, dict):
        raise StructuralError(f"Node at index {index}: expected an object.")
    node_id = raw.get("id")
    if not _is_nonempty_str(node_id):
        raise StructuralError(f'Node at index {index}: missing "id".')
    if not _is_nonempty_str(raw.get("name")) or not raw["name"].strip():
        raise StructuralError(f'Node "{node_id}": missing "name".')
    if not _is_number(raw.get("x")) or not _is_number(raw.get("y")):
        raise StructuralError(f'Node "{node_id}": missing x/y coordinates.')

    node_type = raw.get("type")
    namespace = raw.get("namespace")
    return _build(
        Node, f'Node "{node_id}"',
        id=node_id,
        name=raw["name"],
        type=node_type if is_node_type(node_type) else FALLBACK_NODE_TYPE,
        namespace=namespace if isinstance(namespace, str) and namespace else None,
        x=raw["x"],
        y=raw["y"],
        width=_optional_number(raw.get("width")),
        height=_optional_number(raw.get("height")),
    )


def _edge_from_snapshot(raw: Any, index: int) -> Edge:
    if not isinstance(raw, dict):
        raise StructuralError(f"Edge at index {index}: expected an object.")
    raw = convert_legacy_endpoints(raw)
    edge_id = raw.get("id")
    if not _is_nonempty_str(edge_id):
        raise StructuralError(f'Edge at index {index}: missing "id".')
    if not _is_nonempty_str(raw.get("source")):
        raise StructuralError(f'Edge "{edge_id}": missing "source".')
    if not _is_nonempty_str(raw.get("target")):
        raise StructuralError(f'Edge "{edge_id}": missing "target".')

    edge_type = raw.get("type")
    label = raw.get("label")
    source_side = raw.get("source_side")
    target_side = raw.get("target_side")
    return _build(
        Edge, f'Edge "{edge_id}"',
        id=edge_id,
        source=raw["source"],
        target=raw["target"],
        # Unknown integration types are dropped, not reported
        type=edge_type if is_edge_type(edge_type) else None,
        label=label if isinstance(label, str) else None,
        source_side=source_side if source_side in NODE_SIDES else None,
        target_side=target_side if target_side in NODE_SIDES else None,
        control_offset_x=_optional_number(raw.get("control_offset_x")),
        control_offset_y=_optional_number(raw.get("control_offset_y")),
    )


def import_schema_export(text: str) -> ImportResult:
    """
    Import a schema-export (flat snapshot) JSON string.

    Positions are taken verbatim; no layout pass runs. Node types that
    are missing or unknown become the fallback type.

    Args:
        text: Raw JSON in schema-export format

    Returns:
        (nodes, edges) exactly as described by the snapshot

    Raises:
        ImportParseError, StructuralError, DanglingReferenceError
    """
    data = parse_json(text)

    if not isinstance(data, dict):
        raise StructuralError("Invalid schema-export: expected a JSON object.")
    if not isinstance(data.get("nodes"), list):
        raise StructuralError('Invalid schema-export: missing "nodes" array.')
    if not isinstance(data.get("edges"), list):
        raise StructuralError('Invalid schema-export: missing "edges" array.')

    nodes = [_node_from_snapshot(raw, i) for i, raw in enumerate(data["nodes"])]
    edges = [_edge_from_snapshot(raw, i) for i, raw in enumerate(data["edges"])]

    node_ids: set[str] = set()
    for node in nodes:
        if node.id in node_ids:
            raise StructuralError(f'Duplicate node id "{node.id}".')
        node_ids.add(node.id)

    edge_ids: set[str] = set()
    for edge in edges:
        if edge.id in edge_ids:
            raise StructuralError(f'Duplicate edge id "{edge.id}".')
        edge_ids.add(edge.id)
        for endpoint in (edge.source, edge.target):
            if endpoint not in node_ids:
                raise DanglingReferenceError(
                    f'Edge "{edge.id}": node "{endpoint}" does not exist.',
                    owner_id=edge.id,
                    missing_id=endpoint,
                )

    logger.info("schema export imported", extra={"nodes": len(nodes), "edges": len(edges)})
    return nodes, edges
