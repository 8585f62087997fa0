"""
Core data models for service maps.

These models define the canonical graph shape:
- Nodes are services, datastores or brokers, keyed by a node-type from the registry
- Edges are directed integrations between two nodes (source/target)
- ServiceGraph holds both collections in insertion order

Field Naming Convention:
- Edges use `source` and `target`
- For backward compatibility, `from`/`to` are accepted on input and converted
"""

import re
import secrets
import string
import uuid
from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator, model_validator

from .registry import NODE_W, NODE_H


_BASE36 = string.digits + string.ascii_lowercase
_WHITESPACE = re.compile(r"\s+")

# Names of the connection points on a node card
NODE_SIDES = ("top", "right", "bottom", "left")


def random_token(length: int = 6) -> str:
    """Random lowercase base-36 token."""
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def slugify(name: str) -> str:
    """Lowercase a display name and collapse whitespace runs to dashes."""
    return _WHITESPACE.sub("-", name.strip().lower())


def convert_legacy_endpoints(data: Any) -> Any:
    """Convert legacy 'from'/'to' keys to 'source'/'target'."""
    if isinstance(data, dict):
        data = dict(data)
        if 'from' in data and 'source' not in data:
            data['source'] = data.pop('from')
        if 'to' in data and 'target' not in data:
            data['target'] = data.pop('to')
    return data


def generate_node_id(name: str) -> str:
    """Generate a node ID from a display name plus a random suffix."""
    return f"{slugify(name)}-{random_token()}"


def generate_edge_id() -> str:
    """Generate a unique edge ID."""
    return f"e{uuid.uuid4().hex[:8]}"


class Node(BaseModel):
    """A service, datastore or broker on the canvas."""
    id: str
    name: str
    type: str
    namespace: Optional[str] = None
    # Coordinates must be finite so snapshots stay valid JSON
    x: float = Field(0, allow_inf_nan=False)
    y: float = Field(0, allow_inf_nan=False)
    # None means "use the registry default size"
    width: Optional[float] = Field(None, allow_inf_nan=False)
    height: Optional[float] = Field(None, allow_inf_nan=False)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be empty")
        return value

    @property
    def effective_width(self) -> float:
        return self.width if self.width is not None else NODE_W

    @property
    def effective_height(self) -> float:
        return self.height if self.height is not None else NODE_H

    def center(self) -> tuple[float, float]:
        """Get the center point of the node."""
        return (self.x + self.effective_width / 2, self.y + self.effective_height / 2)

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (self.x, self.y, self.x + self.effective_width, self.y + self.effective_height)


class Edge(BaseModel):
    """
    A directed integration between two nodes.

    Uses `source` and `target` as canonical field names.
    Accepts `from`/`to` on input for backward compatibility.
    """
    id: str = Field(default_factory=generate_edge_id)
    source: str
    target: str
    type: Optional[str] = None    # Integration type key
    label: Optional[str] = None   # Free text, independent of type
    # Connection points ("top", "right", "bottom", "left", or None for auto)
    source_side: Optional[str] = None
    target_side: Optional[str] = None
    # Manual curve reshaping
    control_offset_x: Optional[float] = Field(None, allow_inf_nan=False)
    control_offset_y: Optional[float] = Field(None, allow_inf_nan=False)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy 'from'/'to' fields to 'source'/'target'."""
        return convert_legacy_endpoints(data)

    def handle_key(self) -> tuple[str, str, Optional[str], Optional[str]]:
        """Identity used for duplicate detection: endpoints plus connection points."""
        return (self.source, self.target, self.source_side, self.target_side)


class ServiceGraph(BaseModel):
    """
    The complete working graph: nodes and edges in insertion order.
    """
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID (O(n) - use GraphManager for indexed access)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get an edge by ID (O(n) - use GraphManager for indexed access)."""
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None


# --- API Request Models ---

class CreateNodeRequest(BaseModel):
    """Request to create a new node."""
    name: str
    type: str
    namespace: Optional[str] = None


class UpdateNodeRequest(BaseModel):
    """
    Request to update an existing node (partial update).

    Only fields that were actually sent are applied; sending
    `namespace`, `width` or `height` as null clears them.
    """
    name: Optional[str] = None
    type: Optional[str] = None
    namespace: Optional[str] = None
    x: Optional[float] = Field(None, allow_inf_nan=False)
    y: Optional[float] = Field(None, allow_inf_nan=False)
    width: Optional[float] = Field(None, allow_inf_nan=False)
    height: Optional[float] = Field(None, allow_inf_nan=False)


class CreateEdgeRequest(BaseModel):
    """Request to connect two nodes."""
    source: str
    target: str
    type: Optional[str] = None
    label: Optional[str] = None
    source_side: Optional[str] = None
    target_side: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy 'from'/'to' fields to 'source'/'target'."""
        return convert_legacy_endpoints(data)


class UpdateEdgeRequest(BaseModel):
    """Request to update an existing edge (partial update)."""
    type: Optional[str] = None
    label: Optional[str] = None
    source_side: Optional[str] = None
    target_side: Optional[str] = None
    control_offset_x: Optional[float] = Field(None, allow_inf_nan=False)
    control_offset_y: Optional[float] = Field(None, allow_inf_nan=False)
