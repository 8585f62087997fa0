"""
Type registry - Display metadata for node types and integration types.

Both tables are plain data. To add a new type, add an entry below;
the schema validator, importers and exporters read the key sets from
here and never branch on individual keys.
"""

from typing import Optional
from pydantic import BaseModel


class NodeTypeConfig(BaseModel):
    """Visual configuration for a node type."""
    label: str
    color: str
    bg_light: str
    bg_dark: str
    border_light: str
    border_dark: str
    icon: str
    dashed: bool = False


class EdgeTypeConfig(BaseModel):
    """Badge styling for an integration (edge) type."""
    label: str
    color: str
    bg: str


NODE_TYPES: dict[str, NodeTypeConfig] = {
    "spring-boot": NodeTypeConfig(
        label="Spring Boot", color="#60a5fa",
        bg_light="#dbeafe", bg_dark="#0f2044",
        border_light="#3b82f6", border_dark="#3b82f6",
        icon="☕",
    ),
    "nodejs": NodeTypeConfig(
        label="Node.js", color="#4ade80",
        bg_light="#dcfce7", bg_dark="#0a2010",
        border_light="#22c55e", border_dark="#22c55e",
        icon="⬡",
    ),
    "mongodb": NodeTypeConfig(
        label="MongoDB", color="#86efac",
        bg_light="#d1fae5", bg_dark="#0a2010",
        border_light="#4ade80", border_dark="#4ade80",
        icon="\U0001f33f",
    ),
    "kafka": NodeTypeConfig(
        label="Kafka", color="#fb923c",
        bg_light="#ffedd5", bg_dark="#2a1500",
        border_light="#f97316", border_dark="#f97316",
        icon="⇌",
    ),
    "redis": NodeTypeConfig(
        label="Redis", color="#f87171",
        bg_light="#fee2e2", bg_dark="#2a0f0f",
        border_light="#ef4444", border_dark="#ef4444",
        icon="⚡",
    ),
    "postgresql": NodeTypeConfig(
        label="PostgreSQL", color="#38bdf8",
        bg_light="#e0f2fe", bg_dark="#0a1e2e",
        border_light="#0ea5e9", border_dark="#0ea5e9",
        icon="\U0001f5c4",
    ),
    "external": NodeTypeConfig(
        label="External", color="#94a3b8",
        bg_light="#f1f5f9", bg_dark="#1e293b",
        border_light="#94a3b8", border_dark="#64748b",
        icon="\U0001f310",
        dashed=True,
    ),
}

EDGE_TYPES: dict[str, EdgeTypeConfig] = {
    "REST": EdgeTypeConfig(label="REST", color="#60a5fa", bg="#1e3a5f"),
    "SOAP": EdgeTypeConfig(label="SOAP", color="#c084fc", bg="#3b1f6e"),
    "gRPC": EdgeTypeConfig(label="gRPC", color="#34d399", bg="#064e3b"),
    "GraphQL": EdgeTypeConfig(label="GraphQL", color="#f472b6", bg="#831843"),
    "pub/sub": EdgeTypeConfig(label="pub/sub", color="#fb923c", bg="#7c2d12"),
    "db": EdgeTypeConfig(label="db", color="#38bdf8", bg="#0c4a6e"),
    "cache": EdgeTypeConfig(label="cache", color="#f87171", bg="#7f1d1d"),
}

# Type assigned when a lenient import meets a missing or unknown node type
FALLBACK_NODE_TYPE = "external"

# Default node card footprint in pixels
NODE_W = 172
NODE_H = 58


def node_type_keys() -> list[str]:
    """All node type keys, in table order."""
    return list(NODE_TYPES)


def edge_type_keys() -> list[str]:
    """All integration type keys, in table order."""
    return list(EDGE_TYPES)


def is_node_type(key) -> bool:
    return isinstance(key, str) and key in NODE_TYPES


def is_edge_type(key) -> bool:
    return isinstance(key, str) and key in EDGE_TYPES


def get_node_type(key: str) -> Optional[NodeTypeConfig]:
    return NODE_TYPES.get(key)


def get_edge_type(key: str) -> Optional[EdgeTypeConfig]:
    return EDGE_TYPES.get(key)


def node_type_label(key: str) -> str:
    """Display label for a node type, falling back to the raw key."""
    config = NODE_TYPES.get(key)
    return config.label if config else key


def registry_dict() -> dict:
    """Both tables as JSON-serializable dicts (for API responses)."""
    return {
        "node_types": {k: v.model_dump() for k, v in NODE_TYPES.items()},
        "edge_types": {k: v.model_dump() for k, v in EDGE_TYPES.items()},
        "default_size": {"width": NODE_W, "height": NODE_H},
        "fallback_node_type": FALLBACK_NODE_TYPE,
    }
