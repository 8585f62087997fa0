"""
Namespace groups - Background rectangles derived from node positions.

Groups are never stored; they are recomputed from the nodes whenever
the nodes change (GraphManager memoizes them per change version).
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Node


NS_PADDING = 24
NS_ID_PREFIX = "__ns__"


@dataclass
class NamespaceGroup:
    """Bounding rectangle enclosing all nodes of one namespace."""
    label: str
    x: float
    y: float
    width: float
    height: float
    node_ids: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return f"{NS_ID_PREFIX}{self.label}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "node_ids": list(self.node_ids),
        }


def compute_namespace_groups(nodes: list["Node"], padding: float = NS_PADDING) -> list[NamespaceGroup]:
    """
    Compute one group rectangle per namespace, in first-appearance order.

    Nodes without a namespace belong to no group.
    """
    members: dict[str, list["Node"]] = {}
    for node in nodes:
        if node.namespace:
            members.setdefault(node.namespace, []).append(node)

    groups: list[NamespaceGroup] = []
    for label, group_nodes in members.items():
        min_x = min(n.x for n in group_nodes) - padding
        min_y = min(n.y for n in group_nodes) - padding
        max_x = max(n.x + n.effective_width for n in group_nodes) + padding
        max_y = max(n.y + n.effective_height for n in group_nodes) + padding
        groups.append(NamespaceGroup(
            label=label,
            x=min_x,
            y=min_y,
            width=max_x - min_x,
            height=max_y - min_y,
            node_ids=[n.id for n in group_nodes],
        ))

    return groups
