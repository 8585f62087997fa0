"""
Graph Manager - Core logic for service map state, history, and persistence.

This module implements:
- Single working graph (one service map open at a time)
- O(1) node/edge lookups via index dictionaries
- Cascading node deletion (incident edges go in the same operation)
- Linear undo/redo history using snapshots
- Atomic whole-graph replacement for imports
- Local JSON persistence in the schema-export format
"""

import math
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..errors import StructuralError, DanglingReferenceError, UnknownTypeError
from ..exporters import to_schema_export, to_mermaid
from ..groups import NamespaceGroup, compute_namespace_groups
from ..importers import import_service_schema, import_schema_export
from ..layout import compute_layout
from ..logger import get_logger
from ..models import (
    ServiceGraph, Node, Edge, NODE_SIDES,
    generate_node_id, generate_edge_id,
)
from ..registry import is_node_type, is_edge_type, node_type_keys, edge_type_keys
from ..settings import settings
from ..validation import validate_graph, ValidationIssue

logger = get_logger(__name__)

# Patch keys that may be explicitly cleared (set to None)
NODE_CLEARABLE = {"namespace", "width", "height"}
NODE_FIELDS = {"name", "type", "namespace", "x", "y", "width", "height"}
EDGE_FIELDS = {"type", "label", "source_side", "target_side", "control_offset_x", "control_offset_y"}

Patch = Union[dict[str, Any], None]


class GraphManager:
    """
    Manages the working service graph, its history, and persistence.

    Features:
    - O(1) node/edge lookups via index dictionaries
    - Snapshot-based undo/redo history
    - Change callbacks for the surrounding UI layer
    - Namespace groups derived from nodes, memoized per change version

    Lookups and mutations on ids that no longer exist are silent no-ops:
    the UI may act on a stale id after a delete.
    """

    def __init__(self, max_history: Optional[int] = None):
        self._graph = ServiceGraph()
        self._file_path: Optional[Path] = None
        self._history: list[dict] = []  # Past states (snapshots)
        self._future: list[dict] = []   # Future states (for redo)
        self._max_history = max_history if max_history is not None else settings.max_history
        self._dirty = False
        self._version = 0  # Bumped on every change
        self._on_change_callbacks: list[Callable] = []
        self._groups_cache: Optional[tuple[int, list[NamespaceGroup]]] = None

        # O(1) lookup indexes
        self._node_index: dict[str, Node] = {}          # node_id -> Node
        self._edge_index: dict[str, Edge] = {}          # edge_id -> Edge
        self._edges_by_node: dict[str, set[str]] = {}   # node_id -> set of edge_ids

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild all indexes from the current graph state."""
        self._node_index.clear()
        self._edge_index.clear()
        self._edges_by_node.clear()

        for node in self._graph.nodes:
            self._node_index[node.id] = node
        for edge in self._graph.edges:
            self._index_edge(edge)

    def _index_edge(self, edge: Edge):
        """Add an edge to the indexes."""
        self._edge_index[edge.id] = edge
        self._edges_by_node.setdefault(edge.source, set()).add(edge.id)
        self._edges_by_node.setdefault(edge.target, set()).add(edge.id)

    def _unindex_edge(self, edge: Edge):
        """Remove an edge from the indexes."""
        self._edge_index.pop(edge.id, None)
        if edge.source in self._edges_by_node:
            self._edges_by_node[edge.source].discard(edge.id)
        if edge.target in self._edges_by_node:
            self._edges_by_node[edge.target].discard(edge.id)

    # --- Properties ---

    @property
    def graph(self) -> ServiceGraph:
        """Get the current graph."""
        return self._graph

    @property
    def nodes(self) -> list[Node]:
        return self._graph.nodes

    @property
    def edges(self) -> list[Edge]:
        return self._graph.edges

    @property
    def file_path(self) -> Optional[Path]:
        return self._file_path

    @property
    def version(self) -> int:
        """Change counter; increases on every mutation."""
        return self._version

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def can_undo(self) -> bool:
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for graph changes."""
        self._on_change_callbacks.append(callback)

    def _changed(self):
        """Mark the graph dirty and notify all registered callbacks."""
        self._version += 1
        self._dirty = True
        for callback in self._on_change_callbacks:
            callback()

    # --- History Management ---

    def _snapshot(self) -> dict:
        return self._graph.model_dump()

    def _save_to_history(self):
        """Save current state to history before a mutation."""
        # A new action invalidates the redo stack
        self._future.clear()
        if self._max_history <= 0:
            return
        self._history.append(self._snapshot())
        if len(self._history) > self._max_history:
            self._history.pop(0)

    def _restore(self, snapshot: dict):
        self._graph = ServiceGraph.model_validate(snapshot)
        self._rebuild_indexes()

    def undo(self) -> Optional[ServiceGraph]:
        """Undo the last action."""
        if not self.can_undo:
            return None

        self._future.append(self._snapshot())
        self._restore(self._history.pop())
        self._changed()
        return self._graph

    def redo(self) -> Optional[ServiceGraph]:
        """Redo the last undone action."""
        if not self.can_redo:
            return None

        self._history.append(self._snapshot())
        self._restore(self._future.pop())
        self._changed()
        return self._graph

    # --- Node Operations ---

    def _new_node_id(self, name: str) -> str:
        node_id = generate_node_id(name)
        while node_id in self._node_index:
            node_id = generate_node_id(name)
        return node_id

    def add_node(self, name: str, type: str, namespace: Optional[str] = None) -> Node:
        """
        Add a new node at the default position with the default size.

        Raises:
            ValueError: if the name is blank
            UnknownTypeError: if the type is not in the registry
        """
        if not name or not name.strip():
            raise ValueError("Node name must not be empty")
        if not is_node_type(type):
            raise UnknownTypeError(
                f'Invalid node type "{type}". Valid types: {", ".join(node_type_keys())}.'
            )

        self._save_to_history()

        node = Node(
            id=self._new_node_id(name),
            name=name.strip(),
            type=type,
            namespace=namespace or None,
            x=settings.default_node_x,
            y=settings.default_node_y,
        )
        self._graph.nodes.append(node)
        self._node_index[node.id] = node
        self._changed()
        return node

    def update_node(self, node_id: str, patch: Patch = None, **fields) -> Optional[Node]:
        """
        Merge the given fields into a node.

        Only keys present in the patch are applied. `namespace`, `width`
        and `height` are cleared by None (or an empty namespace); other
        keys ignore None. Unknown ids are a no-op returning None.
        """
        node = self._node_index.get(node_id)
        if node is None:
            logger.debug("update of unknown node ignored", extra={"node_id": node_id})
            return None

        changes = {**(patch or {}), **fields}
        updates: dict[str, Any] = {}
        for key, value in changes.items():
            if key not in NODE_FIELDS:
                continue
            if key in NODE_CLEARABLE:
                updates[key] = value if value not in ("", None) else None
            elif value is not None:
                updates[key] = value

        if "type" in updates and not is_node_type(updates["type"]):
            raise UnknownTypeError(
                f'Invalid node type "{updates["type"]}". Valid types: {", ".join(node_type_keys())}.'
            )
        for key in ("x", "y", "width", "height"):
            if updates.get(key) is not None and not math.isfinite(updates[key]):
                raise ValueError(f"{key} must be a finite number")
        if "name" in updates:
            updates["name"] = str(updates["name"]).strip()
            if not updates["name"]:
                raise ValueError("Node name must not be empty")
        if not updates:
            return node

        self._save_to_history()

        for key, value in updates.items():
            setattr(node, key, value)

        self._changed()
        return node

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and all connected edges."""
        node = self._node_index.get(node_id)
        if node is None:
            logger.debug("delete of unknown node ignored", extra={"node_id": node_id})
            return False

        self._save_to_history()

        connected_edge_ids = self._edges_by_node.pop(node_id, set())
        for edge_id in connected_edge_ids:
            edge = self._edge_index.get(edge_id)
            if edge:
                self._unindex_edge(edge)

        # Both lists are swapped in before anyone is notified
        self._graph.nodes = [n for n in self._graph.nodes if n.id != node_id]
        self._graph.edges = [e for e in self._graph.edges if e.id not in connected_edge_ids]
        self._node_index.pop(node_id, None)

        self._changed()
        return True

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID (O(1) lookup)."""
        return self._node_index.get(node_id)

    def get_nodes_by_type(self, node_type: str) -> list[Node]:
        return [n for n in self._graph.nodes if n.type == node_type]

    # --- Edge Operations ---

    def _new_edge_id(self) -> str:
        edge_id = generate_edge_id()
        while edge_id in self._edge_index:
            edge_id = generate_edge_id()
        return edge_id

    def find_duplicate_edge(
        self,
        source: str,
        target: str,
        source_side: Optional[str] = None,
        target_side: Optional[str] = None,
    ) -> Optional[Edge]:
        """Existing edge with the same endpoints and connection points, if any."""
        key = (source, target, source_side, target_side)
        for edge_id in self._edges_by_node.get(source, ()):
            edge = self._edge_index[edge_id]
            if edge.handle_key() == key:
                return edge
        return None

    def add_edge(
        self,
        source: str,
        target: str,
        type: Optional[str] = None,
        label: Optional[str] = None,
        source_side: Optional[str] = None,
        target_side: Optional[str] = None,
    ) -> Optional[Edge]:
        """
        Connect two nodes.

        Duplicate policy: only an exact duplicate (same source, target,
        source_side and target_side) is ignored. A->B and B->A are both
        allowed, as are several A->B edges on different sides.

        Returns:
            The new edge, or None if an endpoint is missing or the
            connection already exists

        Raises:
            UnknownTypeError: if the integration type is not in the registry
            ValueError: if a side is not one of top/right/bottom/left
        """
        if type is not None and not is_edge_type(type):
            raise UnknownTypeError(
                f'Invalid integration type "{type}". Valid types: {", ".join(edge_type_keys())}.'
            )
        for side in (source_side, target_side):
            if side is not None and side not in NODE_SIDES:
                raise ValueError(f"Invalid side: {side}")

        if source not in self._node_index or target not in self._node_index:
            logger.debug("connect with unknown endpoint ignored",
                         extra={"source": source, "target": target})
            return None

        if self.find_duplicate_edge(source, target, source_side, target_side):
            logger.debug("duplicate connection ignored",
                         extra={"source": source, "target": target})
            return None

        self._save_to_history()

        edge = Edge(
            id=self._new_edge_id(),
            source=source,
            target=target,
            type=type,
            label=label or None,
            source_side=source_side,
            target_side=target_side,
        )
        self._graph.edges.append(edge)
        self._index_edge(edge)
        self._changed()
        return edge

    def update_edge(self, edge_id: str, patch: Patch = None, **fields) -> Optional[Edge]:
        """
        Merge the given fields into an edge.

        Every edge field is optional, so None (or an empty label) clears
        it. Unknown ids are a no-op returning None.
        """
        edge = self._edge_index.get(edge_id)
        if edge is None:
            logger.debug("update of unknown edge ignored", extra={"edge_id": edge_id})
            return None

        changes = {**(patch or {}), **fields}
        updates = {
            key: (value if value != "" else None)
            for key, value in changes.items()
            if key in EDGE_FIELDS
        }

        if updates.get("type") is not None and not is_edge_type(updates["type"]):
            raise UnknownTypeError(
                f'Invalid integration type "{updates["type"]}". Valid types: {", ".join(edge_type_keys())}.'
            )
        for key in ("source_side", "target_side"):
            if updates.get(key) is not None and updates[key] not in NODE_SIDES:
                raise ValueError(f"Invalid side: {updates[key]}")
        if not updates:
            return edge

        self._save_to_history()

        for key, value in updates.items():
            setattr(edge, key, value)

        self._changed()
        return edge

    def delete_edge(self, edge_id: str) -> bool:
        """Delete an edge."""
        edge = self._edge_index.get(edge_id)
        if edge is None:
            logger.debug("delete of unknown edge ignored", extra={"edge_id": edge_id})
            return False

        self._save_to_history()
        self._graph.edges = [e for e in self._graph.edges if e.id != edge_id]
        self._unindex_edge(edge)
        self._changed()
        return True

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get an edge by ID (O(1) lookup)."""
        return self._edge_index.get(edge_id)

    def get_edges_for_node(self, node_id: str) -> list[Edge]:
        """Get all edges connected to a node, in graph order."""
        edge_ids = self._edges_by_node.get(node_id, set())
        return [e for e in self._graph.edges if e.id in edge_ids]

    # --- Whole-graph Operations ---

    def replace_graph(self, nodes: list[Node], edges: list[Edge]) -> ServiceGraph:
        """
        Atomically replace the whole working graph.

        The new graph is checked and indexed before it is swapped in, so
        observers only ever see the old graph or the complete new one.

        Raises:
            StructuralError: on duplicate node or edge ids
            DanglingReferenceError: if an edge names a missing node
        """
        new_graph = ServiceGraph(
            nodes=[n.model_copy() for n in nodes],
            edges=[e.model_copy() for e in edges],
        )

        node_ids: set[str] = set()
        for node in new_graph.nodes:
            if node.id in node_ids:
                raise StructuralError(f'Duplicate node id "{node.id}".')
            node_ids.add(node.id)

        edge_ids: set[str] = set()
        for edge in new_graph.edges:
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

        self._save_to_history()
        self._graph = new_graph
        self._rebuild_indexes()
        self._changed()
        logger.info("graph replaced", extra={"nodes": len(new_graph.nodes), "edges": len(new_graph.edges)})
        return self._graph

    def new_graph(self) -> ServiceGraph:
        """Start an empty graph with no history."""
        self._graph = ServiceGraph()
        self._file_path = None
        self._history.clear()
        self._future.clear()
        self._rebuild_indexes()
        self._changed()
        self._dirty = False
        return self._graph

    def auto_layout(self) -> bool:
        """Reposition all nodes with the layered layout."""
        if not self._graph.nodes:
            return False

        laid_out = compute_layout(self._graph.nodes, self._graph.edges)
        self._save_to_history()
        self._graph.nodes = laid_out
        self._rebuild_indexes()
        self._changed()
        logger.info("auto layout applied", extra={"nodes": len(laid_out)})
        return True

    def namespace_groups(self) -> list[NamespaceGroup]:
        """Namespace rectangles for the current nodes (memoized per version)."""
        if self._groups_cache is None or self._groups_cache[0] != self._version:
            self._groups_cache = (self._version, compute_namespace_groups(self._graph.nodes))
        return self._groups_cache[1]

    def validate(self) -> list[ValidationIssue]:
        return validate_graph(self._graph)

    # --- Import / Export ---

    def import_service_schema(self, text: str) -> ServiceGraph:
        """Replace the graph with an imported (and laid out) service schema."""
        nodes, edges = import_service_schema(text)
        return self.replace_graph(nodes, edges)

    def import_schema_export(self, text: str) -> ServiceGraph:
        """Replace the graph with an imported schema-export snapshot."""
        nodes, edges = import_schema_export(text)
        return self.replace_graph(nodes, edges)

    def export_mermaid(self) -> str:
        return to_mermaid(self._graph.nodes, self._graph.edges)

    def export_schema(self) -> str:
        return to_schema_export(self._graph.nodes, self._graph.edges)

    # --- File Operations ---

    def _resolve(self, file_path: Union[str, Path]) -> Path:
        """Relative paths live under the configured graph directory."""
        path = Path(file_path).expanduser()
        if not path.is_absolute():
            path = Path(settings.graph_dir).expanduser() / path
        return path

    def open_graph(self, file_path: Union[str, Path]) -> ServiceGraph:
        """Open a schema-export JSON file as the working graph."""
        path = self._resolve(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Graph file not found: {path}")

        nodes, edges = import_schema_export(path.read_text(encoding="utf-8"))
        self.replace_graph(nodes, edges)
        self._file_path = path
        self._history.clear()
        self._future.clear()
        self._dirty = False
        return self._graph

    def save_graph(self, file_path: Optional[Union[str, Path]] = None) -> Path:
        """
        Save the graph as schema-export JSON.

        If file_path is provided, save to that path (Save As).
        Otherwise, save to the current file_path.
        """
        if file_path:
            path = self._resolve(file_path)
        elif self._file_path:
            path = self._file_path
        else:
            raise ValueError("No file path specified and no current file path")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.export_schema(), encoding="utf-8")

        self._file_path = path
        self._dirty = False
        logger.info("graph saved", extra={"path": str(path)})
        return path

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "graph": self._graph.model_dump(),
            "namespaces": [g.to_dict() for g in self.namespace_groups()],
            "file_path": str(self._file_path) if self._file_path else None,
            "is_dirty": self._dirty,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "version": self._version,
        }


# Global instance for the application
graph_manager = GraphManager()
