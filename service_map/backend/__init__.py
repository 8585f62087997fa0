"""HTTP backend and working-graph state for the service map editor."""

from .graph_manager import GraphManager, graph_manager

__all__ = ["GraphManager", "graph_manager"]
