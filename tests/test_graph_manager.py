import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from service_map.backend.graph_manager import GraphManager
from service_map.errors import (
    StructuralError,
    DanglingReferenceError,
    SchemaValidationError,
    UnknownTypeError,
)
from service_map.models import Node, Edge
from service_map.settings import settings


class GraphManagerTestCase(unittest.TestCase):

    def setUp(self):
        self.manager = GraphManager(max_history=50)

    def _add(self, name, type="nodejs", namespace=None):
        return self.manager.add_node(name, type, namespace)


class TestNodeOperations(GraphManagerTestCase):

    def test_add_node_defaults(self):
        node = self._add("  Order Service  ", "spring-boot", "orders")
        self.assertRegex(node.id, r"^order-service-[0-9a-z]{6}$")
        self.assertEqual(node.name, "Order Service")
        self.assertEqual(node.namespace, "orders")
        self.assertEqual((node.x, node.y), (settings.default_node_x, settings.default_node_y))
        self.assertIsNone(node.width)
        self.assertIs(self.manager.get_node(node.id), node)

    def test_add_node_validates_boundary_input(self):
        with self.assertRaises(UnknownTypeError):
            self._add("Thing", "cobol")
        with self.assertRaises(ValueError):
            self._add("   ")
        self.assertEqual(self.manager.nodes, [])

    def test_generated_ids_never_collide(self):
        manager = GraphManager(max_history=0)
        ids = {manager.add_node("svc", "nodejs").id for _ in range(10000)}
        self.assertEqual(len(ids), 10000)
        self.assertEqual(len(manager.nodes), 10000)
        self.assertFalse(manager.can_undo)

    def test_update_node_merges_only_given_fields(self):
        node = self._add("api", namespace="edge")
        self.manager.update_node(node.id, {"width": 240})
        self.manager.update_node(node.id, {"namespace": "core"})

        self.assertEqual(node.width, 240)
        self.assertEqual(node.namespace, "core")
        self.assertEqual(node.name, "api")
        self.assertEqual(node.type, "nodejs")

    def test_update_node_clears_namespace_and_size(self):
        node = self._add("api", namespace="edge")
        self.manager.update_node(node.id, width=200, height=90)
        self.manager.update_node(node.id, {"namespace": ""})
        self.assertIsNone(node.namespace)
        self.assertEqual(node.width, 200)

        self.manager.update_node(node.id, {"width": None, "name": None})
        self.assertIsNone(node.width)
        self.assertEqual(node.height, 90)
        self.assertEqual(node.name, "api")

    def test_update_node_rejects_unknown_type(self):
        node = self._add("api")
        with self.assertRaises(UnknownTypeError):
            self.manager.update_node(node.id, {"type": "cobol"})
        self.assertEqual(node.type, "nodejs")

    def test_update_node_strips_name(self):
        node = self._add("api")
        self.manager.update_node(node.id, {"name": "  Orders API  "})
        self.assertEqual(node.name, "Orders API")
        with self.assertRaises(ValueError):
            self.manager.update_node(node.id, {"name": "   "})
        self.assertEqual(node.name, "Orders API")

    def test_update_without_known_fields_records_nothing(self):
        node = self._add("api")
        version = self.manager.version

        self.assertIs(self.manager.update_node(node.id, {"colour": "red"}), node)
        self.assertEqual(self.manager.version, version)
        self.assertTrue(self.manager.can_undo)
        self.manager.undo()
        self.assertEqual(self.manager.nodes, [])

    def test_update_node_rejects_non_finite_geometry(self):
        node = self._add("api")
        with self.assertRaises(ValueError):
            self.manager.update_node(node.id, {"x": float("nan")})
        with self.assertRaises(ValueError):
            self.manager.update_node(node.id, width=float("inf"))
        self.assertEqual(node.x, settings.default_node_x)

    def test_update_unknown_node_is_noop(self):
        self._add("api")
        version = self.manager.version
        self.assertIsNone(self.manager.update_node("ghost", {"name": "x"}))
        self.assertEqual(self.manager.version, version)

    def test_delete_node_cascades(self):
        a, b, c = self._add("a"), self._add("b"), self._add("c")
        self.manager.add_edge(a.id, b.id)
        self.manager.add_edge(b.id, c.id)
        self.manager.add_edge(c.id, a.id)
        self.manager.add_edge(b.id, b.id)

        self.assertTrue(self.manager.delete_node(b.id))

        self.assertEqual([n.id for n in self.manager.nodes], [a.id, c.id])
        for edge in self.manager.edges:
            self.assertNotIn(b.id, (edge.source, edge.target))
        self.assertEqual(len(self.manager.edges), 1)
        self.assertEqual(self.manager.get_edges_for_node(b.id), [])

    def test_cascade_for_every_node(self):
        for victim_index in range(4):
            manager = GraphManager()
            nodes = [manager.add_node(f"n{i}", "nodejs") for i in range(4)]
            for s in nodes:
                for t in nodes:
                    manager.add_edge(s.id, t.id)
            victim = nodes[victim_index].id
            manager.delete_node(victim)
            self.assertTrue(all(victim not in (e.source, e.target) for e in manager.edges))
            self.assertEqual(len(manager.edges), 9)

    def test_delete_unknown_node_is_noop(self):
        self.assertFalse(self.manager.delete_node("ghost"))

    def test_change_callback_sees_consistent_graph(self):
        a, b = self._add("a"), self._add("b")
        self.manager.add_edge(a.id, b.id)
        observed = []

        def check():
            ids = {n.id for n in self.manager.nodes}
            observed.append(all(e.source in ids and e.target in ids for e in self.manager.edges))

        self.manager.on_change(check)
        self.manager.delete_node(a.id)
        self.assertEqual(observed, [True])

    def test_nodes_by_type(self):
        self._add("a", "redis")
        self._add("b", "kafka")
        self.assertEqual([n.name for n in self.manager.get_nodes_by_type("redis")], ["a"])


class TestEdgeOperations(GraphManagerTestCase):

    def setUp(self):
        super().setUp()
        self.a = self._add("a")
        self.b = self._add("b")

    def test_add_edge(self):
        edge = self.manager.add_edge(self.a.id, self.b.id, type="REST", label="calls")
        self.assertEqual((edge.source, edge.target, edge.type, edge.label),
                         (self.a.id, self.b.id, "REST", "calls"))
        self.assertIs(self.manager.get_edge(edge.id), edge)

    def test_exact_duplicate_ignored(self):
        first = self.manager.add_edge(self.a.id, self.b.id)
        self.assertIsNotNone(first)
        self.assertIsNone(self.manager.add_edge(self.a.id, self.b.id, type="gRPC"))
        self.assertEqual(len(self.manager.edges), 1)

    def test_reverse_direction_and_other_sides_allowed(self):
        self.manager.add_edge(self.a.id, self.b.id)
        self.assertIsNotNone(self.manager.add_edge(self.b.id, self.a.id))
        self.assertIsNotNone(self.manager.add_edge(self.a.id, self.b.id, source_side="bottom"))
        self.assertIsNotNone(self.manager.add_edge(self.a.id, self.b.id, source_side="bottom", target_side="top"))
        self.assertIsNone(self.manager.add_edge(self.a.id, self.b.id, source_side="bottom"))
        self.assertEqual(len(self.manager.edges), 4)

    def test_missing_endpoint_is_noop(self):
        self.assertIsNone(self.manager.add_edge(self.a.id, "ghost"))
        self.assertEqual(self.manager.edges, [])

    def test_invalid_type_or_side_rejected(self):
        with self.assertRaises(UnknownTypeError):
            self.manager.add_edge(self.a.id, self.b.id, type="fax")
        with self.assertRaises(ValueError):
            self.manager.add_edge(self.a.id, self.b.id, source_side="middle")

    def test_update_edge(self):
        edge = self.manager.add_edge(self.a.id, self.b.id, type="REST", label="calls")
        self.manager.update_edge(edge.id, {"label": "queries"})
        self.assertEqual((edge.type, edge.label), ("REST", "queries"))

        self.manager.update_edge(edge.id, type=None, control_offset_x=12.0)
        self.assertIsNone(edge.type)
        self.assertEqual(edge.label, "queries")
        self.assertEqual(edge.control_offset_x, 12.0)

        self.manager.update_edge(edge.id, {"label": ""})
        self.assertIsNone(edge.label)

    def test_update_edge_without_known_fields_records_nothing(self):
        edge = self.manager.add_edge(self.a.id, self.b.id)
        version = self.manager.version
        self.assertIs(self.manager.update_edge(edge.id, {"weight": 3}), edge)
        self.assertEqual(self.manager.version, version)

    def test_update_edge_ignores_endpoint_keys(self):
        edge = self.manager.add_edge(self.a.id, self.b.id)
        self.manager.update_edge(edge.id, {"source": "ghost", "target": "ghost"})
        self.assertEqual((edge.source, edge.target), (self.a.id, self.b.id))

    def test_update_and_delete_unknown_edge(self):
        self.assertIsNone(self.manager.update_edge("ghost", {"label": "x"}))
        self.assertFalse(self.manager.delete_edge("ghost"))

    def test_delete_edge(self):
        edge = self.manager.add_edge(self.a.id, self.b.id)
        self.assertTrue(self.manager.delete_edge(edge.id))
        self.assertEqual(self.manager.edges, [])
        self.assertEqual(len(self.manager.nodes), 2)
        self.assertEqual(self.manager.get_edges_for_node(self.a.id), [])


class TestWholeGraphOperations(GraphManagerTestCase):

    def test_replace_graph(self):
        self._add("old")
        nodes = [Node(id="x", name="X", type="redis"), Node(id="y", name="Y", type="kafka")]
        edges = [Edge(id="e1", source="x", target="y")]

        graph = self.manager.replace_graph(nodes, edges)

        self.assertEqual([n.id for n in graph.nodes], ["x", "y"])
        self.assertEqual(self.manager.get_edges_for_node("y")[0].id, "e1")
        self.assertIsNone(self.manager.get_node("old"))

    def test_replace_graph_rejects_inconsistent_input_and_keeps_old(self):
        old = self._add("old")
        calls = []
        self.manager.on_change(lambda: calls.append(1))

        with self.assertRaises(DanglingReferenceError):
            self.manager.replace_graph([Node(id="x", name="X", type="redis")],
                                       [Edge(id="e1", source="x", target="nope")])
        with self.assertRaises(StructuralError):
            self.manager.replace_graph([Node(id="x", name="X", type="redis")] * 2, [])

        self.assertEqual([n.id for n in self.manager.nodes], [old.id])
        self.assertEqual(calls, [])

    def test_replace_graph_notifies_once(self):
        calls = []
        self.manager.on_change(lambda: calls.append(len(self.manager.nodes)))
        self.manager.replace_graph([Node(id="x", name="X", type="redis")], [])
        self.assertEqual(calls, [1])

    def test_import_service_schema(self):
        doc = {"services": [
            {"id": "a", "name": "A", "type": "redis"},
            {"id": "b", "name": "B", "type": "nodejs", "integrations": [{"target": "a", "type": "cache"}]},
        ]}
        self.manager.import_service_schema(json.dumps(doc))
        self.assertEqual([n.id for n in self.manager.nodes], ["a", "b"])
        self.assertEqual(self.manager.edges[0].source, "b")

    def test_failed_import_leaves_graph_untouched(self):
        existing = self._add("existing")
        with self.assertRaises(SchemaValidationError):
            self.manager.import_service_schema('{"services": [{"id": "a"}]}')
        self.assertEqual([n.id for n in self.manager.nodes], [existing.id])

    def test_auto_layout(self):
        a, b = self._add("a"), self._add("b")
        self.manager.add_edge(a.id, b.id)
        self.assertTrue(self.manager.auto_layout())

        a, b = self.manager.get_node(a.id), self.manager.get_node(b.id)
        self.assertEqual((a.x, a.y), (60, 60))
        self.assertEqual((b.x, b.y), (312, 60))

    def test_auto_layout_empty(self):
        self.assertFalse(self.manager.auto_layout())

    def test_namespace_groups_follow_nodes(self):
        node = self._add("a", namespace="core")
        groups = self.manager.namespace_groups()
        self.assertIs(self.manager.namespace_groups(), groups)
        self.assertEqual(groups[0].x, node.x - 24)

        self.manager.update_node(node.id, {"x": 1000})
        self.assertEqual(self.manager.namespace_groups()[0].x, 1000 - 24)

        self.manager.update_node(node.id, {"namespace": None})
        self.assertEqual(self.manager.namespace_groups(), [])

    def test_undo_redo(self):
        a = self._add("a")
        self.manager.update_node(a.id, {"name": "renamed"})

        self.manager.undo()
        self.assertEqual(self.manager.get_node(a.id).name, "a")
        self.manager.undo()
        self.assertEqual(self.manager.nodes, [])
        self.assertIsNone(self.manager.undo())

        self.manager.redo()
        self.manager.redo()
        self.assertEqual(self.manager.get_node(a.id).name, "renamed")
        self.assertIsNone(self.manager.redo())

    def test_undo_restores_cascaded_edges(self):
        a, b = self._add("a"), self._add("b")
        edge = self.manager.add_edge(a.id, b.id)
        self.manager.delete_node(a.id)
        self.manager.undo()
        self.assertEqual([e.id for e in self.manager.get_edges_for_node(b.id)], [edge.id])

    def test_history_is_bounded(self):
        manager = GraphManager(max_history=3)
        for i in range(5):
            manager.add_node(f"n{i}", "nodejs")
        undone = 0
        while manager.undo():
            undone += 1
        self.assertEqual(undone, 3)
        self.assertEqual(len(manager.nodes), 2)

    def test_save_and_open_round_trip(self):
        a = self._add("a", "redis", "cache")
        b = self._add("b")
        self.manager.add_edge(b.id, a.id, type="cache", source_side="right")

        with tempfile.TemporaryDirectory() as tmp:
            path = self.manager.save_graph(os.path.join(tmp, "maps", "demo.json"))
            self.assertFalse(self.manager.is_dirty)

            other = GraphManager()
            other.open_graph(path)
            self.assertEqual(other.graph.model_dump(), self.manager.graph.model_dump())
            self.assertEqual(other.file_path, path)
            self.assertFalse(other.can_undo)

    def test_relative_paths_use_graph_dir(self):
        self._add("a")
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch.object(settings, "graph_dir", tmp):
                path = self.manager.save_graph("demo.json")
                self.assertEqual(path, Path(tmp) / "demo.json")
                self.assertTrue(path.exists())
                GraphManager().open_graph("demo.json")

    def test_save_without_path(self):
        with self.assertRaises(ValueError):
            self.manager.save_graph()

    def test_open_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            self.manager.open_graph("/nonexistent/graph.json")

    def test_new_graph_resets(self):
        self._add("a")
        self.manager.new_graph()
        self.assertEqual(self.manager.nodes, [])
        self.assertFalse(self.manager.can_undo)
        self.assertFalse(self.manager.is_dirty)

    def test_validate(self):
        self._add("lonely")
        issues = self.manager.validate()
        self.assertEqual(len(issues), 1)
        self.assertIn("Orphan", issues[0].message)

    def test_get_state(self):
        self._add("a", namespace="core")
        state = self.manager.get_state()
        self.assertEqual(len(state["graph"]["nodes"]), 1)
        self.assertEqual(state["namespaces"][0]["label"], "core")
        self.assertTrue(state["can_undo"])
        self.assertTrue(state["is_dirty"])


if __name__ == "__main__":
    unittest.main()
