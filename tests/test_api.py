import json
import os
import tempfile
import unittest

from fastapi.testclient import TestClient

from service_map.backend.graph_manager import graph_manager
from service_map.backend.main import app


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        graph_manager.new_graph()
        self.client = TestClient(app)

    def _create(self, name, type="nodejs", namespace=None):
        response = self.client.post("/api/nodes", json={"name": name, "type": type, "namespace": namespace})
        self.assertEqual(response.status_code, 200)
        return response.json()["node"]


class TestGraphEndpoints(ApiTestCase):

    def test_health(self):
        self.assertEqual(self.client.get("/api/health").json()["status"], "ok")

    def test_state(self):
        self._create("api", namespace="core")
        state = self.client.get("/api/graph").json()
        self.assertEqual(len(state["graph"]["nodes"]), 1)
        self.assertEqual(state["namespaces"][0]["label"], "core")

    def test_undo_redo(self):
        self._create("api")
        self.assertTrue(self.client.post("/api/undo").json()["success"])
        self.assertEqual(graph_manager.nodes, [])
        self.assertFalse(self.client.post("/api/undo").json()["success"])
        self.assertTrue(self.client.post("/api/redo").json()["success"])
        self.assertEqual(len(graph_manager.nodes), 1)

    def test_save_and_open(self):
        self._create("api")
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "map.json")
            self.assertTrue(self.client.post("/api/graph/save", json={"file_path": path}).json()["success"])
            self.client.post("/api/graph/new")
            response = self.client.post("/api/graph/open", json={"file_path": path})
            self.assertEqual(len(response.json()["graph"]["nodes"]), 1)

        missing = self.client.post("/api/graph/open", json={"file_path": "/nonexistent/map.json"})
        self.assertEqual(missing.status_code, 404)

    def test_validate(self):
        self._create("lonely")
        body = self.client.get("/api/graph/validate").json()
        self.assertEqual(body["summary"]["warnings"], 1)
        self.assertTrue(body["summary"]["valid"])


class TestNodeAndEdgeEndpoints(ApiTestCase):

    def test_create_node_rejects_unknown_type(self):
        response = self.client.post("/api/nodes", json={"name": "x", "type": "cobol"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("cobol", response.json()["detail"])

    def test_patch_applies_only_sent_fields(self):
        node = self._create("api", namespace="edge")
        response = self.client.patch(f"/api/nodes/{node['id']}", json={"namespace": None})
        updated = response.json()["node"]
        self.assertIsNone(updated["namespace"])
        self.assertEqual(updated["name"], "api")

    def test_unknown_ids(self):
        self.assertEqual(self.client.get("/api/nodes/ghost").status_code, 404)
        self.assertIsNone(self.client.patch("/api/nodes/ghost", json={"name": "x"}).json()["node"])
        self.assertFalse(self.client.delete("/api/nodes/ghost").json()["deleted"])
        self.assertFalse(self.client.delete("/api/edges/ghost").json()["deleted"])

    def test_edges(self):
        a, b = self._create("a"), self._create("b")
        body = self.client.post("/api/edges", json={"source": a["id"], "target": b["id"], "type": "REST"}).json()
        self.assertTrue(body["created"])
        edge_id = body["edge"]["id"]

        duplicate = self.client.post("/api/edges", json={"from": a["id"], "to": b["id"]}).json()
        self.assertFalse(duplicate["created"])

        patched = self.client.patch(f"/api/edges/{edge_id}", json={"label": "calls"}).json()["edge"]
        self.assertEqual((patched["type"], patched["label"]), ("REST", "calls"))

        self.client.delete(f"/api/nodes/{a['id']}")
        self.assertEqual(self.client.get(f"/api/edges/{edge_id}").status_code, 404)

    def test_layout(self):
        self.assertEqual(self.client.post("/api/layout/auto").status_code, 400)
        a, b = self._create("a"), self._create("b")
        self.client.post("/api/edges", json={"source": a["id"], "target": b["id"]})
        nodes = self.client.post("/api/layout/auto").json()["graph"]["nodes"]
        self.assertEqual([(n["x"], n["y"]) for n in nodes], [(60, 60), (312, 60)])


class TestImportExportEndpoints(ApiTestCase):

    SCHEMA = {"services": [
        {"id": "a", "name": "A", "type": "redis", "namespace": "data"},
        {"id": "b", "name": "B", "type": "nodejs", "integrations": [{"target": "a", "type": "cache"}]},
    ]}

    def test_import_service_schema_and_export(self):
        response = self.client.post("/api/import/service-schema", json={"content": json.dumps(self.SCHEMA)})
        self.assertEqual(response.status_code, 200)

        mermaid = self.client.get("/api/export/mermaid")
        self.assertTrue(mermaid.text.startswith("graph LR"))
        self.assertIn("  b -->|cache| a", mermaid.text)

        wrapped = self.client.get("/api/export/mermaid", params={"markdown": True})
        self.assertTrue(wrapped.text.startswith("```mermaid\n"))

        snapshot = self.client.get("/api/export/schema").json()
        self.assertEqual(snapshot["version"], "1.0")
        self.assertEqual([n["id"] for n in snapshot["nodes"]], ["a", "b"])

    def test_import_errors_are_400_and_keep_graph(self):
        node = self._create("keep")
        bad = {"services": [{"id": "a", "name": "A", "type": "cobol"}]}
        response = self.client.post("/api/import/service-schema", json={"content": json.dumps(bad)})
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.json()["detail"].startswith("Validation errors:"))

        response = self.client.post("/api/import/schema-export", json={"content": "not json"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual([n.id for n in graph_manager.nodes], [node["id"]])

    def test_blank_service_name_is_a_client_error(self):
        content = '{"services":[{"id":"a","name":"   ","type":"redis"}]}'
        response = self.client.post("/api/import/service-schema", json={"content": content})
        self.assertEqual(response.status_code, 400)
        self.assertIn("/services[0]/name", response.json()["detail"])

    def test_non_finite_snapshot_is_a_client_error(self):
        content = '{"nodes":[{"id":"a","name":"A","x":NaN,"y":0}],"edges":[]}'
        response = self.client.post("/api/import/schema-export", json={"content": content})
        self.assertEqual(response.status_code, 400)

    def test_import_schema_export_keeps_positions(self):
        snapshot = {"nodes": [{"id": "a", "name": "A", "type": "kafka", "x": 5, "y": 7}], "edges": []}
        response = self.client.post("/api/import/schema-export", json={"content": json.dumps(snapshot)})
        node = response.json()["graph"]["nodes"][0]
        self.assertEqual((node["x"], node["y"]), (5, 7))

    def test_types_and_schema(self):
        types = self.client.get("/api/types").json()
        self.assertIn("redis", types["node_types"])
        schema = self.client.get("/api/schema").json()
        self.assertIn("services", schema["properties"])


if __name__ == "__main__":
    unittest.main()
