"""
Service Map Backend - FastAPI Application

REST surface over the graph core for the editor frontend:
- Node/edge CRUD, undo/redo
- Import (service schema, schema export) and export (Mermaid, schema export)
- Auto layout and derived namespace groups
- Type registry and published JSON Schema
"""
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from ..errors import ServiceMapError
from ..exporters import schema_export_dict, to_mermaid_markdown
from ..logger import get_logger
from ..models import (
    CreateNodeRequest, UpdateNodeRequest,
    CreateEdgeRequest, UpdateEdgeRequest,
)
from ..registry import registry_dict
from ..schema import service_schema_json_schema
from ..settings import settings
from ..validation import validation_summary
from .graph_manager import graph_manager

logger = get_logger(__name__)


# --- FastAPI App ---

app = FastAPI(
    title="Service Map API",
    description="Backend API for the service dependency map editor",
    version="1.0.0",
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": graph_manager.version}


# --- Graph State ---

@app.get("/api/graph")
async def get_graph():
    """Get the current graph state."""
    return graph_manager.get_state()


@app.post("/api/graph/new")
async def new_graph():
    """Start an empty graph."""
    graph = graph_manager.new_graph()
    return {"success": True, "graph": graph.model_dump()}


class OpenGraphRequest(BaseModel):
    file_path: str


@app.post("/api/graph/open")
async def open_graph(request: OpenGraphRequest):
    """Open a graph from a schema-export JSON file."""
    try:
        graph = graph_manager.open_graph(request.file_path)
        return {
            "success": True,
            "graph": graph.model_dump(),
            "file_path": str(graph_manager.file_path)
        }
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Failed to open graph: {e}")


class SaveGraphRequest(BaseModel):
    file_path: Optional[str] = None


@app.post("/api/graph/save")
async def save_graph(request: SaveGraphRequest):
    """Save the graph to a schema-export JSON file."""
    try:
        path = graph_manager.save_graph(request.file_path)
        return {"success": True, "file_path": str(path)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save: {e}")


@app.get("/api/graph/validate")
async def validate_current_graph():
    """Check the working graph for structural issues."""
    issues = graph_manager.validate()
    return {
        "success": True,
        "issues": [i.to_dict() for i in issues],
        "summary": validation_summary(issues),
    }


# --- Undo/Redo ---

@app.post("/api/undo")
async def undo():
    """Undo the last action."""
    graph = graph_manager.undo()
    if graph:
        return {"success": True, "graph": graph.model_dump()}
    return {"success": False, "message": "Nothing to undo"}


@app.post("/api/redo")
async def redo():
    """Redo the last undone action."""
    graph = graph_manager.redo()
    if graph:
        return {"success": True, "graph": graph.model_dump()}
    return {"success": False, "message": "Nothing to redo"}


# --- Node Operations ---

@app.post("/api/nodes")
async def create_node(request: CreateNodeRequest):
    """Create a new node."""
    try:
        node = graph_manager.add_node(
            name=request.name,
            type=request.type,
            namespace=request.namespace,
        )
        return {"success": True, "node": node.model_dump()}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/nodes/{node_id}")
async def get_node(node_id: str):
    """Get a specific node."""
    node = graph_manager.get_node(node_id)
    if node:
        return {"success": True, "node": node.model_dump()}
    raise HTTPException(status_code=404, detail="Node not found")


@app.patch("/api/nodes/{node_id}")
async def update_node(node_id: str, request: UpdateNodeRequest):
    """Update a node. Only the fields sent are applied; unknown ids are a no-op."""
    try:
        node = graph_manager.update_node(node_id, request.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "node": node.model_dump() if node else None}


@app.delete("/api/nodes/{node_id}")
async def delete_node(node_id: str):
    """Delete a node and its connected edges."""
    deleted = graph_manager.delete_node(node_id)
    return {"success": True, "deleted": deleted}


# --- Edge Operations ---

@app.post("/api/edges")
async def create_edge(request: CreateEdgeRequest):
    """Connect two nodes. Exact duplicates and unknown endpoints are ignored."""
    try:
        edge = graph_manager.add_edge(
            source=request.source,
            target=request.target,
            type=request.type,
            label=request.label,
            source_side=request.source_side,
            target_side=request.target_side,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "created": edge is not None, "edge": edge.model_dump() if edge else None}


@app.get("/api/edges/{edge_id}")
async def get_edge(edge_id: str):
    """Get a specific edge."""
    edge = graph_manager.get_edge(edge_id)
    if edge:
        return {"success": True, "edge": edge.model_dump()}
    raise HTTPException(status_code=404, detail="Edge not found")


@app.patch("/api/edges/{edge_id}")
async def update_edge(edge_id: str, request: UpdateEdgeRequest):
    """Update an edge. Only the fields sent are applied; unknown ids are a no-op."""
    try:
        edge = graph_manager.update_edge(edge_id, request.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "edge": edge.model_dump() if edge else None}


@app.delete("/api/edges/{edge_id}")
async def delete_edge(edge_id: str):
    """Delete an edge."""
    deleted = graph_manager.delete_edge(edge_id)
    return {"success": True, "deleted": deleted}


# --- Layout ---

@app.post("/api/layout/auto")
async def auto_layout():
    """Arrange all nodes with the layered dependency layout."""
    if not graph_manager.auto_layout():
        raise HTTPException(status_code=400, detail="No nodes to layout")
    return {"success": True, "graph": graph_manager.graph.model_dump()}


@app.get("/api/namespaces")
async def get_namespaces():
    """Namespace group rectangles derived from the current nodes."""
    return {"success": True, "namespaces": [g.to_dict() for g in graph_manager.namespace_groups()]}


# --- Registry / Schema ---

@app.get("/api/types")
async def get_types():
    """Get the node and integration type registry."""
    return registry_dict()


@app.get("/api/schema")
async def get_service_schema():
    """JSON Schema for the service-schema import format."""
    return service_schema_json_schema()


# --- Import / Export ---

class ImportRequest(BaseModel):
    content: str


@app.post("/api/import/service-schema")
async def import_service_schema(request: ImportRequest):
    """Replace the graph with a service-schema document (auto-laid out)."""
    try:
        graph = graph_manager.import_service_schema(request.content)
    except ServiceMapError as e:
        logger.info("import rejected", extra={"format": "service-schema", "reason": type(e).__name__})
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "graph": graph.model_dump()}


@app.post("/api/import/schema-export")
async def import_schema_export(request: ImportRequest):
    """Replace the graph with a schema-export snapshot (positions kept)."""
    try:
        graph = graph_manager.import_schema_export(request.content)
    except ServiceMapError as e:
        logger.info("import rejected", extra={"format": "schema-export", "reason": type(e).__name__})
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "graph": graph.model_dump()}


@app.get("/api/export/mermaid", response_class=PlainTextResponse)
async def export_mermaid(markdown: bool = False):
    """Mermaid flowchart of the graph, optionally wrapped for a .md file."""
    if markdown:
        return to_mermaid_markdown(graph_manager.nodes, graph_manager.edges)
    return graph_manager.export_mermaid()


@app.get("/api/export/schema")
async def export_schema():
    """Schema-export snapshot of the graph."""
    return schema_export_dict(graph_manager.nodes, graph_manager.edges)


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
