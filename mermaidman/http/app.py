"""FastAPI HTTP server for mermaidman documents."""

import json
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .. import __version__
from ..core import (
    DEFAULT_DIRECTION,
    DocumentNotFoundError,
    EdgeNotFoundError,
    GraphStore,
    MermaidmanError,
    NodeNotFoundError,
    generate,
    parse_document,
    reconcile,
    store_from_json,
    update_node_position,
)
from .store import DocumentConfig, DocumentRegistry

# Configure logging
log_level = os.getenv("MM_LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================

class TextRequest(BaseModel):
    """Request carrying document text."""
    text: str = Field(..., description="Document text (flowchart body plus directives)")


class ReconcileRequest(BaseModel):
    """Stateless reconcile request."""
    text: str = Field(..., description="Edited document text")
    store: dict[str, Any] | None = Field(None, description="Prior store in persisted form (empty if omitted)")
    direction: str | None = Field(None, description="Header direction override")


class GenerateRequest(BaseModel):
    """Stateless generate request."""
    store: dict[str, Any] = Field(..., description="Store in persisted form")
    direction: str = Field(DEFAULT_DIRECTION, description="Header direction")


class PositionRequest(BaseModel):
    """Move one node of a document by mermaid id."""
    text: str
    mermaid_id: str
    x: float
    y: float


class StoreRequest(BaseModel):
    """Replace a document's store."""
    store: dict[str, Any] = Field(..., description="Store in persisted form")
    direction: str | None = None


class Move(BaseModel):
    uid: str
    x: float
    y: float


class MoveRequest(BaseModel):
    """Batch of node moves."""
    moves: list[Move]
    record: bool = True


class NodeCreateRequest(BaseModel):
    """Request to create a node."""
    mermaid_id: str = Field(..., description="Human-readable node id")
    label: str | None = None
    x: float | None = None
    y: float | None = None
    kind: str | None = Field(None, description="card, note, code, media, markdown, diagram or oembed")
    record: bool = True


class NodeRenameRequest(BaseModel):
    """Request to rename a node."""
    mermaid_id: str = Field(..., description="New human-readable node id")
    record: bool = True


class EdgeCreateRequest(BaseModel):
    """Request to create an edge between two node UIDs."""
    source: str
    target: str
    label: str | None = None
    record: bool = True


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    open_documents: int


# ============================================================================
# Global State
# ============================================================================

registry: DocumentRegistry | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    global registry

    logger.info("Starting Mermaidman HTTP Server...")
    registry = DocumentRegistry(DocumentConfig.from_env())
    logger.info("Server ready")

    yield

    registry = None
    logger.info("Server stopped")


app = FastAPI(
    title="Mermaidman Server",
    description="Parse, reconcile and regenerate mermaidman diagram documents",
    version=__version__,
    lifespan=lifespan
)


def _registry() -> DocumentRegistry:
    if not registry:
        raise HTTPException(status_code=500, detail="Registry not initialized")
    return registry


def _http_error(e: Exception, action: str) -> HTTPException:
    """Map a failure onto an HTTP error."""
    if isinstance(e, (DocumentNotFoundError, NodeNotFoundError, EdgeNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (MermaidmanError, ValueError)):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


def _decode_store(data: dict[str, Any] | None) -> GraphStore:
    if data is None:
        return GraphStore()
    return store_from_json(json.dumps(data))


# ============================================================================
# Stateless Endpoints
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "open_documents": len(registry.docs) if registry else 0,
    }


@app.post("/api/parse")
async def parse_text(request: TextRequest):
    """Parse a document without keeping any state."""
    try:
        return parse_document(request.text)
    except Exception as e:
        raise _http_error(e, "parsing document")


@app.post("/api/reconcile")
async def reconcile_text(request: ReconcileRequest):
    """
    Reconcile text against a caller-supplied store.
    Returns the canonical text, the new store, warnings and orphans.
    """
    try:
        return reconcile(request.text, _decode_store(request.store), request.direction)
    except Exception as e:
        raise _http_error(e, "reconciling document")


@app.post("/api/generate")
async def generate_text(request: GenerateRequest):
    """Generate canonical text from a store."""
    try:
        return {"text": generate(_decode_store(request.store), request.direction)}
    except Exception as e:
        raise _http_error(e, "generating document")


@app.post("/api/update-position")
async def update_position(request: PositionRequest):
    """Move one node by mermaid id and return the regenerated text."""
    try:
        return {"text": update_node_position(request.text, request.mermaid_id, request.x, request.y)}
    except Exception as e:
        raise _http_error(e, "updating node position")


# ============================================================================
# Document Endpoints
# ============================================================================

@app.get("/api/docs")
async def list_docs():
    """List open documents."""
    return _registry().list_docs()


@app.post("/api/docs/{doc_id}/open")
async def open_doc(doc_id: str, request: TextRequest):
    """Open (or re-open) a document from text."""
    docs = _registry()
    try:
        return docs.open_doc(doc_id, request.text)
    except Exception as e:
        raise _http_error(e, "opening document")


@app.delete("/api/docs/{doc_id}")
async def close_doc(doc_id: str):
    """Close a document."""
    docs = _registry()
    if not docs.close_doc(doc_id):
        raise HTTPException(status_code=404, detail=str(DocumentNotFoundError(doc_id)))
    return {"closed": doc_id}


@app.put("/api/docs/{doc_id}/store")
async def load_store(doc_id: str, request: StoreRequest):
    """Open a document from its persisted store."""
    docs = _registry()
    try:
        return docs.load_store(doc_id, json.dumps(request.store), request.direction)
    except Exception as e:
        raise _http_error(e, "loading store")


@app.get("/api/docs/{doc_id}/store")
async def export_store(doc_id: str):
    """Export a document's store in persisted form."""
    docs = _registry()
    try:
        return json.loads(docs.export_store(doc_id))
    except Exception as e:
        raise _http_error(e, "exporting store")


@app.post("/api/docs/{doc_id}/reconcile")
async def reconcile_doc(doc_id: str, request: TextRequest):
    """Reconcile edited text into an open document."""
    docs = _registry()
    try:
        return docs.reconcile(doc_id, request.text)
    except Exception as e:
        raise _http_error(e, "reconciling document")


@app.get("/api/docs/{doc_id}/text")
async def doc_text(doc_id: str, direction: str | None = None):
    """Canonical text of an open document."""
    docs = _registry()
    try:
        return {"text": docs.generate(doc_id, direction)}
    except Exception as e:
        raise _http_error(e, "generating document")


@app.post("/api/docs/{doc_id}/moves")
async def move_nodes(doc_id: str, request: MoveRequest):
    """Apply a batch of node moves."""
    docs = _registry()
    try:
        applied = docs.move_nodes(doc_id, [(m.uid, m.x, m.y) for m in request.moves], request.record)
        return {"applied": applied}
    except Exception as e:
        raise _http_error(e, "moving nodes")


@app.post("/api/docs/{doc_id}/nodes")
async def create_node(doc_id: str, request: NodeCreateRequest):
    """Create a node."""
    docs = _registry()
    try:
        return docs.create_node(
            doc_id,
            mermaid_id=request.mermaid_id,
            label=request.label,
            x=request.x,
            y=request.y,
            kind=request.kind,
            record=request.record,
        )
    except Exception as e:
        raise _http_error(e, "creating node")


@app.get("/api/docs/{doc_id}/nodes/{uid}")
async def get_node(doc_id: str, uid: str):
    """Get a node by UID."""
    docs = _registry()
    try:
        return docs.get_node(doc_id, uid)
    except Exception as e:
        raise _http_error(e, "reading node")


@app.patch("/api/docs/{doc_id}/nodes/{uid}")
async def rename_node(doc_id: str, uid: str, request: NodeRenameRequest):
    """Change a node's mermaid id."""
    docs = _registry()
    try:
        return docs.rename_node(doc_id, uid, request.mermaid_id, request.record)
    except Exception as e:
        raise _http_error(e, "renaming node")


@app.delete("/api/docs/{doc_id}/nodes/{uid}")
async def delete_node(doc_id: str, uid: str, record: bool = True):
    """Soft-delete a node and its edges."""
    docs = _registry()
    try:
        return docs.delete_node(doc_id, uid, record)
    except Exception as e:
        raise _http_error(e, "deleting node")


@app.get("/api/docs/{doc_id}/nodes/{uid}/edges")
async def node_edges(doc_id: str, uid: str, direction: str = "both"):
    """Active edges of a node."""
    docs = _registry()
    try:
        return docs.node_edges(doc_id, uid, direction)
    except Exception as e:
        raise _http_error(e, "listing node edges")


@app.post("/api/docs/{doc_id}/edges")
async def create_edge(doc_id: str, request: EdgeCreateRequest):
    """Create an edge."""
    docs = _registry()
    try:
        return docs.create_edge(doc_id, request.source, request.target, request.label, request.record)
    except Exception as e:
        raise _http_error(e, "creating edge")


@app.delete("/api/docs/{doc_id}/edges/{eid}")
async def delete_edge(doc_id: str, eid: str, record: bool = True):
    """Soft-delete an edge."""
    docs = _registry()
    try:
        return docs.delete_edge(doc_id, eid, record)
    except Exception as e:
        raise _http_error(e, "deleting edge")


@app.post("/api/docs/{doc_id}/undo")
async def undo(doc_id: str):
    """Pop the newest undoable operation for the client to revert."""
    docs = _registry()
    try:
        return {"operation": docs.undo(doc_id)}
    except Exception as e:
        raise _http_error(e, "popping undo")


@app.post("/api/docs/{doc_id}/redo")
async def redo(doc_id: str):
    """Pop the newest redoable operation for the client to re-apply."""
    docs = _registry()
    try:
        return {"operation": docs.redo(doc_id)}
    except Exception as e:
        raise _http_error(e, "popping redo")


@app.get("/api/docs/{doc_id}/history")
async def history(doc_id: str, limit: int = 20):
    """Recent undoable operations."""
    docs = _registry()
    try:
        return docs.history(doc_id, limit)
    except Exception as e:
        raise _http_error(e, "reading history")
