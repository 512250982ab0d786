#!/usr/bin/env python3
"""
Mermaidman MCP Server
Exposes the parse/reconcile/generate pipeline as MCP tools over stdio.
Keeps one in-memory store per open document; nothing is written to disk.
"""

import asyncio
import json
import logging
import os
import sys
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from . import __version__
from .core import MermaidmanError, parse_document
from .http.store import DocumentConfig, DocumentRegistry

# Configure logging to stderr (never stdout for MCP)
log_level = os.getenv("MM_LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


# ============================================================================
# MCP Server
# ============================================================================

app = Server("mermaidman")

# Global registry, created on first use
registry: DocumentRegistry | None = None


def _registry() -> DocumentRegistry:
    global registry
    if registry is None:
        registry = DocumentRegistry(DocumentConfig.from_env())
    return registry


def _text(result: Any, indent: int | None = None) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=indent))]


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available diagram tools."""
    return [
        Tool(
            name="mm_parse",
            description="Parse a mermaidman document without storing it. Returns nodes, edges, warnings and the header direction.",
            inputSchema={
                "type": "object",
                "properties": {
                    "text": {"type": "string", "description": "Document text"}
                },
                "required": ["text"]
            }
        ),
        Tool(
            name="mm_open",
            description="Open (or re-open) a document from text. Returns its canonical content and parse warnings.",
            inputSchema={
                "type": "object",
                "properties": {
                    "doc_id": {"type": "string", "description": "Document identifier"},
                    "text": {"type": "string", "description": "Document text"}
                },
                "required": ["doc_id", "text"]
            }
        ),
        Tool(
            name="mm_reconcile",
            description="Reconcile edited text into an open document. Node and edge identities are preserved; removed entities are reported as orphans.",
            inputSchema={
                "type": "object",
                "properties": {
                    "doc_id": {"type": "string", "description": "Document identifier"},
                    "text": {"type": "string", "description": "Edited document text"}
                },
                "required": ["doc_id", "text"]
            }
        ),
        Tool(
            name="mm_generate",
            description="Canonical text of an open document.",
            inputSchema={
                "type": "object",
                "properties": {
                    "doc_id": {"type": "string", "description": "Document identifier"},
                    "direction": {"type": "string", "enum": ["TB", "TD", "BT", "RL", "LR"], "description": "Optional header direction"}
                },
                "required": ["doc_id"]
            }
        ),
        Tool(
            name="mm_move_nodes",
            description="Move nodes of an open document by UID. Unknown UIDs are skipped.",
            inputSchema={
                "type": "object",
                "properties": {
                    "doc_id": {"type": "string", "description": "Document identifier"},
                    "moves": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "uid": {"type": "string"},
                                "x": {"type": "number"},
                                "y": {"type": "number"}
                            },
                            "required": ["uid", "x", "y"]
                        }
                    }
                },
                "required": ["doc_id", "moves"]
            }
        ),
        Tool(
            name="mm_ping",
            description="Health check for MCP connectivity. Returns server status and open documents.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        )
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls with uniform error handling."""
    arguments = arguments or {}

    try:
        if name == "mm_parse":
            result = parse_document(arguments["text"])
            return _text(result.model_dump(mode="json"), indent=2)

        elif name == "mm_open":
            result = _registry().open_doc(arguments["doc_id"], arguments["text"])
            return _text(result, indent=2)

        elif name == "mm_reconcile":
            result = _registry().reconcile(arguments["doc_id"], arguments["text"])
            return _text({
                "text": result.text,
                "version": result.store.version,
                "warnings": result.warnings,
                "orphaned_nodes": result.orphaned_nodes,
                "orphaned_edges": result.orphaned_edges,
            }, indent=2)

        elif name == "mm_generate":
            text = _registry().generate(arguments["doc_id"], arguments.get("direction"))
            return _text({"text": text})

        elif name == "mm_move_nodes":
            moves = [(m["uid"], m["x"], m["y"]) for m in arguments["moves"]]
            applied = _registry().move_nodes(arguments["doc_id"], moves)
            return _text({"applied": applied})

        elif name == "mm_ping":
            result = {
                "status": "ok",
                "version": __version__,
                "documents": _registry().list_docs(),
            }
            return _text(result, indent=2)

        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except (MermaidmanError, ValueError, KeyError) as e:
        # Structured error response for known errors
        logger.warning(f"Mermaidman error in {name}: {e}")
        return _text({"error": str(e)})

    except Exception as e:
        logger.error(f"Unexpected error in {name}: {e}", exc_info=True)
        return _text({"error": f"Internal error: {str(e)}"})


async def main():
    """Main entry point."""
    global registry

    registry = DocumentRegistry(DocumentConfig.from_env())

    logger.info("Starting Mermaidman MCP Server...")

    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
