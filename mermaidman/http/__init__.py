"""Server components shared by the HTTP and MCP bindings."""

from .store import DocumentConfig, DocumentRegistry, OpenDocument

__all__ = [
    "DocumentConfig",
    "DocumentRegistry",
    "OpenDocument",
]
