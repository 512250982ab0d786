"""Mermaidman: text-first diagram documents with stable node and edge identity."""

from .core import GraphStore, ParseResult, ReconcileResult, generate, parse_document, reconcile

__version__ = "0.1.0"

parse = parse_document

__all__ = [
    "__version__",
    "parse",
    "reconcile",
    "generate",
    "GraphStore",
    "ParseResult",
    "ReconcileResult",
]
