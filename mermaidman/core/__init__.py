"""Core diagram store components."""

from .types import (
    ArrowKind,
    CodeMeta,
    DiagramMeta,
    Edge,
    EdgeStyle,
    MediaMeta,
    Node,
    NodeKind,
    NodeStyle,
)
from .constants import *
from .exceptions import *
from .topology import parse_mermaid_topology, detect_direction
from .directives import (
    AiDirective,
    EdgeDirective,
    NodeDirective,
    parse_ai_directive,
    parse_edge_directive,
    parse_node_directive,
)
from .document import ParseResult, parse_document
from .store import AliasMap, GraphStore, store_from_json, store_to_json
from .writer import (
    canonical_edge_directive,
    canonical_node_directive,
    format_edge_directive,
    format_node_directive,
    generate,
    generate_topology,
)
from .reconcile import ReconcileResult, apply_ui_changes, reconcile, update_node_position
from .ops import (
    EdgeCreateOp,
    EdgeDeleteOp,
    EdgeUpdateOp,
    NodeCreateOp,
    NodeDeleteOp,
    NodeMoveOp,
    NodeUpdateOp,
    OpKind,
    Operation,
    OpsLog,
    make_edge_create_op,
    make_edge_delete_op,
    make_edge_update_op,
    make_move_op,
    make_node_create_op,
    make_node_delete_op,
    make_node_update_op,
)
from .utils import new_uid, new_eid, now_ms, coerce_coordinate

__all__ = [
    # Types
    "Node",
    "Edge",
    "NodeKind",
    "ArrowKind",
    "NodeStyle",
    "EdgeStyle",
    "CodeMeta",
    "MediaMeta",
    "DiagramMeta",
    # Constants
    "UID_PREFIX",
    "EID_PREFIX",
    "DIRECTIVE_MARKER",
    "DEFAULT_DIRECTION",
    "DIRECTIONS",
    "STRUCTURAL_KEYWORDS",
    "DEFAULT_UNDO_LIMIT",
    # Exceptions
    "MermaidmanError",
    "StoreDecodeError",
    "NodeNotFoundError",
    "EdgeNotFoundError",
    "DocumentNotFoundError",
    # Parsing
    "parse_mermaid_topology",
    "detect_direction",
    "NodeDirective",
    "EdgeDirective",
    "AiDirective",
    "parse_node_directive",
    "parse_edge_directive",
    "parse_ai_directive",
    "ParseResult",
    "parse_document",
    # Store
    "AliasMap",
    "GraphStore",
    "store_to_json",
    "store_from_json",
    # Writer
    "canonical_node_directive",
    "canonical_edge_directive",
    "format_node_directive",
    "format_edge_directive",
    "generate",
    "generate_topology",
    # Reconcile
    "ReconcileResult",
    "reconcile",
    "apply_ui_changes",
    "update_node_position",
    # Operations
    "OpKind",
    "Operation",
    "OpsLog",
    "NodeCreateOp",
    "NodeUpdateOp",
    "NodeMoveOp",
    "NodeDeleteOp",
    "EdgeCreateOp",
    "EdgeUpdateOp",
    "EdgeDeleteOp",
    "make_node_create_op",
    "make_node_update_op",
    "make_move_op",
    "make_node_delete_op",
    "make_edge_create_op",
    "make_edge_update_op",
    "make_edge_delete_op",
    # Utils
    "new_uid",
    "new_eid",
    "now_ms",
    "coerce_coordinate",
]
