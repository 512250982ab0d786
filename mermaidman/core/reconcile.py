"""Reconciliation: merge a fresh parse into prior store state."""

import logging
from typing import Iterable

from pydantic import BaseModel, Field

from .constants import DEFAULT_DIRECTION
from .document import parse_document
from .store import GraphStore
from .types import Edge, Node, NodeKind
from .utils import new_eid, new_uid
from .writer import generate

logger = logging.getLogger(__name__)

NODE_OVERRIDES = ("x", "y", "meta", "style", "code", "media", "diagram", "markdown")
EDGE_OVERRIDES = ("label", "style", "meta")


class ReconcileResult(BaseModel):
    """Outcome of reconciling text against a store."""
    text: str
    store: GraphStore
    warnings: list[str] = Field(default_factory=list)
    orphaned_nodes: list[str] = Field(default_factory=list)
    orphaned_edges: list[str] = Field(default_factory=list)
    direction: str = DEFAULT_DIRECTION


def _content_changed(before: BaseModel, after: BaseModel) -> bool:
    return before.model_dump(exclude={"updated_at"}) != after.model_dump(exclude={"updated_at"})


def _merge_node(parsed: Node, uid: str, existing: Node | None) -> Node:
    """Overlay parsed fields onto the prior node (if any)."""
    if existing is None:
        node = Node(uid=uid, mermaid_id=parsed.mermaid_id)
    else:
        node = existing.model_copy(deep=True)

    node.mermaid_id = parsed.mermaid_id
    node.label = parsed.label
    node.deleted = False

    if parsed.kind != NodeKind.CARD:
        node.kind = parsed.kind
    for field in NODE_OVERRIDES:
        value = getattr(parsed, field)
        if value is not None:
            setattr(node, field, value)

    if existing is not None and _content_changed(existing, node):
        node.touch()
    return node


def _merge_edge(parsed: Edge, eid: str, source: str, target: str, existing: Edge | None) -> Edge:
    """Overlay parsed fields onto the prior edge (if any)."""
    if existing is None:
        edge = Edge(eid=eid, source=source, target=target)
    else:
        edge = existing.model_copy(deep=True)

    edge.source = source
    edge.target = target
    edge.deleted = False

    for field in EDGE_OVERRIDES:
        value = getattr(parsed, field)
        if value is not None:
            setattr(edge, field, value)

    if existing is not None and _content_changed(existing, edge):
        edge.touch()
    return edge


def reconcile(text: str, existing_store: GraphStore, direction: str | None = None) -> ReconcileResult:
    """
    Reconcile document text with an existing store.

    Node identity comes from the existing alias map first, then from the
    parsed directive. Edge identity comes from the first unclaimed active
    edge with the same endpoints, then from the parsed directive. A new
    store is built; `existing_store` is never mutated.
    """
    parsed = parse_document(text)
    warnings = list(parsed.warnings)
    new_store = GraphStore()

    # Nodes: alias matches are claimed before any directive UID
    aliased = {
        parsed_node.mermaid_id: existing_store.alias.get_uid(parsed_node.mermaid_id)
        for parsed_node in parsed.nodes
    }
    claimed = {uid for uid in aliased.values() if uid is not None}

    uid_map: dict[str, str] = {}
    for parsed_node in parsed.nodes:
        uid = aliased[parsed_node.mermaid_id]
        if uid is None:
            uid = parsed_node.uid
            if uid in claimed:
                fresh = new_uid()
                warnings.append(f"Node {parsed_node.mermaid_id} reuses uid {uid}; assigned {fresh}")
                uid = fresh
            claimed.add(uid)

        node = _merge_node(parsed_node, uid, existing_store.get_node(uid))
        uid_map[parsed_node.uid] = uid
        new_store.upsert_node(node)

    # Edges
    for parsed_edge in parsed.edges:
        source = uid_map.get(parsed_edge.source, parsed_edge.source)
        target = uid_map.get(parsed_edge.target, parsed_edge.target)

        eid = None
        for candidate in existing_store.active_edges():
            if candidate.source == source and candidate.target == target and candidate.eid not in new_store.edges:
                eid = candidate.eid
                break

        if eid is None:
            eid = parsed_edge.eid
            if eid in new_store.edges:
                fresh = new_eid()
                warnings.append(f"Edge {eid} is already claimed; assigned {fresh}")
                eid = fresh

        edge = _merge_edge(parsed_edge, eid, source, target, existing_store.get_edge(eid))
        new_store.upsert_edge(edge)

    # Orphans: active before, absent now
    orphaned_nodes = [n.uid for n in existing_store.active_nodes() if n.uid not in new_store.nodes]
    orphaned_edges = [e.eid for e in existing_store.active_edges() if e.eid not in new_store.edges]

    if orphaned_nodes:
        warnings.append(f"Orphaned nodes: {orphaned_nodes}")
    if orphaned_edges:
        warnings.append(f"Orphaned edges: {orphaned_edges}")

    new_store.version = existing_store.version + 1
    direction = direction or parsed.direction or DEFAULT_DIRECTION

    logger.debug(
        f"Reconciled v{new_store.version}: {len(new_store.nodes)} nodes, {len(new_store.edges)} edges, "
        f"{len(orphaned_nodes)} orphaned nodes, {len(orphaned_edges)} orphaned edges"
    )

    return ReconcileResult(
        text=generate(new_store, direction),
        store=new_store,
        warnings=warnings,
        orphaned_nodes=orphaned_nodes,
        orphaned_edges=orphaned_edges,
        direction=direction,
    )


def apply_ui_changes(store: GraphStore, updates: Iterable[tuple[str, float, float]]) -> int:
    """Apply (uid, x, y) moves in place. Returns the number applied."""
    applied = 0
    for uid, x, y in updates:
        if store.move_node(uid, x, y):
            applied += 1
    return applied


def update_node_position(text: str, mermaid_id: str, x: float, y: float, direction: str | None = None) -> str:
    """Parse a document, move one node by mermaid id, and regenerate it."""
    parsed = parse_document(text)
    store = GraphStore.from_parsed(parsed.nodes, parsed.edges)

    uid = store.alias.get_uid(mermaid_id)
    if uid is None:
        logger.debug(f"No node '{mermaid_id}' to move")
    else:
        store.move_node(uid, x, y)

    return generate(store, direction or parsed.direction or DEFAULT_DIRECTION)
