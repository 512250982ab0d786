"""Per-document store registry shared by the HTTP and MCP servers."""

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..core import (
    DEFAULT_DIRECTION,
    DEFAULT_UNDO_LIMIT,
    DIRECTIONS,
    DocumentNotFoundError,
    Edge,
    EdgeNotFoundError,
    GraphStore,
    Node,
    NodeKind,
    NodeNotFoundError,
    Operation,
    OpsLog,
    ReconcileResult,
    detect_direction,
    generate,
    make_edge_create_op,
    make_edge_delete_op,
    make_move_op,
    make_node_create_op,
    make_node_delete_op,
    make_node_update_op,
    parse_document,
    reconcile,
    store_from_json,
    store_to_json,
)
from ..core.topology import NODE_ID_RE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentConfig:
    """Configuration for open documents."""
    direction: str = DEFAULT_DIRECTION
    undo_limit: int = DEFAULT_UNDO_LIMIT

    def __post_init__(self):
        if self.direction not in DIRECTIONS:
            raise ValueError(f"Invalid direction '{self.direction}'. Must be one of {DIRECTIONS}")
        if self.undo_limit < 1:
            raise ValueError(f"undo_limit must be at least 1, got {self.undo_limit}")

    @classmethod
    def from_env(cls) -> "DocumentConfig":
        """Create configuration from environment variables."""
        return cls(
            direction=os.getenv("MM_DIRECTION", DEFAULT_DIRECTION).upper(),
            undo_limit=int(os.getenv("MM_UNDO_LIMIT", str(DEFAULT_UNDO_LIMIT))),
        )


@dataclass
class OpenDocument:
    """In-memory state of one open document."""
    doc_id: str
    store: GraphStore
    ops: OpsLog
    direction: str
    lock: threading.RLock = field(default_factory=threading.RLock)

    def summary(self) -> dict:
        return {
            "doc_id": self.doc_id,
            "version": self.store.version,
            "direction": self.direction,
            "nodes": sum(1 for _ in self.store.active_nodes()),
            "edges": sum(1 for _ in self.store.active_edges()),
            "can_undo": self.ops.can_undo(),
            "can_redo": self.ops.can_redo(),
        }


class DocumentRegistry:
    """
    Registry of open documents.

    Structure:
    - docs[doc_id] = OpenDocument (store, ops log, direction, lock)

    The registry lock only guards the docs table. Every read or mutation of
    a document runs under that document's own lock, so independent documents
    never contend.
    """

    def __init__(self, config: DocumentConfig):
        self.config = config
        self.docs: dict[str, OpenDocument] = {}
        self.lock = threading.RLock()

        logger.info(f"Document registry initialized (direction={config.direction}, undo_limit={config.undo_limit})")

    def _get(self, doc_id: str) -> OpenDocument:
        with self.lock:
            doc = self.docs.get(doc_id)
        if doc is None:
            raise DocumentNotFoundError(doc_id)
        return doc

    def _install(self, doc_id: str, store: GraphStore, direction: str) -> OpenDocument:
        """Create or replace a document entry, keeping an existing lock."""
        with self.lock:
            doc = self.docs.get(doc_id)
            if doc is None:
                doc = OpenDocument(
                    doc_id=doc_id,
                    store=store,
                    ops=OpsLog(self.config.undo_limit),
                    direction=direction,
                )
                self.docs[doc_id] = doc
                return doc

        with doc.lock:
            doc.store = store
            doc.direction = direction
            doc.ops.clear()
        return doc

    @staticmethod
    def _require_node(doc: OpenDocument, uid: str) -> Node:
        node = doc.store.get_node(uid)
        if node is None or node.deleted:
            raise NodeNotFoundError(doc.doc_id, uid)
        return node

    @staticmethod
    def _check_mermaid_id(doc: OpenDocument, mermaid_id: str, uid: str | None = None):
        if not NODE_ID_RE.fullmatch(mermaid_id):
            raise ValueError(f"Invalid node id '{mermaid_id}'. Use letters, digits and underscores")
        owner = doc.store.alias.get_uid(mermaid_id)
        if owner is not None and owner != uid:
            raise ValueError(f"Node id '{mermaid_id}' is already used by {owner}")

    # ========================================================================
    # Document lifecycle
    # ========================================================================

    def open_doc(self, doc_id: str, text: str = "") -> dict:
        """
        Open (or re-open) a document from its text.
        Returns the summary plus the canonical content and parse warnings.
        """
        parsed = parse_document(text)
        store = GraphStore.from_parsed(parsed.nodes, parsed.edges)
        direction = parsed.direction or self.config.direction

        doc = self._install(doc_id, store, direction)
        with doc.lock:
            result = doc.summary()
            result["content"] = generate(doc.store, doc.direction)
            result["warnings"] = parsed.warnings

        logger.info(f"Opened document {doc_id}: {result['nodes']} nodes, {result['edges']} edges")
        return result

    def close_doc(self, doc_id: str) -> bool:
        """Forget a document. Returns False if it was not open."""
        with self.lock:
            doc = self.docs.pop(doc_id, None)

        if doc is None:
            return False
        logger.info(f"Closed document {doc_id}")
        return True

    def list_docs(self) -> list[dict]:
        with self.lock:
            docs = list(self.docs.values())

        summaries = []
        for doc in docs:
            with doc.lock:
                summaries.append(doc.summary())
        return summaries

    def load_store(self, doc_id: str, blob: str | bytes, direction: str | None = None) -> dict:
        """
        Open a document from a persisted store blob.
        Raises StoreDecodeError if the blob is invalid.
        """
        store = store_from_json(blob)
        doc = self._install(doc_id, store, direction or self.config.direction)

        with doc.lock:
            logger.info(f"Loaded store for {doc_id} (v{store.version})")
            return doc.summary()

    def export_store(self, doc_id: str) -> str:
        doc = self._get(doc_id)
        with doc.lock:
            return store_to_json(doc.store)

    # ========================================================================
    # Text pipeline
    # ========================================================================

    def reconcile(self, doc_id: str, text: str) -> ReconcileResult:
        """Reconcile edited text against the document's store and swap it in."""
        doc = self._get(doc_id)
        with doc.lock:
            direction = detect_direction(text) or doc.direction
            result = reconcile(text, doc.store, direction)
            doc.store = result.store
            doc.direction = result.direction

        if result.orphaned_nodes or result.orphaned_edges:
            logger.info(
                f"Reconciled {doc_id}: {len(result.orphaned_nodes)} orphaned nodes, "
                f"{len(result.orphaned_edges)} orphaned edges"
            )
        return result

    def generate(self, doc_id: str, direction: str | None = None) -> str:
        doc = self._get(doc_id)
        with doc.lock:
            return generate(doc.store, direction or doc.direction)

    # ========================================================================
    # Mutations
    # ========================================================================

    def move_nodes(
        self,
        doc_id: str,
        updates: Iterable[tuple[str, float, float]],
        record: bool = True,
    ) -> int:
        """
        Apply (uid, x, y) moves. Unknown UIDs are skipped.
        Returns the number of moves applied.
        """
        doc = self._get(doc_id)
        applied = 0

        with doc.lock:
            for uid, x, y in updates:
                node = doc.store.get_node(uid)
                if node is None:
                    logger.debug(f"Skipping move of unknown node {uid} in {doc_id}")
                    continue

                before_x, before_y = node.x, node.y
                doc.store.move_node(uid, x, y)
                applied += 1

                if record:
                    doc.ops.push(make_move_op(uid, before_x, before_y, float(x), float(y)))

        return applied

    def rename_node(self, doc_id: str, uid: str, new_mermaid_id: str, record: bool = True) -> Node:
        doc = self._get(doc_id)
        with doc.lock:
            node = self._require_node(doc, uid)
            self._check_mermaid_id(doc, new_mermaid_id, uid)

            before = {"mermaid_id": node.mermaid_id}
            doc.store.rename_node(uid, new_mermaid_id)

            if record:
                doc.ops.push(make_node_update_op(uid, before, {"mermaid_id": new_mermaid_id}))

            logger.debug(f"Renamed {uid} to '{new_mermaid_id}' in {doc_id}")
            return node.model_copy(deep=True)

    def create_node(
        self,
        doc_id: str,
        mermaid_id: str,
        label: str | None = None,
        x: float | None = None,
        y: float | None = None,
        kind: str | None = None,
        record: bool = True,
    ) -> Node:
        doc = self._get(doc_id)
        with doc.lock:
            self._check_mermaid_id(doc, mermaid_id)

            node = Node(mermaid_id=mermaid_id, label=label)
            if x is not None:
                node.x = float(x)
            if y is not None:
                node.y = float(y)
            if kind is not None:
                node.kind = NodeKind.parse(kind)

            doc.store.upsert_node(node)
            if record:
                doc.ops.push(make_node_create_op(node))

            logger.debug(f"Created node {node.uid} ('{mermaid_id}') in {doc_id}")
            return node.model_copy(deep=True)

    def create_edge(
        self,
        doc_id: str,
        source: str,
        target: str,
        label: str | None = None,
        record: bool = True,
    ) -> Edge:
        """Create an edge between two active nodes (by UID)."""
        doc = self._get(doc_id)
        with doc.lock:
            self._require_node(doc, source)
            self._require_node(doc, target)

            edge = Edge(source=source, target=target, label=label)
            doc.store.upsert_edge(edge)
            if record:
                doc.ops.push(make_edge_create_op(edge))

            logger.debug(f"Created edge {edge.eid} ({source}->{target}) in {doc_id}")
            return edge.model_copy(deep=True)

    def delete_node(self, doc_id: str, uid: str, record: bool = True) -> Node:
        """Soft-delete a node along with its active edges."""
        doc = self._get(doc_id)
        with doc.lock:
            node = self._require_node(doc, uid)

            for edge in doc.store.edges_for_node(uid):
                if record:
                    doc.ops.push(make_edge_delete_op(edge))
                doc.store.delete_edge(edge.eid)

            if record:
                doc.ops.push(make_node_delete_op(node))
            doc.store.delete_node(uid)

            logger.debug(f"Deleted node {uid} in {doc_id}")
            return node.model_copy(deep=True)

    def delete_edge(self, doc_id: str, eid: str, record: bool = True) -> Edge:
        doc = self._get(doc_id)
        with doc.lock:
            edge = doc.store.get_edge(eid)
            if edge is None or edge.deleted:
                raise EdgeNotFoundError(doc_id, eid)

            if record:
                doc.ops.push(make_edge_delete_op(edge))
            doc.store.delete_edge(eid)

            logger.debug(f"Deleted edge {eid} in {doc_id}")
            return edge.model_copy(deep=True)

    # ========================================================================
    # Queries
    # ========================================================================

    def get_node(self, doc_id: str, uid: str) -> Node:
        """Look up a node by UID, including soft-deleted ones."""
        doc = self._get(doc_id)
        with doc.lock:
            node = doc.store.get_node(uid)
            if node is None:
                raise NodeNotFoundError(doc_id, uid)
            return node.model_copy(deep=True)

    def node_edges(self, doc_id: str, uid: str, direction: str = "both") -> list[Edge]:
        """
        Active edges of a node.
        direction: "out", "in" or "both".
        """
        doc = self._get(doc_id)
        with doc.lock:
            if doc.store.get_node(uid) is None:
                raise NodeNotFoundError(doc_id, uid)

            if direction == "out":
                edges = doc.store.outgoing_edges(uid)
            elif direction == "in":
                edges = doc.store.incoming_edges(uid)
            elif direction == "both":
                edges = doc.store.edges_for_node(uid)
            else:
                raise ValueError(f"Invalid direction '{direction}'. Must be 'in', 'out' or 'both'")

            return [e.model_copy(deep=True) for e in edges]

    # ========================================================================
    # Undo / redo
    # ========================================================================

    def undo(self, doc_id: str) -> Operation | None:
        """Pop the newest undoable operation. Replaying it is the caller's job."""
        doc = self._get(doc_id)
        with doc.lock:
            return doc.ops.pop_undo()

    def redo(self, doc_id: str) -> Operation | None:
        doc = self._get(doc_id)
        with doc.lock:
            return doc.ops.pop_redo()

    def history(self, doc_id: str, limit: int = 20) -> dict[str, Any]:
        doc = self._get(doc_id)
        with doc.lock:
            return {
                "doc_id": doc_id,
                "can_undo": doc.ops.can_undo(),
                "can_redo": doc.ops.can_redo(),
                "operations": doc.ops.recent(limit),
            }
