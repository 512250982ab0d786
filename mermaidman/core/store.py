"""In-memory graph store with UID-first indexing."""

import logging
from typing import Iterable, Iterator

from pydantic import BaseModel, Field, ValidationError

from .exceptions import StoreDecodeError
from .types import Edge, Node

logger = logging.getLogger(__name__)


class AliasMap(BaseModel):
    """Bidirectional mapping between mermaid ids and UIDs."""
    mermaid_id_to_uid: dict[str, str] = Field(default_factory=dict)
    uid_to_mermaid_id: dict[str, str] = Field(default_factory=dict)

    def register(self, mermaid_id: str, uid: str):
        """Register a pair, evicting stale entries on either side."""
        previous_uid = self.mermaid_id_to_uid.get(mermaid_id)
        if previous_uid is not None and previous_uid != uid:
            self.uid_to_mermaid_id.pop(previous_uid, None)

        previous_id = self.uid_to_mermaid_id.get(uid)
        if previous_id is not None and previous_id != mermaid_id:
            self.mermaid_id_to_uid.pop(previous_id, None)

        self.mermaid_id_to_uid[mermaid_id] = uid
        self.uid_to_mermaid_id[uid] = mermaid_id

    def get_uid(self, mermaid_id: str) -> str | None:
        return self.mermaid_id_to_uid.get(mermaid_id)

    def get_mermaid_id(self, uid: str) -> str | None:
        return self.uid_to_mermaid_id.get(uid)

    def remove_by_uid(self, uid: str):
        mermaid_id = self.uid_to_mermaid_id.pop(uid, None)
        if mermaid_id is not None:
            self.mermaid_id_to_uid.pop(mermaid_id, None)

    def rename(self, uid: str, new_mermaid_id: str):
        """Point a UID at a new mermaid id."""
        self.register(new_mermaid_id, uid)

    def __len__(self) -> int:
        return len(self.uid_to_mermaid_id)


class GraphStore(BaseModel):
    """
    UID/EID-indexed node and edge tables plus the mermaid id alias map.

    Deletion is a flag flip: rows are never removed, so any UID/EID stays
    retrievable through get_node/get_edge. Deleted nodes drop out of the
    alias map and out of the active views.
    """
    nodes: dict[str, Node] = Field(default_factory=dict)
    edges: dict[str, Edge] = Field(default_factory=dict)
    alias: AliasMap = Field(default_factory=AliasMap)
    version: int = 1

    @classmethod
    def from_parsed(cls, nodes: Iterable[Node], edges: Iterable[Edge]) -> "GraphStore":
        """Create a store from parsed nodes and edges."""
        store = cls()
        for node in nodes:
            store._put_node(node)
        for edge in edges:
            store.edges[edge.eid] = edge
        return store

    def _put_node(self, node: Node):
        if node.deleted:
            self.alias.remove_by_uid(node.uid)
        else:
            self.alias.register(node.mermaid_id, node.uid)
        self.nodes[node.uid] = node

    def _bump(self):
        self.version += 1

    # ========================================================================
    # Lookup
    # ========================================================================

    def get_node(self, uid: str) -> Node | None:
        return self.nodes.get(uid)

    def get_node_by_mermaid_id(self, mermaid_id: str) -> Node | None:
        uid = self.alias.get_uid(mermaid_id)
        return self.nodes.get(uid) if uid is not None else None

    def get_edge(self, eid: str) -> Edge | None:
        return self.edges.get(eid)

    def active_nodes(self) -> Iterator[Node]:
        """Iterate non-deleted nodes in insertion order."""
        return (n for n in self.nodes.values() if not n.deleted)

    def active_edges(self) -> Iterator[Edge]:
        """Iterate non-deleted edges in insertion order."""
        return (e for e in self.edges.values() if not e.deleted)

    def edges_for_node(self, uid: str) -> list[Edge]:
        """Active edges touching a node."""
        return [e for e in self.active_edges() if e.source == uid or e.target == uid]

    def outgoing_edges(self, uid: str) -> list[Edge]:
        return [e for e in self.active_edges() if e.source == uid]

    def incoming_edges(self, uid: str) -> list[Edge]:
        return [e for e in self.active_edges() if e.target == uid]

    # ========================================================================
    # Mutation
    # ========================================================================

    def upsert_node(self, node: Node):
        """Insert or replace a node and re-register its alias."""
        self._put_node(node)
        self._bump()
        logger.debug(f"Upserted node {node.uid} ({node.mermaid_id})")

    def upsert_edge(self, edge: Edge):
        """Insert or replace an edge."""
        self.edges[edge.eid] = edge
        self._bump()
        logger.debug(f"Upserted edge {edge.eid} ({edge.source}->{edge.target})")

    def move_node(self, uid: str, x: float, y: float) -> bool:
        """Move a node. Returns False if the node does not exist."""
        node = self.nodes.get(uid)
        if node is None:
            return False

        node.x = float(x)
        node.y = float(y)
        node.touch()
        self._bump()
        return True

    def rename_node(self, uid: str, new_mermaid_id: str) -> bool:
        """
        Change a node's mermaid id; the UID is unchanged.
        Raises ValueError if another active node already uses the id.
        """
        node = self.nodes.get(uid)
        if node is None:
            return False

        owner = self.alias.get_uid(new_mermaid_id)
        if owner is not None and owner != uid:
            raise ValueError(f"Node id '{new_mermaid_id}' is already used by {owner}")

        node.mermaid_id = new_mermaid_id
        if not node.deleted:
            self.alias.rename(uid, new_mermaid_id)
        node.touch()
        self._bump()

        logger.debug(f"Renamed node {uid} to '{new_mermaid_id}'")
        return True

    def delete_node(self, uid: str) -> bool:
        """Soft-delete a node and drop its alias."""
        node = self.nodes.get(uid)
        if node is None:
            return False

        node.deleted = True
        node.touch()
        self.alias.remove_by_uid(uid)
        self._bump()

        logger.debug(f"Deleted node {uid}")
        return True

    def delete_edge(self, eid: str) -> bool:
        """Soft-delete an edge."""
        edge = self.edges.get(eid)
        if edge is None:
            return False

        edge.deleted = True
        edge.touch()
        self._bump()

        logger.debug(f"Deleted edge {eid}")
        return True


def store_to_json(store: GraphStore) -> str:
    """Encode a store in its persisted JSON form."""
    return store.model_dump_json()


def store_from_json(blob: str | bytes) -> GraphStore:
    """
    Decode a persisted store.
    Raises StoreDecodeError if the blob is not a valid store.
    """
    try:
        store = GraphStore.model_validate_json(blob)
    except ValidationError as e:
        raise StoreDecodeError(str(e)) from e

    logger.debug(f"Decoded store v{store.version}: {len(store.nodes)} nodes, {len(store.edges)} edges")
    return store
