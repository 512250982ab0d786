"""Operation log for undo/redo."""

import uuid
from collections import deque
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, computed_field

from .constants import DEFAULT_UNDO_LIMIT
from .types import Edge, Node
from .utils import now_ms


class OpKind(str, Enum):
    """Operation kinds."""
    NODE_CREATE = "node_create"
    NODE_UPDATE = "node_update"
    NODE_MOVE = "node_move"
    NODE_DELETE = "node_delete"
    EDGE_CREATE = "edge_create"
    EDGE_UPDATE = "edge_update"
    EDGE_DELETE = "edge_delete"


# ============================================================================
# Payloads
# ============================================================================

class NodeCreateOp(BaseModel):
    kind: Literal["node_create"] = "node_create"
    node: Node


class NodeUpdateOp(BaseModel):
    kind: Literal["node_update"] = "node_update"
    uid: str
    before: dict[str, Any]
    after: dict[str, Any]


class NodeMoveOp(BaseModel):
    kind: Literal["node_move"] = "node_move"
    uid: str
    before_x: float | None = None
    before_y: float | None = None
    after_x: float
    after_y: float


class NodeDeleteOp(BaseModel):
    kind: Literal["node_delete"] = "node_delete"
    node: Node


class EdgeCreateOp(BaseModel):
    kind: Literal["edge_create"] = "edge_create"
    edge: Edge


class EdgeUpdateOp(BaseModel):
    kind: Literal["edge_update"] = "edge_update"
    eid: str
    before: dict[str, Any]
    after: dict[str, Any]


class EdgeDeleteOp(BaseModel):
    kind: Literal["edge_delete"] = "edge_delete"
    edge: Edge


OpData = Annotated[
    Union[NodeCreateOp, NodeUpdateOp, NodeMoveOp, NodeDeleteOp, EdgeCreateOp, EdgeUpdateOp, EdgeDeleteOp],
    Field(discriminator="kind"),
]


class Operation(BaseModel):
    """A single recorded operation."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: int = Field(default_factory=now_ms)
    data: OpData

    @computed_field
    @property
    def kind(self) -> OpKind:
        return OpKind(self.data.kind)


# ============================================================================
# Log
# ============================================================================

class OpsLog:
    """
    Bounded undo/redo stacks.

    Pushing a new operation clears the redo stack; once the undo stack holds
    max_size operations the oldest is evicted. The log only stores events:
    replaying them against a store is up to the caller.
    """

    def __init__(self, max_size: int = DEFAULT_UNDO_LIMIT):
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self.max_size = max_size
        self.undo_stack: deque[Operation] = deque(maxlen=max_size)
        self.redo_stack: deque[Operation] = deque(maxlen=max_size)

    def push(self, op: Operation):
        self.redo_stack.clear()
        self.undo_stack.append(op)

    def pop_undo(self) -> Operation | None:
        """Move the newest undo operation onto the redo stack and return it."""
        if not self.undo_stack:
            return None
        op = self.undo_stack.pop()
        self.redo_stack.append(op)
        return op

    def pop_redo(self) -> Operation | None:
        """Move the newest redo operation back onto the undo stack and return it."""
        if not self.redo_stack:
            return None
        op = self.redo_stack.pop()
        self.undo_stack.append(op)
        return op

    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def recent(self, limit: int) -> list[Operation]:
        """Up to `limit` newest undoable operations, oldest first."""
        if limit <= 0:
            return []
        return list(self.undo_stack)[-limit:]

    def clear(self):
        self.undo_stack.clear()
        self.redo_stack.clear()


# ============================================================================
# Factories
# ============================================================================

def make_node_create_op(node: Node) -> Operation:
    return Operation(data=NodeCreateOp(node=node.model_copy(deep=True)))


def make_node_update_op(uid: str, before: dict[str, Any], after: dict[str, Any]) -> Operation:
    return Operation(data=NodeUpdateOp(uid=uid, before=before, after=after))


def make_move_op(
    uid: str,
    before_x: float | None,
    before_y: float | None,
    after_x: float,
    after_y: float,
) -> Operation:
    return Operation(data=NodeMoveOp(
        uid=uid,
        before_x=before_x,
        before_y=before_y,
        after_x=after_x,
        after_y=after_y,
    ))


def make_node_delete_op(node: Node) -> Operation:
    return Operation(data=NodeDeleteOp(node=node.model_copy(deep=True)))


def make_edge_create_op(edge: Edge) -> Operation:
    return Operation(data=EdgeCreateOp(edge=edge.model_copy(deep=True)))


def make_edge_update_op(eid: str, before: dict[str, Any], after: dict[str, Any]) -> Operation:
    return Operation(data=EdgeUpdateOp(eid=eid, before=before, after=after))


def make_edge_delete_op(edge: Edge) -> Operation:
    return Operation(data=EdgeDeleteOp(edge=edge.model_copy(deep=True)))
