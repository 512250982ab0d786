import pytest

from mermaidman.core import (
    Edge,
    Node,
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


def test_undo_redo():
    log = OpsLog()
    op = make_move_op("n_001", 0.0, 0.0, 100.0, 50.0)
    log.push(op)

    assert log.can_undo()
    assert not log.can_redo()

    undone = log.pop_undo()
    assert undone is op
    assert undone.kind == OpKind.NODE_MOVE
    assert not log.can_undo()
    assert list(log.redo_stack) == [op]

    redone = log.pop_redo()
    assert redone is op
    assert log.can_undo()
    assert not log.can_redo()


def test_push_clears_redo():
    log = OpsLog()
    log.push(make_move_op("n_001", 0.0, 0.0, 100.0, 50.0))
    log.pop_undo()
    assert log.can_redo()

    log.push(make_move_op("n_002", 0.0, 0.0, 200.0, 100.0))

    assert not log.can_redo()


def test_empty_pops_return_none():
    log = OpsLog()

    assert log.pop_undo() is None
    assert log.pop_redo() is None


def test_oldest_operation_is_evicted():
    log = OpsLog(max_size=2)
    ops = [make_move_op(f"n_{i}", None, None, i, i) for i in range(3)]
    for op in ops:
        log.push(op)

    assert log.recent(10) == ops[1:]
    assert log.recent(1) == ops[2:]
    assert log.recent(0) == []


def test_invalid_max_size():
    with pytest.raises(ValueError):
        OpsLog(max_size=0)


def test_clear():
    log = OpsLog()
    log.push(make_move_op("n_001", None, None, 1, 1))
    log.push(make_move_op("n_001", 1, 1, 2, 2))
    log.pop_undo()

    log.clear()

    assert not log.can_undo()
    assert not log.can_redo()


def test_factories_set_kinds():
    node = Node(uid="n_001", mermaid_id="A")
    edge = Edge(eid="e_001", source="n_001", target="n_002")

    ops = [
        make_node_create_op(node),
        make_node_update_op("n_001", {"mermaid_id": "A"}, {"mermaid_id": "B"}),
        make_move_op("n_001", None, None, 1, 2),
        make_node_delete_op(node),
        make_edge_create_op(edge),
        make_edge_update_op("e_001", {"label": None}, {"label": "go"}),
        make_edge_delete_op(edge),
    ]

    assert [op.kind for op in ops] == list(OpKind)
    assert len({op.id for op in ops}) == len(ops)


def test_operation_snapshots_are_copies():
    node = Node(uid="n_001", mermaid_id="A")
    op = make_node_delete_op(node)
    node.deleted = True

    assert op.data.node.deleted is False


def test_operation_serializes_kind():
    op = make_move_op("n_001", None, None, 1, 2)
    data = op.model_dump(mode="json")

    assert data["kind"] == "node_move"
    assert data["data"]["after_x"] == 1.0
    assert Operation.model_validate(data).data == op.data
