from concurrent.futures import ThreadPoolExecutor

import pytest

from mermaidman.core import (
    DocumentNotFoundError,
    EdgeNotFoundError,
    NodeNotFoundError,
    OpKind,
    StoreDecodeError,
)
from mermaidman.http.store import DocumentConfig, DocumentRegistry

from .conftest import CHAIN_DOC, SIMPLE_DOC


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("MM_DIRECTION", "lr")
    monkeypatch.setenv("MM_UNDO_LIMIT", "5")

    config = DocumentConfig.from_env()

    assert config.direction == "LR"
    assert config.undo_limit == 5


def test_config_rejects_bad_values():
    with pytest.raises(ValueError):
        DocumentConfig(direction="UP")
    with pytest.raises(ValueError):
        DocumentConfig(undo_limit=0)


def test_open_doc(registry):
    result = registry.open_doc("doc", SIMPLE_DOC)

    assert result["doc_id"] == "doc"
    assert result["nodes"] == 2
    assert result["edges"] == 1
    assert result["warnings"] == []
    assert result["content"].startswith("graph TD\nA[Start] --> B[End]\n")


def test_unknown_document(registry):
    with pytest.raises(DocumentNotFoundError):
        registry.generate("missing")
    with pytest.raises(DocumentNotFoundError):
        registry.reconcile("missing", SIMPLE_DOC)
    assert registry.close_doc("missing") is False


def test_reconcile_swaps_store(registry):
    registry.open_doc("doc", CHAIN_DOC)

    result = registry.reconcile("doc", "graph LR\nA[Start] --> B[Middle]\n")

    assert result.orphaned_nodes == ["n_003"]
    assert registry.generate("doc") == result.text
    assert registry.generate("doc").startswith("graph LR")
    assert registry.list_docs()[0]["nodes"] == 2


def test_reconcile_keeps_document_direction_without_header(registry):
    registry.open_doc("doc", "flowchart RL\nA --> B\n")

    result = registry.reconcile("doc", "A --> B\n")

    assert result.direction == "RL"


def test_export_and_load_store(registry):
    registry.open_doc("doc", SIMPLE_DOC)
    blob = registry.export_store("doc")

    summary = registry.load_store("copy", blob)

    assert summary["nodes"] == 2
    assert registry.generate("copy") == registry.generate("doc")


def test_load_store_rejects_bad_blob(registry):
    with pytest.raises(StoreDecodeError):
        registry.load_store("doc", "{not json")
    assert registry.list_docs() == []


def test_move_nodes_records_and_undoes(registry):
    registry.open_doc("doc", SIMPLE_DOC)

    applied = registry.move_nodes("doc", [("n_001", 1, 2), ("n_missing", 3, 4)])

    assert applied == 1
    assert registry.get_node("doc", "n_001").x == 1.0

    op = registry.undo("doc")
    assert op.kind == OpKind.NODE_MOVE
    assert (op.data.before_x, op.data.after_x) == (100.0, 1.0)
    assert registry.undo("doc") is None
    assert registry.redo("doc").id == op.id


def test_record_false_skips_history(registry):
    registry.open_doc("doc", SIMPLE_DOC)

    registry.move_nodes("doc", [("n_001", 1, 2)], record=False)

    assert registry.history("doc")["can_undo"] is False


def test_create_node_and_edge(registry):
    registry.open_doc("doc", SIMPLE_DOC)

    node = registry.create_node("doc", "C", label="Third", x=10, kind="note")
    edge = registry.create_edge("doc", "n_002", node.uid, label="next")

    text = registry.generate("doc")
    assert "B[End] --|next|--> C[Third]" in text
    assert '"kind":"note"' in text
    assert [e.eid for e in registry.node_edges("doc", node.uid, "in")] == [edge.eid]
    assert [op.kind for op in registry.history("doc")["operations"]] == [OpKind.NODE_CREATE, OpKind.EDGE_CREATE]


def test_create_node_validates_id(registry):
    registry.open_doc("doc", SIMPLE_DOC)

    with pytest.raises(ValueError):
        registry.create_node("doc", "A")
    with pytest.raises(ValueError):
        registry.create_node("doc", "not valid")


def test_create_edge_requires_nodes(registry):
    registry.open_doc("doc", SIMPLE_DOC)

    with pytest.raises(NodeNotFoundError):
        registry.create_edge("doc", "n_001", "n_missing")


def test_rename_node(registry):
    registry.open_doc("doc", SIMPLE_DOC)

    node = registry.rename_node("doc", "n_001", "Start")

    assert node.uid == "n_001"
    assert node.mermaid_id == "Start"
    assert "Start[Start] --> B[End]" not in registry.generate("doc")
    assert "Start --> B[End]" in registry.generate("doc")
    assert registry.undo("doc").kind == OpKind.NODE_UPDATE

    with pytest.raises(ValueError):
        registry.rename_node("doc", "n_001", "B")


def test_delete_node_removes_edges(registry):
    registry.open_doc("doc", SIMPLE_DOC)

    registry.delete_node("doc", "n_002")

    assert registry.get_node("doc", "n_002").deleted is True
    assert registry.node_edges("doc", "n_001") == []
    kinds = [op.kind for op in registry.history("doc")["operations"]]
    assert kinds == [OpKind.EDGE_DELETE, OpKind.NODE_DELETE]

    with pytest.raises(NodeNotFoundError):
        registry.delete_node("doc", "n_002")


def test_delete_edge(registry):
    registry.open_doc("doc", SIMPLE_DOC)
    (edge,) = registry.node_edges("doc", "n_001")

    registry.delete_edge("doc", edge.eid)

    assert "-->" not in registry.generate("doc")
    with pytest.raises(EdgeNotFoundError):
        registry.delete_edge("doc", edge.eid)


def test_node_edges_rejects_bad_direction(registry):
    registry.open_doc("doc", SIMPLE_DOC)

    with pytest.raises(ValueError):
        registry.node_edges("doc", "n_001", "sideways")


def test_undo_history_is_bounded():
    registry = DocumentRegistry(DocumentConfig(undo_limit=3))
    registry.open_doc("doc", SIMPLE_DOC)

    registry.move_nodes("doc", [("n_001", i, i) for i in range(5)])

    ops = registry.history("doc", limit=10)["operations"]
    assert [op.data.after_x for op in ops] == [2.0, 3.0, 4.0]


def test_concurrent_moves_on_separate_documents(registry):
    for i in range(4):
        registry.open_doc(f"doc{i}", SIMPLE_DOC)

    def work(doc_id):
        for step in range(50):
            registry.move_nodes(doc_id, [("n_001", step, step)])
        return registry.get_node(doc_id, "n_001").x

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(work, [f"doc{i}" for i in range(4)]))

    assert results == [49.0] * 4
