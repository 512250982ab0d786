import pytest
from fastapi.testclient import TestClient

from mermaidman.http.app import app

from .conftest import CHAIN_DOC, SIMPLE_DOC


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_parse(client):
    response = client.post("/api/parse", json={"text": SIMPLE_DOC})

    assert response.status_code == 200
    data = response.json()
    assert [n["uid"] for n in data["nodes"]] == ["n_001", "n_002"]
    assert data["direction"] == "TD"


def test_stateless_reconcile_and_generate(client):
    first = client.post("/api/reconcile", json={"text": CHAIN_DOC}).json()

    response = client.post(
        "/api/reconcile",
        json={"text": "graph TD\nA[Start] --> B[Middle]\n", "store": first["store"]},
    )
    data = response.json()
    assert response.status_code == 200
    assert data["orphaned_nodes"] == ["n_003"]

    generated = client.post("/api/generate", json={"store": data["store"]}).json()
    assert generated["text"] == data["text"]


def test_invalid_store_is_400(client):
    response = client.post("/api/generate", json={"store": {"nodes": "nope"}})

    assert response.status_code == 400


def test_update_position(client):
    response = client.post(
        "/api/update-position",
        json={"text": SIMPLE_DOC, "mermaid_id": "A", "x": 7, "y": 8},
    )

    assert '"uid":"n_001","x":7.0,"y":8.0' in response.json()["text"]


def test_document_lifecycle(client):
    opened = client.post("/api/docs/d1/open", json={"text": SIMPLE_DOC})
    assert opened.status_code == 200
    assert opened.json()["nodes"] == 2

    moved = client.post("/api/docs/d1/moves", json={"moves": [{"uid": "n_001", "x": 1, "y": 2}]})
    assert moved.json() == {"applied": 1}

    node = client.get("/api/docs/d1/nodes/n_001").json()
    assert (node["x"], node["y"]) == (1.0, 2.0)

    created = client.post("/api/docs/d1/nodes", json={"mermaid_id": "C", "label": "Third"}).json()
    edge = client.post(
        "/api/docs/d1/edges",
        json={"source": "n_002", "target": created["uid"]},
    ).json()

    edges = client.get(f"/api/docs/d1/nodes/{created['uid']}/edges").json()
    assert [e["eid"] for e in edges] == [edge["eid"]]

    renamed = client.patch("/api/docs/d1/nodes/n_001", json={"mermaid_id": "Root"}).json()
    assert renamed["mermaid_id"] == "Root"

    text = client.get("/api/docs/d1/text").json()["text"]
    assert "Root[Start] --> B[End]" in text
    assert "B[End] --> C[Third]" in text

    history = client.get("/api/docs/d1/history").json()
    assert [op["kind"] for op in history["operations"]] == [
        "node_move", "node_create", "edge_create", "node_update",
    ]

    undone = client.post("/api/docs/d1/undo").json()
    assert undone["operation"]["kind"] == "node_update"

    redone = client.post("/api/docs/d1/redo").json()
    assert redone["operation"]["id"] == undone["operation"]["id"]

    deleted = client.delete(f"/api/docs/d1/edges/{edge['eid']}")
    assert deleted.json()["deleted"] is True
    assert client.delete("/api/docs/d1/nodes/n_002").json()["deleted"] is True

    exported = client.get("/api/docs/d1/store").json()
    loaded = client.put("/api/docs/d2/store", json={"store": exported})
    assert loaded.status_code == 200
    assert client.get("/api/docs/d2/text").json() == client.get("/api/docs/d1/text").json()

    reconciled = client.post("/api/docs/d1/reconcile", json={"text": "graph TD\nRoot --> C\n"}).json()
    assert reconciled["orphaned_nodes"] == []

    assert client.delete("/api/docs/d1").status_code == 200
    assert client.delete("/api/docs/d1").status_code == 404


def test_not_found_mapping(client):
    assert client.get("/api/docs/nope/text").status_code == 404

    client.post("/api/docs/d3/open", json={"text": SIMPLE_DOC})
    assert client.get("/api/docs/d3/nodes/n_missing").status_code == 404
    assert client.delete("/api/docs/d3/edges/e_missing").status_code == 404


def test_bad_requests_are_400(client):
    client.post("/api/docs/d4/open", json={"text": SIMPLE_DOC})

    assert client.post("/api/docs/d4/nodes", json={"mermaid_id": "A"}).status_code == 400
    assert client.post("/api/docs/d4/nodes", json={"mermaid_id": "bad id"}).status_code == 400
    assert client.put("/api/docs/d4/store", json={"store": {"version": "x"}}).status_code == 400
