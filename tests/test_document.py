from mermaidman import parse
from mermaidman.core import NodeKind, parse_document

from .conftest import SIMPLE_DOC


def test_parse_simple_document():
    result = parse_document(SIMPLE_DOC)

    assert len(result.nodes) == 2
    assert len(result.edges) == 1

    node_a = result.nodes[0]
    assert node_a.uid == "n_001"
    assert node_a.label == "Start"
    assert node_a.x == 100.0
    assert node_a.y == 50.0

    edge = result.edges[0]
    assert edge.source == "n_001"
    assert edge.target == "n_002"
    assert edge.eid.startswith("e_")
    assert result.warnings == []
    assert result.direction == "TD"


def test_parse_alias():
    assert parse(SIMPLE_DOC).nodes[0].uid == "n_001"


def test_directives_never_reach_topology():
    result = parse_document(SIMPLE_DOC)

    assert "%%" not in result.topology
    assert "A[Start] --> B[End]" in result.topology


def test_node_without_directive_gets_fresh_uid():
    result = parse_document("graph TD\nA --> B\n")

    node = result.nodes[0]
    assert node.uid.startswith("n_")
    assert len(node.uid) == 34
    assert node.x is None
    assert node.meta is None
    assert node.kind == NodeKind.CARD


def test_last_node_directive_wins():
    text = "\n".join([
        "graph TD",
        "A",
        '%% @node: A {"uid":"n_001","x":1}',
        '%% @node: A {"uid":"n_001","x":2}',
    ])
    result = parse_document(text)

    assert result.nodes[0].x == 2.0


def test_duplicate_uid_is_reminted():
    text = "\n".join([
        "graph TD",
        "A --> B",
        '%% @node: A {"uid":"n_001"}',
        '%% @node: B {"uid":"n_001"}',
    ])
    result = parse_document(text)

    assert result.nodes[0].uid == "n_001"
    assert result.nodes[1].uid != "n_001"
    assert any("Duplicate uid" in w for w in result.warnings)


def test_edge_directive_matched_by_mermaid_ids():
    text = "\n".join([
        "graph TD",
        "A --> B",
        '%% @edge: e1 {"eid":"e_001","source":"A","target":"B","label":"yes","style":{"dashed":true}}',
    ])
    edge = parse_document(text).edges[0]

    assert edge.eid == "e_001"
    assert edge.label == "yes"
    assert edge.style.dashed is True


def test_edge_directive_matched_by_uids():
    text = SIMPLE_DOC + '%% @edge: e1 {"eid":"e_001","source":"n_001","target":"n_002"}\n'
    edge = parse_document(text).edges[0]

    assert edge.eid == "e_001"


def test_topology_label_beats_directive_label():
    text = "\n".join([
        "graph TD",
        "A --|no|--> B",
        '%% @edge: e1 {"eid":"e_001","source":"A","target":"B","label":"yes"}',
    ])
    edge = parse_document(text).edges[0]

    assert edge.label == "no"


def test_node_payloads_and_meta():
    text = "\n".join([
        "graph TD",
        "A[Snippet]",
        '%% @node: A {"uid":"n_001","kind":"CODE","code":{"language":"python","lines":3},'
        '"color":"red","meta":{"owner":"ann"}}',
    ])
    node = parse_document(text).nodes[0]

    assert node.kind == NodeKind.CODE
    assert node.code.language == "python"
    assert node.code.model_dump()["lines"] == 3
    assert node.meta == {"owner": "ann", "color": "red"}


def test_unknown_kind_stays_card():
    text = 'graph TD\nA\n%% @node: A {"kind":"hologram"}\n'
    node = parse_document(text).nodes[0]

    assert node.kind == NodeKind.CARD
    assert node.meta is None


def test_invalid_payload_is_a_warning():
    text = 'graph TD\nA\n%% @node: A {"media":{"alt":"no src"}}\n'
    result = parse_document(text)

    assert result.nodes[0].media is None
    assert any("MediaMeta" in w for w in result.warnings)


def test_malformed_directives_are_dropped_silently():
    text = "graph TD\nA\n%% @node: A {oops\n%% @edge: e1 [1]\n"
    result = parse_document(text)

    assert len(result.nodes) == 1
    assert result.warnings == []


def test_direction_and_ai_directives():
    text = "\n".join([
        "flowchart LR",
        "A --> B",
        '%% @ai: n_001 {"action":"summarize"}',
        '%% @ai: n_002 {"provider":"none"}',
    ])
    result = parse_document(text)

    assert result.direction == "LR"
    assert [d.action for d in result.ai_directives] == ["summarize"]
