"""Document assembly: topology + directives → nodes and edges."""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .constants import DIRECTIVE_MARKER, NODE_DIRECTIVE_KEYS, EDGE_DIRECTIVE_KEYS
from .directives import (
    AiDirective,
    EdgeDirective,
    NodeDirective,
    parse_ai_directive,
    parse_edge_directive,
    parse_node_directive,
)
from .topology import detect_direction, parse_mermaid_topology
from .types import CodeMeta, DiagramMeta, Edge, EdgeStyle, MediaMeta, Node, NodeKind, NodeStyle
from .utils import directive_meta, new_eid, new_uid

logger = logging.getLogger(__name__)

NODE_PAYLOADS = {
    "style": NodeStyle,
    "code": CodeMeta,
    "media": MediaMeta,
    "diagram": DiagramMeta,
}


class ParseResult(BaseModel):
    """Parsed document."""
    topology: str
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    direction: str | None = None
    ai_directives: list[AiDirective] = Field(default_factory=list)


def _payload(model: type[BaseModel], value: Any, owner: str, warnings: list[str]):
    """Validate a kind-specific payload, warning (not failing) on bad input."""
    try:
        return model.model_validate(value)
    except ValidationError as e:
        warnings.append(f"Ignoring invalid {model.__name__} on {owner}: {e.error_count()} error(s)")
        return None


def _build_node(
    mermaid_id: str,
    label: str | None,
    directive: NodeDirective | None,
    used_uids: set[str],
    warnings: list[str],
) -> Node:
    """Merge a topology node with its directive (if any)."""
    uid = directive.uid if directive and directive.uid else None
    if uid is not None and uid in used_uids:
        warnings.append(f"Duplicate uid {uid} on node {mermaid_id}; assigned a fresh uid")
        uid = None

    node = Node(uid=uid or new_uid(), mermaid_id=mermaid_id, label=label)
    used_uids.add(node.uid)

    if directive is None:
        return node

    if directive.x is not None:
        node.x = float(directive.x)
    if directive.y is not None:
        node.y = float(directive.y)
    if directive.kind is not None:
        kind = NodeKind.parse(directive.kind)
        if kind != NodeKind.CARD:
            node.kind = kind

    body = directive.meta or {}
    for key, model in NODE_PAYLOADS.items():
        if body.get(key) is not None:
            setattr(node, key, _payload(model, body[key], mermaid_id, warnings))
    if isinstance(body.get("markdown"), str):
        node.markdown = body["markdown"]

    node.meta = directive_meta(body, NODE_DIRECTIVE_KEYS)
    return node


def parse_document(text: str) -> ParseResult:
    """
    Parse a complete document.

    Directive lines are split off from the topology, the topology is parsed,
    and each node/edge is merged with its directive. Nothing in the text can
    fail the parse; problems are reported in `warnings`.
    """
    topology_lines: list[str] = []
    node_directives: dict[str, NodeDirective] = {}
    edge_directives: list[EdgeDirective] = []
    ai_directives: list[AiDirective] = []
    warnings: list[str] = []

    # First pass: separate topology from directives
    for line in text.splitlines():
        trimmed = line.strip()
        if not trimmed.startswith(DIRECTIVE_MARKER):
            topology_lines.append(line)
            continue

        node_directive = parse_node_directive(trimmed)
        if node_directive:
            if node_directive.id in node_directives:
                logger.debug(f"Node directive for '{node_directive.id}' overrides an earlier one")
            node_directives[node_directive.id] = node_directive
            continue

        edge_directive = parse_edge_directive(trimmed)
        if edge_directive:
            edge_directives.append(edge_directive)
            continue

        ai_directive = parse_ai_directive(trimmed)
        if ai_directive:
            ai_directives.append(ai_directive)

    topology = "\n".join(topology_lines)
    topo_nodes, topo_edges = parse_mermaid_topology(topology)

    # Nodes
    nodes: list[Node] = []
    id_to_uid: dict[str, str] = {}
    used_uids: set[str] = set()

    for mermaid_id, label in topo_nodes:
        node = _build_node(mermaid_id, label, node_directives.get(mermaid_id), used_uids, warnings)
        id_to_uid[mermaid_id] = node.uid
        nodes.append(node)

    # Edge directives, queued per endpoint pair in document order
    by_pair: dict[tuple[str, str], list[int]] = {}
    for index, directive in enumerate(edge_directives):
        if directive.source and directive.target:
            by_pair.setdefault((directive.source, directive.target), []).append(index)
    consumed: set[int] = set()

    def claim_directive(*pairs: tuple[str, str]) -> EdgeDirective | None:
        """First unconsumed directive for any of the given endpoint pairs."""
        for pair in pairs:
            for index in by_pair.get(pair, ()):
                if index not in consumed:
                    consumed.add(index)
                    return edge_directives[index]
        return None

    # Endpoints missing from the node list get one fresh uid per raw id
    unresolved: dict[str, str] = {}

    def resolve(mermaid_id: str, role: str) -> str:
        if mermaid_id in id_to_uid:
            return id_to_uid[mermaid_id]
        warnings.append(f"Unknown {role} node: {mermaid_id}")
        if mermaid_id not in unresolved:
            unresolved[mermaid_id] = new_uid()
        return unresolved[mermaid_id]

    # Edges
    edges: list[Edge] = []
    used_eids: set[str] = set()

    for src_id, tgt_id, label in topo_edges:
        source = resolve(src_id, "source")
        target = resolve(tgt_id, "target")

        directive = claim_directive((src_id, tgt_id), (source, target))

        eid = directive.eid if directive and directive.eid else None
        if eid is not None and eid in used_eids:
            warnings.append(f"Duplicate eid {eid} on edge {src_id}->{tgt_id}; assigned a fresh eid")
            eid = None

        edge = Edge(eid=eid or new_eid(), source=source, target=target, label=label)
        used_eids.add(edge.eid)

        if directive is not None:
            if edge.label is None:
                edge.label = directive.label
            body = directive.meta or {}
            if body.get("style") is not None:
                edge.style = _payload(EdgeStyle, body["style"], f"{src_id}->{tgt_id}", warnings)
            edge.meta = directive_meta(body, EDGE_DIRECTIVE_KEYS)

        edges.append(edge)

    logger.debug(f"Parsed document: {len(nodes)} nodes, {len(edges)} edges, {len(warnings)} warnings")

    return ParseResult(
        topology=topology,
        nodes=nodes,
        edges=edges,
        warnings=warnings,
        direction=detect_direction(topology),
        ai_directives=ai_directives,
    )
