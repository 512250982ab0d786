"""Canonical document generation from a graph store."""

from typing import Any

from pydantic import BaseModel

from .constants import DEFAULT_DIRECTION, EDGE_DIRECTIVE_KEY_PREFIX
from .store import GraphStore
from .topology import quote_label
from .types import Edge, Node, NodeKind
from .utils import canonical_json, coerce_coordinate

LABEL_QUOTE_CHARS = frozenset('[](){}"')


def _dump(payload: BaseModel) -> dict[str, Any]:
    return payload.model_dump(mode="json", exclude_none=True)


def _position(value: float) -> float | None:
    coerced = coerce_coordinate(value)
    return float(coerced) if coerced is not None else None


def canonical_node_directive(node: Node) -> str:
    """Node directive body with a fixed key order."""
    data: dict[str, Any] = {"uid": node.uid}

    if node.x is not None:
        x = _position(node.x)
        if x is not None:
            data["x"] = x
    if node.y is not None:
        y = _position(node.y)
        if y is not None:
            data["y"] = y
    if node.kind != NodeKind.CARD:
        data["kind"] = node.kind.value

    if node.style is not None:
        style = _dump(node.style)
        if style:
            data["style"] = style
    for key in ("code", "media", "diagram"):
        payload = getattr(node, key)
        if payload is not None:
            data[key] = _dump(payload)
    if node.markdown is not None:
        data["markdown"] = node.markdown
    if node.meta is not None:
        data["meta"] = node.meta

    return canonical_json(data)


def canonical_edge_directive(edge: Edge) -> str:
    """Edge directive body with a fixed key order. Endpoints are UIDs."""
    data: dict[str, Any] = {
        "eid": edge.eid,
        "source": edge.source,
        "target": edge.target,
    }
    if edge.label is not None:
        data["label"] = edge.label
    if edge.style is not None:
        style = _dump(edge.style)
        if style:
            data["style"] = style
    if edge.meta is not None:
        data["meta"] = edge.meta

    return canonical_json(data)


def format_node_directive(node: Node) -> str:
    return f"%% @node: {node.mermaid_id} {canonical_node_directive(node)}"


def format_edge_directive(edge: Edge, key: str) -> str:
    return f"%% @edge: {key} {canonical_edge_directive(edge)}"


def _needs_quotes(label: str) -> bool:
    if label.startswith(("/", "\\")):
        return True
    return any(c in LABEL_QUOTE_CHARS for c in label)


def format_node_decl(node: Node) -> str:
    """
    `id`, or `id[label]` when the label differs from the id.
    Labels holding brackets or quotes are written as `id["label"]`.
    """
    if node.label is None or node.label == node.mermaid_id:
        return node.mermaid_id
    if _needs_quotes(node.label):
        return f'{node.mermaid_id}["{quote_label(node.label)}"]'
    return f"{node.mermaid_id}[{node.label}]"


def format_edge_line(edge: Edge, source: Node, target: Node) -> str:
    arrow = f"--|{edge.label}|-->" if edge.label is not None else "-->"
    return f"{format_node_decl(source)} {arrow} {format_node_decl(target)}"


def _rendered_edges(store: GraphStore) -> list[tuple[Edge, Node, Node]]:
    """Active edges whose endpoints are both active nodes."""
    rendered = []
    for edge in store.active_edges():
        source = store.get_node(edge.source)
        target = store.get_node(edge.target)
        if source is None or target is None or source.deleted or target.deleted:
            continue
        rendered.append((edge, source, target))
    return rendered


def _topology_lines(store: GraphStore, direction: str, rendered: list[tuple[Edge, Node, Node]]) -> list[str]:
    lines = [f"graph {direction}"]
    connected: set[str] = set()

    for edge, source, target in rendered:
        lines.append(format_edge_line(edge, source, target))
        connected.add(source.uid)
        connected.add(target.uid)

    for node in store.active_nodes():
        if node.uid not in connected:
            lines.append(format_node_decl(node))

    return lines


def generate(store: GraphStore, direction: str = DEFAULT_DIRECTION) -> str:
    """
    Generate the canonical document for a store.

    Layout: header, edge lines, declarations for unconnected nodes, a blank
    line, then one `@node` directive per active node and one `@edge`
    directive per rendered edge (keys e1, e2, ...). Ends with a newline.
    """
    rendered = _rendered_edges(store)
    lines = _topology_lines(store, direction, rendered)
    lines.append("")

    for node in store.active_nodes():
        lines.append(format_node_directive(node))
    for index, (edge, _, _) in enumerate(rendered, start=1):
        lines.append(format_edge_directive(edge, f"{EDGE_DIRECTIVE_KEY_PREFIX}{index}"))

    return "\n".join(lines) + "\n"


def generate_topology(store: GraphStore, direction: str = DEFAULT_DIRECTION) -> str:
    """Diagram body only, without directives."""
    return "\n".join(_topology_lines(store, direction, _rendered_edges(store))) + "\n"
