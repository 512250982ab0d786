"""Flowchart topology parsing (node declarations and edges)."""

import re

from .constants import DIRECTIVE_MARKER, DIRECTIONS, STRUCTURAL_KEYWORDS

NODE_ID_RE = re.compile(r"[A-Za-z0-9_]+")
CLASS_SUFFIX_RE = re.compile(r":::[A-Za-z0-9_-]+")
HEADER_RE = re.compile(r"^(?:graph|flowchart)\s+([A-Za-z]{2})\b")

# Longer delimiters first so `((` is not read as `(`
NODE_SHAPES: tuple[tuple[str, str], ...] = (
    ("((", "))"),    # circle
    ("([", "])"),    # stadium
    ("[[", "]]"),    # subroutine
    ("{{", "}}"),    # hexagon
    ("[/", "\\]"),   # trapezoid
    ("[/", "/]"),    # parallelogram
    ("[\\", "/]"),   # inverted trapezoid
    ("[\\", "\\]"),  # alt parallelogram
    ("[", "]"),      # rectangle
    ("(", ")"),      # rounded
    ("{", "}"),      # diamond
    (">", "]"),      # asymmetric flag
)

LABELED_ARROW_RE = re.compile(r"--\|([^|]*)\|-->")
TEXT_ARROW_RE = re.compile(r"(?:--|==|-\.)\s+(\S(?:[^|]*?\S)?)\s+(?:-->|==>|\.->|---|===|\.-)")
ARROW_RE = re.compile(r"(?:<|o|x)?(?:-{2,}|={2,}|-\.+-|~{3,})(?:>|o|x)?")
PIPE_LABEL_RE = re.compile(r"\s*\|([^|]*)\|")

Decl = tuple[str, str | None]

# Mermaid entity codes used inside quoted labels
QUOTE_ENTITY = "#quot;"
HASH_ENTITY = "#35;"


def quote_label(label: str) -> str:
    """Escape a label for use inside `id["..."]`."""
    return label.replace("#", HASH_ENTITY).replace('"', QUOTE_ENTITY)


def unquote_label(text: str) -> str:
    return text.replace(QUOTE_ENTITY, '"').replace(HASH_ENTITY, "#")


def _skip_spaces(line: str, pos: int) -> int:
    while pos < len(line) and line[pos] in " \t":
        pos += 1
    return pos


def _parse_node_decl(line: str, pos: int) -> tuple[Decl, int] | None:
    """Parse `id` or `id<shape>` at pos. Returns ((id, label), new_pos)."""
    match = NODE_ID_RE.match(line, pos)
    if not match:
        return None

    node_id = match.group(0)
    pos = match.end()
    label = None

    for open_, close in NODE_SHAPES:
        if not line.startswith(open_, pos):
            continue
        start = pos + len(open_)

        # Quoted label: brackets inside the quotes are plain text
        if line.startswith('"', start):
            end = line.find('"' + close, start + 1)
            if end >= 0:
                label = unquote_label(line[start + 1:end])
                pos = end + 1 + len(close)
                break

        end = line.find(close, start)
        if end < 0:
            continue
        text = line[start:end]
        # A label never spans the closing bracket of another declaration
        if close[-1] in text:
            continue
        label = text
        pos = end + len(close)
        break

    suffix = CLASS_SUFFIX_RE.match(line, pos)
    if suffix:
        pos = suffix.end()

    return (node_id, label), pos


def _parse_arrow(line: str, pos: int) -> tuple[str | None, int] | None:
    """Parse an arrow at pos. Returns (label, new_pos), or None if no arrow."""
    labeled = LABELED_ARROW_RE.match(line, pos)
    if labeled:
        return labeled.group(1), labeled.end()

    texted = TEXT_ARROW_RE.match(line, pos)
    if texted:
        return texted.group(1), texted.end()

    glyph = ARROW_RE.match(line, pos)
    if not glyph:
        return None

    pos = glyph.end()
    piped = PIPE_LABEL_RE.match(line, pos)
    if piped:
        return piped.group(1), piped.end()
    return None, pos


def _at_line_end(line: str, pos: int) -> bool:
    pos = _skip_spaces(line, pos)
    if pos < len(line) and line[pos] == ";":
        pos = _skip_spaces(line, pos + 1)
    return pos == len(line)


def _parse_line(line: str) -> tuple[list[Decl], list[str | None]] | None:
    """
    Parse a single topology line.
    Returns (declarations, arrow_labels) where len(arrow_labels) is
    len(declarations) - 1, or None if the line is not topology.
    """
    first = _parse_node_decl(line, 0)
    if not first:
        return None

    decls, pos = [first[0]], first[1]
    labels: list[str | None] = []

    while True:
        arrow = _parse_arrow(line, _skip_spaces(line, pos))
        if arrow is None:
            break
        target = _parse_node_decl(line, _skip_spaces(line, arrow[1]))
        if target is None:
            return None
        labels.append(arrow[0])
        decls.append(target[0])
        pos = target[1]

    if not _at_line_end(line, pos):
        return None
    return decls, labels


def _is_skipped(trimmed: str) -> bool:
    if not trimmed or trimmed.startswith(DIRECTIVE_MARKER):
        return True
    return trimmed.split(None, 1)[0] in STRUCTURAL_KEYWORDS


def parse_mermaid_topology(
    text: str,
) -> tuple[list[tuple[str, str | None]], list[tuple[str, str, str | None]]]:
    """
    Parse flowchart topology.

    Returns (nodes, edges):
    - nodes: [(mermaid_id, label)] in first-seen order
    - edges: [(source_id, target_id, label)] in line order

    Lines that cannot be parsed are skipped.
    """
    nodes: list[tuple[str, str | None]] = []
    edges: list[tuple[str, str, str | None]] = []
    seen: set[str] = set()

    for line in text.splitlines():
        trimmed = line.strip()
        if _is_skipped(trimmed):
            continue

        parsed = _parse_line(trimmed)
        if parsed is None:
            continue

        decls, labels = parsed
        for node_id, label in decls:
            if node_id not in seen:
                seen.add(node_id)
                nodes.append((node_id, label))

        for (src, _), (tgt, _), label in zip(decls, decls[1:], labels):
            edges.append((src, tgt, label))

    return nodes, edges


def detect_direction(text: str) -> str | None:
    """Direction of the first `graph`/`flowchart` header, if any."""
    for line in text.splitlines():
        match = HEADER_RE.match(line.strip())
        if match:
            direction = match.group(1).upper()
            return direction if direction in DIRECTIONS else None
    return None
