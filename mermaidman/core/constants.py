"""Constants for diagram parsing, reconciliation and serialization."""

# Identifier prefixes
UID_PREFIX = "n_"
EID_PREFIX = "e_"

# Document format
DIRECTIVE_MARKER = "%%"
DEFAULT_DIRECTION = "TD"
DIRECTIONS = ("TB", "TD", "BT", "RL", "LR")
EDGE_DIRECTIVE_KEY_PREFIX = "e"

# Lines whose first word is one of these never declare topology
STRUCTURAL_KEYWORDS = frozenset({
    "graph",
    "flowchart",
    "subgraph",
    "end",
    "direction",
    "classDef",
    "class",
    "style",
    "linkStyle",
    "click",
})

# Directive body keys mapped onto typed fields (everything else lands in meta)
NODE_DIRECTIVE_KEYS = frozenset({
    "uid", "x", "y", "kind", "style", "code", "media", "diagram", "markdown", "meta",
})
EDGE_DIRECTIVE_KEYS = frozenset({"eid", "source", "target", "label", "style", "meta"})

# Undo/redo
DEFAULT_UNDO_LIMIT = 100
