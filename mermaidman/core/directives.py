"""Directive parsing for `%% @kind: key {json}` comment lines."""

import json
import logging
import re
from typing import Any

from pydantic import BaseModel

from .utils import coerce_coordinate

logger = logging.getLogger(__name__)

NODE_DIRECTIVE_RE = re.compile(r"^%%\s*@node:\s*([A-Za-z0-9_]+)\s*(\{.*\})\s*$")
EDGE_DIRECTIVE_RE = re.compile(r"^%%\s*@edge:\s*([A-Za-z0-9_]+)\s*(\{.*\})\s*$")
AI_DIRECTIVE_RE = re.compile(r"^%%\s*@ai:\s*([A-Za-z0-9_]+)\s*(\{.*\})\s*$")


class NodeDirective(BaseModel):
    """Parsed `@node` directive."""
    id: str
    uid: str | None = None
    x: int | None = None
    y: int | None = None
    kind: str | None = None
    meta: dict[str, Any] | None = None


class EdgeDirective(BaseModel):
    """Parsed `@edge` directive."""
    key: str
    eid: str | None = None
    source: str | None = None
    target: str | None = None
    label: str | None = None
    meta: dict[str, Any] | None = None


class AiDirective(BaseModel):
    """Parsed `@ai` directive."""
    target_uid: str
    action: str
    provider: str | None = None
    timestamp: int | None = None
    meta: dict[str, Any] | None = None


def _match_body(pattern: re.Pattern, line: str) -> tuple[str, dict] | None:
    """Match a directive line and decode its JSON body."""
    match = pattern.match(line)
    if not match:
        return None

    try:
        body = json.loads(match.group(2))
    except ValueError as e:
        logger.debug(f"Dropping directive with invalid JSON: {line!r} ({e})")
        return None

    if not isinstance(body, dict):
        return None
    return match.group(1), body


def _str_field(body: dict, key: str) -> str | None:
    value = body.get(key)
    return value if isinstance(value, str) else None


def parse_node_directive(line: str) -> NodeDirective | None:
    """
    Parse a node directive line.
    Format: `%% @node: A {"uid":"n_xxx","x":100,"y":50,...}`
    """
    matched = _match_body(NODE_DIRECTIVE_RE, line)
    if not matched:
        return None

    node_id, body = matched
    return NodeDirective(
        id=node_id,
        uid=_str_field(body, "uid"),
        x=coerce_coordinate(body.get("x")),
        y=coerce_coordinate(body.get("y")),
        kind=_str_field(body, "kind"),
        meta=body,
    )


def parse_edge_directive(line: str) -> EdgeDirective | None:
    """
    Parse an edge directive line.
    Format: `%% @edge: e1 {"eid":"e_xxx","source":"n_1","target":"n_2",...}`
    """
    matched = _match_body(EDGE_DIRECTIVE_RE, line)
    if not matched:
        return None

    key, body = matched
    return EdgeDirective(
        key=key,
        eid=_str_field(body, "eid"),
        source=_str_field(body, "source"),
        target=_str_field(body, "target"),
        label=_str_field(body, "label"),
        meta=body,
    )


def parse_ai_directive(line: str) -> AiDirective | None:
    """
    Parse an AI directive line. The `action` field is required.
    Format: `%% @ai: n_xxx {"action":"summarize","provider":"gemini",...}`
    """
    matched = _match_body(AI_DIRECTIVE_RE, line)
    if not matched:
        return None

    target_uid, body = matched
    action = _str_field(body, "action")
    if action is None:
        return None

    timestamp = body.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp < 0:
        timestamp = None

    return AiDirective(
        target_uid=target_uid,
        action=action,
        provider=_str_field(body, "provider"),
        timestamp=timestamp,
        meta=body,
    )
