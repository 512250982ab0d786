"""Utility functions for identifiers, timestamps and directive values."""

import json
import math
import time
import uuid
from typing import Any

from .constants import UID_PREFIX, EID_PREFIX


def new_uid() -> str:
    """Generate a fresh node identifier."""
    return f"{UID_PREFIX}{uuid.uuid4().hex}"


def new_eid() -> str:
    """Generate a fresh edge identifier."""
    return f"{EID_PREFIX}{uuid.uuid4().hex}"


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def coerce_coordinate(value: Any) -> int | None:
    """
    Coerce a JSON number to an integer coordinate.
    Floats round half away from zero; anything else (including bools) is None.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, int):
        return value
    if not math.isfinite(value):
        return None
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def canonical_json(data: dict) -> str:
    """Compact JSON in the caller's key order."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def directive_meta(body: dict, reserved: frozenset) -> Any:
    """
    Extract the open-ended meta value from a directive body.

    The body's own "meta" value is merged with any keys the directive grammar
    does not reserve, so that hand-written extras survive regeneration.
    Returns None when the body carries neither.
    """
    extra = {k: v for k, v in body.items() if k not in reserved}
    meta = body.get("meta")

    if not extra:
        return meta
    if meta is None:
        return extra
    if isinstance(meta, dict):
        return {**meta, **extra}
    return {**extra, "meta": meta}
