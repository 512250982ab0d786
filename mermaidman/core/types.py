"""Type definitions for the diagram graph model."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .utils import new_uid, new_eid, now_ms


class NodeKind(str, Enum):
    """Kind of content a node carries."""
    CARD = "card"
    NOTE = "note"
    CODE = "code"
    MEDIA = "media"
    MARKDOWN = "markdown"
    DIAGRAM = "diagram"
    OEMBED = "oembed"

    @classmethod
    def parse(cls, value: str) -> "NodeKind":
        """Case-insensitive lookup; unknown kinds fall back to card."""
        try:
            return cls(value.lower())
        except ValueError:
            return cls.CARD


class ArrowKind(str, Enum):
    """Arrow head style for edges."""
    DEFAULT = "default"
    NONE = "none"


class Payload(BaseModel):
    """Base for kind-specific payloads; unknown keys are preserved."""
    model_config = ConfigDict(extra="allow")


class NodeStyle(Payload):
    """Node style properties."""
    stroke: str | None = None
    fill: str | None = None
    border: str | None = None


class EdgeStyle(Payload):
    """Edge style properties."""
    stroke: str | None = None
    dashed: bool | None = None
    arrow: ArrowKind | None = None


class CodeMeta(Payload):
    """Code block metadata."""
    language: str | None = None
    detected_language: str | None = None
    content: str | None = None


class MediaMeta(Payload):
    """Media (image/video/audio) metadata."""
    src: str
    alt: str | None = None
    poster: str | None = None
    duration: float | None = None
    blob_id: str | None = None


class DiagramMeta(Payload):
    """Nested diagram metadata."""
    title: str | None = None
    mermaidman: str | None = None  # raw text of the nested document


class Node(BaseModel):
    """Node in the diagram graph."""
    uid: str = Field(default_factory=new_uid)
    mermaid_id: str
    label: str | None = None
    x: float | None = None
    y: float | None = None
    kind: NodeKind = NodeKind.CARD
    style: NodeStyle | None = None
    code: CodeMeta | None = None
    media: MediaMeta | None = None
    diagram: DiagramMeta | None = None
    markdown: str | None = None
    meta: Any = None
    deleted: bool = False
    updated_at: int | None = Field(default_factory=now_ms)

    def touch(self):
        self.updated_at = now_ms()


class Edge(BaseModel):
    """Edge in the diagram graph."""
    eid: str = Field(default_factory=new_eid)
    source: str
    target: str
    label: str | None = None
    style: EdgeStyle | None = None
    meta: Any = None
    deleted: bool = False
    updated_at: int | None = Field(default_factory=now_ms)

    def touch(self):
        self.updated_at = now_ms()
