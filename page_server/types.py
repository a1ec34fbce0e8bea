"""
Page Server data types

Snapshot nodes (a flat, tagged sequence), page descriptors returned over
the wire, and the in-process Snapshot / ElementRef bookkeeping.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class SessionState(str, Enum):
    """Lifecycle of a named page"""
    ACTIVE = "active"
    CLOSED = "closed"


class RecordKind(str, Enum):
    """Record kinds emitted by the in-page extraction script"""
    ELEMENT = "element"
    CLOSE = "close"
    TEXT = "text"
    SHADOW = "shadow"
    SHADOW_END = "shadow_end"


class MarkerType(str, Enum):
    """Boundary markers in a snapshot"""
    SCROLL = "scroll"
    IFRAME = "iframe"
    SHADOW_ROOT = "shadow-root"


class ElementNode(BaseModel):
    """Indexed interactive element"""
    kind: Literal["element"] = "element"
    index: int = Field(..., description="1-based index within the snapshot")
    tag: str = Field(..., description="Lower-case tag name")
    attributes: Dict[str, str] = Field(default_factory=dict, description="Allow-listed attributes, in render order")
    text: str = Field("", description="Bounded inner text")


class MarkerNode(BaseModel):
    """Scroll container, iframe or shadow-root boundary"""
    kind: Literal["marker"] = "marker"
    marker: MarkerType
    closing: bool = False
    mode: Optional[str] = Field(None, description="Shadow root mode (open/closed)")
    src: Optional[str] = Field(None, description="Iframe source")
    scroll_top: Optional[int] = None
    scroll_left: Optional[int] = None
    more: List[str] = Field(default_factory=list, description="Directions with more content")


class TextNode(BaseModel):
    """Plain text run"""
    kind: Literal["text"] = "text"
    text: str


Node = Union[ElementNode, MarkerNode, TextNode]


class PageInfo(BaseModel):
    """Descriptor of a named page returned to clients"""
    name: str
    url: str = ""
    title: Optional[str] = None
    created_at: float
    state: SessionState = SessionState.ACTIVE


@dataclass
class ElementRef:
    """Borrowed pointer to an element slot in a frame's in-page table"""
    frame: Any
    key: int
    parent: Optional["ElementRef"] = None

    def chain(self) -> List["ElementRef"]:
        """Enclosing iframe refs first, this ref last"""
        refs: List[ElementRef] = []
        current: Optional[ElementRef] = self
        while current is not None:
            refs.append(current)
            current = current.parent
        refs.reverse()
        return refs


@dataclass
class Snapshot:
    """Point-in-time summary of one page"""
    generation: int
    page: Any
    url: str
    nodes: List[Node]
    refs: Dict[int, ElementRef]
    text: str
    created_at: float = field(default_factory=time.time)

    @property
    def element_count(self) -> int:
        return len(self.refs)

    def element(self, index: int) -> Optional[ElementNode]:
        for node in self.nodes:
            if isinstance(node, ElementNode) and node.index == index:
                return node
        return None
