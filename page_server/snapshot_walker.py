"""
Snapshot Walker

Turns a live page into a flat, indexed text tree of its interactive
elements. An in-page script emits a document-ordered record stream for one
frame and remembers every visited element under a key; the walker
classifies the records, numbers interactive elements with one counter
shared across frames and shadow roots, and keeps index -> element refs so a
later call can synthesize selectors.
"""

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError

from .config import SnapshotConfig
from .element_classifier import ElementClassifier
from .errors import NotReadyError
from .types import (
    ElementNode, ElementRef, MarkerNode, MarkerType, Node, RecordKind,
    Snapshot, TextNode
)


def _extract_dom_js() -> str:
    # Walks one frame's document; records are consumed by SnapshotWalker._walk_frame
    return r"""
(args) => {
  const doc = document;
  if (!doc || !doc.documentElement) return null;

  const store = { generation: args.generation, elements: [] };
  window.__pageServerRefs = store;
  const shadowModes = window.__pageServerShadowModes;

  const SKIP = new Set(['script', 'style', 'noscript', 'template', 'head']);
  const HANDLERS = ['onclick', 'onmousedown', 'onmouseup', 'onkeydown', 'onkeyup', 'onkeypress'];
  const NO_LIVE_VALUE = ['checkbox', 'radio', 'submit', 'button', 'reset', 'image', 'file', 'hidden', 'password'];
  const records = [];

  const squash = (s) => (s || '').replace(/\s+/g, ' ').trim();
  const clip = (s) => (s.length > args.maxValue ? s.slice(0, args.maxValue) : s);

  const attributesOf = (el, tag) => {
    const out = {};
    for (const attr of Array.from(el.attributes)) out[attr.name] = clip(attr.value);
    if (tag === 'input' || tag === 'textarea' || tag === 'select') {
      const type = (el.getAttribute('type') || '').toLowerCase();
      if (type === 'password') delete out.value;
      else if (!NO_LIVE_VALUE.includes(type) && typeof el.value === 'string' && el.value !== '') out.value = clip(el.value);
    }
    return out;
  };

  const hasHandler = (el) => HANDLERS.some((h) => el.hasAttribute(h) || typeof el[h] === 'function');

  const scrollOf = (el, style) => {
    const isRoot = el === doc.scrollingElement;
    const scrollable = (v) => v === 'auto' || v === 'scroll' || v === 'overlay';
    const viewH = isRoot ? window.innerHeight : el.clientHeight;
    const viewW = isRoot ? window.innerWidth : el.clientWidth;
    const canY = (isRoot ? style.overflowY !== 'hidden' : scrollable(style.overflowY)) && el.scrollHeight > viewH + 1;
    const canX = (isRoot ? style.overflowX !== 'hidden' : scrollable(style.overflowX)) && el.scrollWidth > viewW + 1;
    if (!canY && !canX) return null;
    const top = Math.round(isRoot ? window.scrollY : el.scrollTop);
    const left = Math.round(isRoot ? window.scrollX : el.scrollLeft);
    const more = [];
    if (canY && top > 0) more.push('up');
    if (canY && top + viewH < el.scrollHeight - 1) more.push('down');
    if (canX && left > 0) more.push('left');
    if (canX && left + viewW < el.scrollWidth - 1) more.push('right');
    return { top, left, more };
  };

  const walkChildren = (parent) => {
    for (const child of Array.from(parent.childNodes)) {
      if (child.nodeType === Node.TEXT_NODE) {
        const text = squash(child.nodeValue);
        if (text) records.push({ kind: 'text', text });
      } else if (child.nodeType === Node.ELEMENT_NODE) {
        visit(child);
      }
    }
  };

  const visit = (el) => {
    if (!el.isConnected) return;
    const tag = el.tagName.toLowerCase();
    if (SKIP.has(tag)) return;
    const style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden') return;

    store.elements.push(el);
    const key = store.elements.length - 1;
    const record = { kind: 'element', key, tag, attributes: attributesOf(el, tag), handler: hasHandler(el) };
    const scroll = scrollOf(el, style);
    if (scroll) record.scroll = scroll;

    if (tag === 'iframe' || tag === 'frame') {
      record.frame = true;
      records.push(record);
      records.push({ kind: 'close', key });
      return;
    }

    records.push(record);
    if (el.shadowRoot) {
      records.push({ kind: 'shadow', mode: el.shadowRoot.mode });
      walkChildren(el.shadowRoot);
      records.push({ kind: 'shadow_end' });
    } else if (shadowModes && shadowModes.get(el) === 'closed') {
      records.push({ kind: 'shadow', mode: 'closed' });
      records.push({ kind: 'shadow_end' });
    }
    walkChildren(el);
    records.push({ kind: 'close', key });
  };

  visit(doc.documentElement);
  return { url: location.href, records };
}
"""


def _element_by_key_js() -> str:
    return "(key) => (window.__pageServerRefs && window.__pageServerRefs.elements[key]) || null"


@dataclass
class _OpenElement:
    """An element whose close record has not been seen yet"""
    record: Dict[str, Any]
    node: Optional[ElementNode] = None
    scroll: bool = False
    texts: List[str] = field(default_factory=list)


@dataclass
class _WalkState:
    """Shared across every frame of one snapshot"""
    generation: int
    nodes: List[Node] = field(default_factory=list)
    refs: Dict[int, ElementRef] = field(default_factory=dict)
    last_index: int = 0

    def next_index(self) -> int:
        self.last_index += 1
        return self.last_index


class SnapshotWalker:
    """Builds Snapshots of live pages"""

    def __init__(self, config: Optional[SnapshotConfig] = None,
                 classifier: Optional[ElementClassifier] = None):
        self.config = config or SnapshotConfig()
        self.classifier = classifier or ElementClassifier(self.config)
        self.logger = logging.getLogger("SnapshotWalker")

        # Generations tag the in-page ref tables so superseded snapshots are detectable
        self._generations = itertools.count(1)

    async def snapshot(self, page: Any) -> Snapshot:
        """Walk the page (frames and shadow roots included) into a Snapshot"""
        start_time = time.time()
        state = _WalkState(generation=next(self._generations))

        try:
            await self._walk_frame(page.main_frame, None, state)
        except PlaywrightError as e:
            if page.is_closed():
                raise
            raise NotReadyError(f"Page is not ready for a snapshot: {e}") from e

        snapshot = Snapshot(
            generation=state.generation,
            page=page,
            url=page.url,
            nodes=state.nodes,
            refs=state.refs,
            text=self.serialize(state.nodes),
        )

        elapsed_time = time.time() - start_time
        self.logger.info(f"Snapshot {snapshot.generation} of {snapshot.url}: "
                         f"{snapshot.element_count} interactive, {len(state.nodes)} nodes in {elapsed_time:.3f}s")
        return snapshot

    async def _walk_frame(self, frame: Any, parent_ref: Optional[ElementRef], state: _WalkState) -> None:
        args = {"generation": state.generation, "maxValue": self.config.max_attribute_length * 4}

        if parent_ref is None:
            payload = await frame.evaluate(_extract_dom_js(), args)
            if payload is None:
                raise NotReadyError("Page has no attached document")
        else:
            try:
                payload = await frame.evaluate(_extract_dom_js(), args)
            except PlaywrightError as e:
                self.logger.warning(f"Skipping frame {getattr(frame, 'url', '')}: {e}")
                return
            if payload is None:
                return

        open_elements: List[_OpenElement] = []
        for record in payload.get("records", []):
            kind = RecordKind(record["kind"])

            if kind is RecordKind.TEXT:
                owner = self._innermost_interactive(open_elements)
                if owner is not None:
                    owner.texts.append(record["text"])
                else:
                    state.nodes.append(TextNode(text=record["text"]))

            elif kind is RecordKind.ELEMENT:
                entry = await self._open_element(frame, parent_ref, record, state)
                open_elements.append(entry)

            elif kind is RecordKind.CLOSE:
                if open_elements:
                    self._close_element(open_elements.pop(), state)

            elif kind is RecordKind.SHADOW:
                state.nodes.append(MarkerNode(marker=MarkerType.SHADOW_ROOT, mode=record.get("mode")))

            elif kind is RecordKind.SHADOW_END:
                state.nodes.append(MarkerNode(marker=MarkerType.SHADOW_ROOT, closing=True))

        # Tolerate a truncated stream
        while open_elements:
            self._close_element(open_elements.pop(), state)

    async def _open_element(self, frame: Any, parent_ref: Optional[ElementRef],
                            record: Dict[str, Any], state: _WalkState) -> _OpenElement:
        entry = _OpenElement(record=record)

        scroll = record.get("scroll")
        if scroll:
            state.nodes.append(MarkerNode(
                marker=MarkerType.SCROLL,
                scroll_top=int(scroll.get("top", 0)),
                scroll_left=int(scroll.get("left", 0)),
                more=list(scroll.get("more") or []),
            ))
            entry.scroll = True

        if self.classifier.is_interactive(record):
            index = state.next_index()
            entry.node = ElementNode(index=index, tag=record["tag"])
            state.refs[index] = ElementRef(frame=frame, key=record["key"], parent=parent_ref)
            state.nodes.append(entry.node)

        if record.get("frame"):
            src = (record.get("attributes") or {}).get("src")
            state.nodes.append(MarkerNode(marker=MarkerType.IFRAME, src=src or None))
            child = await self._content_frame(frame, record["key"])
            if child is not None:
                frame_ref = ElementRef(frame=frame, key=record["key"], parent=parent_ref)
                await self._walk_frame(child, frame_ref, state)
            state.nodes.append(MarkerNode(marker=MarkerType.IFRAME, closing=True))

        return entry

    def _close_element(self, entry: _OpenElement, state: _WalkState) -> None:
        if entry.node is not None:
            text = " ".join(entry.texts)
            limit = self.config.max_text_length
            if len(text) > limit:
                text = text[:limit] + "..."
            entry.node.text = text
            entry.node.attributes = self.classifier.key_attributes(entry.record, has_text=bool(text))
        if entry.scroll:
            state.nodes.append(MarkerNode(marker=MarkerType.SCROLL, closing=True))

    @staticmethod
    def _innermost_interactive(open_elements: List[_OpenElement]) -> Optional[_OpenElement]:
        for entry in reversed(open_elements):
            if entry.node is not None:
                return entry
        return None

    async def _content_frame(self, frame: Any, key: int) -> Optional[Any]:
        handle = None
        try:
            handle = await frame.evaluate_handle(_element_by_key_js(), key)
            element = handle.as_element()
            if element is None:
                return None
            return await element.content_frame()
        except PlaywrightError as e:
            self.logger.warning(f"Skipping detached iframe: {e}")
            return None
        finally:
            # The child frame outlives the handle
            if handle is not None:
                try:
                    await handle.dispose()
                except PlaywrightError as e:
                    self.logger.debug(f"Iframe handle already gone: {e}")

    def serialize(self, nodes: List[Node]) -> str:
        """One line per node, indented by boundary depth"""
        lines: List[str] = []
        depth = 0
        for node in nodes:
            if isinstance(node, MarkerNode) and node.closing:
                depth = max(0, depth - 1)
            lines.append(self.config.indent * depth + render_node(node))
            if isinstance(node, MarkerNode) and not node.closing:
                depth += 1
        return "\n".join(lines)


def _quote(value: str) -> str:
    return value.replace('"', "&quot;")


def render_node(node: Node) -> str:
    if isinstance(node, ElementNode):
        attrs = "".join(f' {name}="{_quote(value)}"' for name, value in node.attributes.items())
        return f"[{node.index}]<{node.tag}{attrs}>{node.text}</{node.tag}>"

    if isinstance(node, MarkerNode):
        name = node.marker.value
        if node.closing:
            return f"[/{name}]"
        if node.marker is MarkerType.SCROLL:
            token = f"[scroll top={node.scroll_top} left={node.scroll_left}"
            if node.more:
                token += " more=" + ",".join(node.more)
            return token + "]"
        if node.marker is MarkerType.SHADOW_ROOT:
            return f"[shadow-root mode={node.mode or 'open'}]"
        if node.src:
            return f'[iframe src="{_quote(node.src)}"]'
        return "[iframe]"

    return node.text
