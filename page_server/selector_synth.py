"""
Selector Synthesizer

Resolves a snapshot index back to a selector. Candidates are generated in
priority order (stable identifier, tag/attribute combination, nth-of-type
path) and checked against the element's own document or shadow root.
The joined selector is then counted page-wide through Playwright; when it
matches more than one element the next candidate is tried.

Elements inside shadow roots get one segment per host joined with ``>>``;
elements inside iframes are reached through Playwright's frame-entering
selector, so the result can be handed to ``page.locator()`` as is.
"""

import itertools
import logging
import re
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError

from .config import SelectorConfig
from .errors import SelectorAmbiguousError, StaleReferenceError, UnknownIndexError
from .types import ElementRef, Snapshot

SHADOW_SEPARATOR = " >> "
FRAME_SEPARATOR = " >> internal:control=enter-frame >> "

_SIMPLE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


def _lookup_js() -> str:
    # Shared prelude: fetch the element for (generation, key) or report why not
    return r"""
  const store = window.__pageServerRefs;
  if (!store) return { status: 'stale', reason: 'page navigated since the snapshot' };
  if (store.generation !== args.generation) return { status: 'stale', reason: 'a newer snapshot replaced this one' };
  const el = store.elements[args.key];
  if (!el) return { status: 'stale', reason: 'element is not in the snapshot table' };
  if (!el.isConnected) return { status: 'stale', reason: 'element was removed from the document' };
"""


def _describe_js() -> str:
    return "(args) => {" + _lookup_js() + r"""
  const describe = (node) => {
    const attributes = {};
    for (const attr of Array.from(node.attributes)) attributes[attr.name] = attr.value;
    const tag = node.tagName.toLowerCase();
    let nth = 1;
    let sibling = node;
    while ((sibling = sibling.previousElementSibling)) {
      if (sibling.tagName.toLowerCase() === tag) nth += 1;
    }
    return { tag, attributes, nth };
  };
  const ancestors = [];
  let current = el.parentElement;
  while (current) {
    ancestors.push(describe(current));
    current = current.parentElement;
  }
  const root = el.getRootNode();
  let hostKey = null;
  if (root instanceof ShadowRoot) {
    hostKey = store.elements.indexOf(root.host);
    if (hostKey < 0) return { status: 'stale', reason: 'shadow host is not in the snapshot table' };
  }
  return { status: 'ok', element: describe(el), ancestors, hostKey };
}"""


def _match_js() -> str:
    return "(args) => {" + _lookup_js() + r"""
  const root = el.getRootNode();
  const found = [];
  for (let i = 0; i < args.candidates.length; i++) {
    let matches;
    try {
      matches = root.querySelectorAll(args.candidates[i]);
    } catch (e) {
      continue;
    }
    if (matches.length === 1 && matches[0] === el) found.push(i);
  }
  return found.length ? { status: 'ok', indices: found } : { status: 'ambiguous' };
}"""


def _escape_css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\a ")


def _attribute_selector(name: str, value: str) -> str:
    return f'[{name}="{_escape_css_string(value)}"]'


def _stable_selector(name: str, value: str) -> str:
    if name == "id" and _SIMPLE_IDENTIFIER.match(value):
        return f"#{value}"
    return _attribute_selector(name, value)


def _nth_of_type(description: Dict[str, Any]) -> str:
    return f"{description['tag']}:nth-of-type({int(description.get('nth', 1))})"


class SelectorSynthesizer:
    """Index -> unique selector against the live page"""

    def __init__(self, config: Optional[SelectorConfig] = None):
        self.config = config or SelectorConfig()
        self.logger = logging.getLogger("SelectorSynthesizer")

    async def resolve(self, snapshot: Optional[Snapshot], index: int) -> str:
        """Selector matching exactly the element ``index`` denotes"""
        if snapshot is None:
            raise UnknownIndexError(index, f"Index {index} cannot be resolved: no snapshot taken")
        ref = snapshot.refs.get(index)
        if ref is None:
            raise UnknownIndexError(index)

        node = snapshot.element(index)
        expected_tag = node.tag if node is not None else None

        # One option list per selector part, outermost first
        options: List[List[str]] = []
        separators: List[str] = []
        chain = ref.chain()
        for position, frame_ref in enumerate(chain):
            is_target = position == len(chain) - 1
            parts = await self._frame_parts(snapshot, index, frame_ref, expected_tag if is_target else None)
            for number, part in enumerate(parts):
                separators.append(FRAME_SEPARATOR if position and number == 0 else SHADOW_SEPARATOR)
                options.append(part)

        # The innermost part varies fastest, so the target's own candidates are tried first
        tried = 0
        last_count = 0
        for combination in itertools.product(*options):
            selector = combination[0] + "".join(
                separator + part for separator, part in zip(separators[1:], combination[1:])
            )
            if not self.config.verify_with_locator:
                self.logger.debug(f"Resolved index {index} -> {selector}")
                return selector

            tried += 1
            last_count = await snapshot.page.locator(selector).count()
            if last_count == 1:
                self.logger.debug(f"Resolved index {index} -> {selector} ({tried} page-wide checks)")
                return selector
            self.logger.debug(f"Selector for index {index} matched {last_count} elements page-wide: {selector}")
            if tried >= self.config.max_locator_checks:
                break

        self.logger.warning(f"No selector for index {index} is unique page-wide after {tried} checks")
        raise SelectorAmbiguousError(
            index, tried=tried,
            detail=f"No selector for index {index} is unique page-wide ({tried} tried, last matched {last_count})"
        )

    async def _frame_parts(self, snapshot: Snapshot, index: int, ref: ElementRef,
                           expected_tag: Optional[str]) -> List[List[str]]:
        """Root-unique candidates for the element and each shadow host above it, outermost first"""
        parts: List[List[str]] = []
        key: Optional[int] = ref.key
        while key is not None:
            args = {"generation": snapshot.generation, "key": key}
            description = await self._evaluate(ref.frame, _describe_js(), args, index)

            if expected_tag is not None and not parts and description["element"]["tag"] != expected_tag:
                raise StaleReferenceError(index, "element no longer matches the snapshot")

            candidates = self.candidates(description["element"], description.get("ancestors") or [])
            result = await self._evaluate(ref.frame, _match_js(), dict(args, candidates=candidates), index)
            if result.get("status") != "ok" or not result.get("indices"):
                raise SelectorAmbiguousError(index, tried=len(candidates))

            parts.append([candidates[int(i)] for i in result["indices"]])
            key = description.get("hostKey")

        parts.reverse()
        return parts

    async def _evaluate(self, frame: Any, script: str, args: Dict[str, Any], index: int) -> Dict[str, Any]:
        if frame.is_detached():
            raise StaleReferenceError(index, "frame was detached")
        try:
            result = await frame.evaluate(script, args)
        except PlaywrightError as e:
            raise StaleReferenceError(index, f"frame context is gone ({e})") from e
        if not result or result.get("status") == "stale":
            raise StaleReferenceError(index, (result or {}).get("reason", "element is gone"))
        return result

    def candidates(self, element: Dict[str, Any], ancestors: List[Dict[str, Any]]) -> List[str]:
        """Candidate selectors in priority order, no duplicates"""
        tag = element["tag"]
        attributes = element.get("attributes") or {}
        found: List[str] = []

        # 1. Stable identifiers
        for name in self.config.stable_attributes:
            value = attributes.get(name)
            if value:
                found.append(_stable_selector(name, value))

        # 2. Tag and attribute combinations
        found.append(tag)
        combination: List[str] = []
        for name in self.config.combination_attributes:
            value = attributes.get(name)
            if value is None:
                continue
            piece = _attribute_selector(name, value)
            found.append(tag + piece)
            combination.append(piece)
        if len(combination) > 1:
            found.append(tag + "".join(combination))

        # 3. nth-of-type chains: from the nearest identifiable ancestor, then from the root
        path = [_nth_of_type(element)]
        for ancestor in ancestors:
            anchor = self._anchor(ancestor)
            if anchor is not None:
                found.append(" > ".join([anchor] + list(reversed(path))))
                break
            path.append(_nth_of_type(ancestor))
        full_path = [_nth_of_type(element)] + [_nth_of_type(a) for a in ancestors]
        found.append(" > ".join(reversed(full_path)))

        return list(dict.fromkeys(found))

    def _anchor(self, description: Dict[str, Any]) -> Optional[str]:
        attributes = description.get("attributes") or {}
        for name in self.config.stable_attributes:
            value = attributes.get(name)
            if value:
                return _stable_selector(name, value)
        return None
