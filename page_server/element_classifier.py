"""
Element Classifier

Decides which extracted elements are interactive and which of their
attributes are worth showing.

Policy, checked in table order:
  1. exclusions win (``<input type="hidden">``);
  2. native controls: ``a`` with ``href``, ``button``, ``input``, ``select``,
     ``textarea``;
  3. an interactive ARIA role;
  4. an inline or property event handler for click/keyboard input (best
     effort, only what the page exposes; can be switched off).
Everything else is structural.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import SnapshotConfig

Record = Dict[str, Any]
Predicate = Callable[[Record], bool]

NATIVE_INTERACTIVE_TAGS = frozenset({"button", "input", "select", "textarea"})

INTERACTIVE_ROLES = frozenset({
    'button', 'link', 'checkbox', 'radio', 'switch', 'textbox', 'searchbox',
    'combobox', 'listbox', 'option', 'menuitem', 'menuitemcheckbox',
    'menuitemradio', 'tab', 'slider', 'spinbutton', 'treeitem',
})

# Render order of captured attributes; id is handled separately
KEY_ATTRIBUTES = ('role', 'type', 'name', 'href', 'placeholder', 'value', 'aria-label')


def _attr(record: Record, name: str) -> Optional[str]:
    return (record.get("attributes") or {}).get(name)


def _role(record: Record) -> str:
    return (_attr(record, "role") or "").strip().lower()


def _is_hidden_input(record: Record) -> bool:
    return record.get("tag") == "input" and (_attr(record, "type") or "").lower() == "hidden"


def _is_link(record: Record) -> bool:
    return record.get("tag") == "a" and _attr(record, "href") is not None


def _is_native_control(record: Record) -> bool:
    return record.get("tag") in NATIVE_INTERACTIVE_TAGS


def _has_interactive_role(record: Record) -> bool:
    # role="button link" is valid ARIA; the first recognised token counts
    return any(token in INTERACTIVE_ROLES for token in _role(record).split())


def _has_handler(record: Record) -> bool:
    return bool(record.get("handler"))


EXCLUSIONS: List[Tuple[str, Predicate]] = [
    ("hidden-input", _is_hidden_input),
]

INTERACTIVE_PREDICATES: List[Tuple[str, Predicate]] = [
    ("link", _is_link),
    ("native-control", _is_native_control),
    ("aria-role", _has_interactive_role),
    ("handler", _has_handler),
]


class ElementClassifier:
    """Predicate-table classifier over extracted element records"""

    def __init__(self, config: Optional[SnapshotConfig] = None):
        self.config = config or SnapshotConfig()

    def interactive_reason(self, record: Record) -> Optional[str]:
        """Name of the first matching rule, or None for structural elements"""
        for _name, predicate in EXCLUSIONS:
            if predicate(record):
                return None
        for name, predicate in INTERACTIVE_PREDICATES:
            if name == "handler" and not self.config.detect_handlers:
                continue
            if predicate(record):
                return name
        return None

    def is_interactive(self, record: Record) -> bool:
        return self.interactive_reason(record) is not None

    def key_attributes(self, record: Record, has_text: bool) -> Dict[str, str]:
        """Allow-listed attributes in render order, values bounded"""
        attributes = record.get("attributes") or {}
        limit = self.config.max_attribute_length
        selected: Dict[str, str] = {}

        for name in KEY_ATTRIBUTES:
            value = attributes.get(name)
            if value is None:
                continue
            selected[name] = _bounded(value, limit)

        # id only when nothing else tells the element apart
        if not selected and not has_text and attributes.get("id"):
            selected["id"] = _bounded(attributes["id"], limit)

        return selected


def _bounded(value: str, limit: int) -> str:
    value = " ".join(str(value).split())
    if len(value) > limit:
        return value[:limit] + "..."
    return value
