"""
Shared fakes for page server tests

Stand-ins for the Playwright page/frame surface the server touches, so the
registry, walker and synthesizer can be exercised without a browser.
"""

import asyncio
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest

from page_server.config import PageServerConfig
from page_server.selector_synth import _describe_js, _match_js
from page_server.snapshot_walker import _element_by_key_js, _extract_dom_js


# Record builders for the in-page extraction stream

def element(key: int, tag: str, attributes: Optional[Dict[str, str]] = None, **extra: Any) -> Dict[str, Any]:
    record = {"kind": "element", "key": key, "tag": tag, "attributes": attributes or {}, "handler": False}
    record.update(extra)
    return record


def close(key: int) -> Dict[str, Any]:
    return {"kind": "close", "key": key}


def text(value: str) -> Dict[str, Any]:
    return {"kind": "text", "text": value}


def shadow(mode: str = "open") -> Dict[str, Any]:
    return {"kind": "shadow", "mode": mode}


def shadow_end() -> Dict[str, Any]:
    return {"kind": "shadow_end"}


def document(*body: Dict[str, Any], url: str = "https://example.test/") -> Dict[str, Any]:
    """html/body wrapper around body records (keys 0 and 1 are reserved)"""
    return {"url": url, "records": [element(0, "html"), element(1, "body"), *body, close(1), close(0)]}


class FakeElementHandle:
    def __init__(self, child: Optional["FakeFrame"]):
        self.child = child
        self.disposed = False

    def as_element(self) -> Optional["FakeElementHandle"]:
        return self if self.child is not None else None

    async def content_frame(self) -> Optional["FakeFrame"]:
        return self.child

    async def dispose(self) -> None:
        self.disposed = True


class FakeFrame:
    """Answers the walker and synthesizer scripts from canned data"""

    def __init__(self, payload: Any = None, url: str = "https://example.test/"):
        self.url = url
        # dict, None (no document) or an exception instance to raise
        self.payload = payload
        self.children: Dict[int, "FakeFrame"] = {}
        self.describe: Dict[int, Dict[str, Any]] = {}
        # key -> candidate(s) unique within their root; missing key means only the first
        self.unique: Dict[int, Any] = {}
        self.generation: Optional[int] = None
        self.detached = False
        self.evaluations: List[str] = []
        self.handles: List[FakeElementHandle] = []

    def is_detached(self) -> bool:
        return self.detached

    def navigated(self) -> None:
        """Drop the in-page ref table, as a navigation would"""
        self.generation = None

    async def evaluate(self, script: str, args: Any = None) -> Any:
        if script == _extract_dom_js():
            self.evaluations.append("extract")
            if isinstance(self.payload, Exception):
                raise self.payload
            if self.payload is not None:
                self.generation = args["generation"]
            return self.payload

        if script == _describe_js():
            self.evaluations.append("describe")
            stale = self._stale(args)
            if stale:
                return stale
            return self.describe[args["key"]]

        if script == _match_js():
            self.evaluations.append("match")
            stale = self._stale(args)
            if stale:
                return stale
            candidates = args["candidates"]
            wanted = self.unique.get(args["key"], candidates[0])
            if isinstance(wanted, str):
                wanted = [wanted]
            indices = [i for i, candidate in enumerate(candidates) if candidate in wanted]
            if not indices:
                return {"status": "ambiguous"}
            return {"status": "ok", "indices": indices}

        raise AssertionError(f"unexpected script: {script[:40]}")

    async def evaluate_handle(self, script: str, key: int) -> FakeElementHandle:
        assert script == _element_by_key_js()
        handle = FakeElementHandle(self.children.get(key))
        self.handles.append(handle)
        return handle

    def _stale(self, args: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if self.generation is None:
            return {"status": "stale", "reason": "page navigated since the snapshot"}
        if self.generation != args["generation"]:
            return {"status": "stale", "reason": "a newer snapshot replaced this one"}
        return None


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector

    async def count(self) -> int:
        return self.page.locator_counts.get(self.selector, 1)

    async def click(self, timeout: Optional[int] = None) -> None:
        self.page.calls.append(("click", self.selector))

    async def fill(self, value: str, timeout: Optional[int] = None) -> None:
        self.page.calls.append(("fill", self.selector, value))


class FakePage:
    """Subset of playwright.async_api.Page"""

    def __init__(self, main_frame: Optional[FakeFrame] = None, fail_close: bool = False):
        self.main_frame = main_frame or FakeFrame()
        self.url = "about:blank"
        self.fail_close = fail_close
        self.locator_counts: Dict[str, int] = {}
        self.calls: List[Any] = []
        self.viewport: Optional[Dict[str, int]] = None
        self._closed = False
        self._handlers: Dict[str, List[Callable[..., Any]]] = {}

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def is_closed(self) -> bool:
        return self._closed

    def _emit_close(self) -> None:
        self._closed = True
        for handler in self._handlers.get("close", []):
            handler(self)

    async def close(self) -> None:
        if self.fail_close:
            raise RuntimeError("target crashed")
        if not self._closed:
            self._emit_close()

    def crash(self) -> None:
        """The browser closes the tab on its own"""
        self._emit_close()

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[int] = None) -> Any:
        self.calls.append(("goto", url))
        self.url = url
        self.main_frame.navigated()
        return SimpleNamespace(status=200)

    async def title(self) -> str:
        return f"Title of {self.url}"

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.calls.append(("evaluate", expression))
        return {"expression": expression, "arg": arg}

    async def screenshot(self, path: str, full_page: bool = False) -> bytes:
        self.calls.append(("screenshot", path, full_page))
        return b""

    async def wait_for_load_state(self, state: str, timeout: Optional[int] = None) -> None:
        self.calls.append(("load_state", state))

    async def wait_for_selector(self, selector: str, state: str = "visible", timeout: Optional[int] = None) -> None:
        self.calls.append(("wait_for_selector", selector, state))

    async def wait_for_timeout(self, timeout: int) -> None:
        self.calls.append(("wait_for_timeout", timeout))


class FakeOwner:
    """BrowserOwner stand-in; pages come from a factory"""

    def __init__(self, factory: Optional[Callable[[], FakePage]] = None, delay: float = 0.0):
        self.factory = factory or FakePage
        self.delay = delay
        self.pages: List[FakePage] = []
        self.started = False
        self.stopped = False

    @property
    def is_running(self) -> bool:
        return self.started and not self.stopped

    async def new_page(self, viewport: Optional[Dict[str, int]] = None) -> FakePage:
        self.started = True
        if self.delay:
            await asyncio.sleep(self.delay)
        page = self.factory()
        page.viewport = viewport
        self.pages.append(page)
        return page

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def config() -> PageServerConfig:
    return PageServerConfig()


@pytest.fixture
def owner() -> FakeOwner:
    return FakeOwner()
