"""
Automation Server

Process-wide owner of the shared browser and the page registry. Exposes the
boundary operations (page lifecycle, snapshots, index resolution and
pass-through browser calls) independent of any transport.
"""

import logging
import os
import re
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .browser_owner import BrowserOwner
from .config import PageServerConfig
from .page_registry import PageRegistry, PageSession
from .selector_synth import SelectorSynthesizer
from .snapshot_walker import SnapshotWalker
from .types import PageInfo, Snapshot


class AutomationServer:
    """Named pages on one shared browser"""

    def __init__(self, config: Optional[PageServerConfig] = None, owner: Optional[BrowserOwner] = None):
        self.config = config or PageServerConfig()
        self.logger = logging.getLogger("AutomationServer")

        # The owner is injected so tests (and embedders) control the browser lifecycle
        self.owner = owner or BrowserOwner(self.config.browser)
        self.registry = PageRegistry(self.owner)
        self.walker = SnapshotWalker(self.config.snapshot)
        self.synthesizer = SelectorSynthesizer(self.config.selector)

    # Page lifecycle

    async def create_or_get_page(self, name: str, viewport: Optional[Dict[str, int]] = None) -> PageInfo:
        """Return the named page, creating it (and the browser) on first use"""
        session = await self.registry.get_or_create(name, viewport)
        return session.info()

    def list_pages(self) -> List[str]:
        return self.registry.list()

    async def close_page(self, name: str) -> None:
        await self.registry.close(name)

    async def page_info(self, name: str) -> PageInfo:
        session = self.registry.get(name)
        title = await self._run(session, "title", lambda page: page.title())
        return session.info(title=title)

    # Snapshots

    async def snapshot_page(self, name: str) -> Snapshot:
        """Take a fresh snapshot; it replaces the page's previous one"""
        session = self.registry.get(name)

        async def _take(page: Any) -> Snapshot:
            snapshot = await self.walker.snapshot(page)
            session.snapshot = snapshot
            return snapshot

        return await self._run(session, "snapshot", _take)

    async def resolve_index(self, name: str, index: int) -> str:
        """Selector for ``index`` in the page's latest snapshot"""
        session = self.registry.get(name)

        async def _resolve(_page: Any) -> str:
            return await self.synthesizer.resolve(session.snapshot, int(index))

        return await self._run(session, "resolve_index", _resolve)

    # Pass-through browser calls

    async def navigate(self, name: str, url: str, wait_until: str = "load",
                       timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        session = self.registry.get(name)

        async def _goto(page: Any) -> Dict[str, Any]:
            response = await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
            return {"url": page.url, "httpStatus": response.status if response else None}

        return await self._run(session, "navigate", _goto)

    async def click(self, name: str, selector: str, timeout_ms: Optional[int] = None) -> None:
        session = self.registry.get(name)
        await self._run(session, "click", lambda page: page.locator(selector).click(timeout=timeout_ms))

    async def fill(self, name: str, selector: str, value: str, timeout_ms: Optional[int] = None) -> None:
        session = self.registry.get(name)
        await self._run(session, "fill", lambda page: page.locator(selector).fill(value, timeout=timeout_ms))

    async def evaluate(self, name: str, expression: str, arg: Any = None) -> Any:
        session = self.registry.get(name)
        return await self._run(session, "evaluate", lambda page: page.evaluate(expression, arg))

    async def screenshot(self, name: str, path: Optional[str] = None, full_page: bool = False) -> str:
        """Write a PNG screenshot and return its path"""
        session = self.registry.get(name)
        if not path:
            out_dir = self.config.server.screenshot_dir
            os.makedirs(out_dir, exist_ok=True)
            safe_name = re.sub(r"[^A-Za-z0-9_-]", "_", name)
            path = os.path.join(out_dir, f"{safe_name}-{int(time.time() * 1000)}.png")

        await self._run(session, "screenshot", lambda page: page.screenshot(path=path, full_page=bool(full_page)))
        return path

    async def wait_for(self, name: str, selector: Optional[str] = None, state: str = "visible",
                       load_state: Optional[str] = None, timeout_ms: Optional[int] = None) -> None:
        """Wait for a selector state and/or a load state"""
        session = self.registry.get(name)

        async def _wait(page: Any) -> None:
            if load_state:
                await page.wait_for_load_state(load_state, timeout=timeout_ms)
            if selector:
                await page.wait_for_selector(selector, state=state, timeout=timeout_ms)
            if not load_state and not selector and timeout_ms:
                await page.wait_for_timeout(timeout_ms)

        await self._run(session, "wait_for", _wait)

    # Lifecycle

    @property
    def browser_running(self) -> bool:
        return self.owner.is_running

    async def shutdown(self) -> None:
        """Close every page, then the browser"""
        self.logger.info(f"Shutting down ({len(self.registry)} pages open)")
        await self.registry.close_all()
        try:
            await self.owner.stop()
        except Exception as e:
            self.logger.warning(f"Error stopping browser: {e}")

    async def _run(self, session: PageSession, operation: str,
                   action: Callable[[Any], Awaitable[Any]]) -> Any:
        try:
            return await session.run(action, operation)
        except Exception as e:
            self.logger.error(f"{operation} failed on page '{session.name}': {type(e).__name__}: {e}")
            raise
