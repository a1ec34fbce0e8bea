"""
Browser Owner

Owns the single Playwright browser shared by every named page. The browser
runs as a persistent context so cookies and storage live in a profile
directory on disk, independent of page names and server restarts.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, TYPE_CHECKING

from playwright.async_api import async_playwright

from .config import BrowserConfig

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page, Playwright


def _shadow_mode_tracking_js() -> str:
    # Remembers closed shadow roots so snapshots can mark them without descending
    return r"""
(() => {
  if (window.__pageServerShadowModes) return;
  const modes = new WeakMap();
  Object.defineProperty(window, '__pageServerShadowModes', { value: modes, enumerable: false });
  const original = Element.prototype.attachShadow;
  Element.prototype.attachShadow = function (init) {
    const root = original.call(this, init);
    try { modes.set(this, (init && init.mode) || 'open'); } catch (e) {}
    return root;
  };
})();
"""


class BrowserOwner:
    """Lazily started, explicitly stopped shared browser"""

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self.logger = logging.getLogger("BrowserOwner")

        self._playwright: Optional["Playwright"] = None
        self._context: Optional["BrowserContext"] = None
        self._start_lock = asyncio.Lock()

        # Tabs the persistent context opened on its own at launch
        self._startup_pages: List["Page"] = []

    @property
    def is_running(self) -> bool:
        return self._context is not None

    async def ensure_started(self) -> "BrowserContext":
        """Launch the browser on first use and return its context"""
        async with self._start_lock:
            if self._context is not None:
                return self._context

            if self._playwright is not None:
                # Context died on its own; start over with a fresh driver
                await self._playwright.stop()
                self._playwright = None

            profile_dir = Path(self.config.profile_dir).expanduser()
            profile_dir.mkdir(parents=True, exist_ok=True)

            self.logger.info(f"Launching browser (headless={self.config.headless}) with profile {profile_dir}")
            self._playwright = await async_playwright().start()
            try:
                context = await self._playwright.chromium.launch_persistent_context(
                    str(profile_dir),
                    headless=self.config.headless,
                    channel=self.config.channel,
                    args=list(self.config.launch_args),
                    viewport={
                        "width": self.config.viewport_width,
                        "height": self.config.viewport_height,
                    },
                )
            except Exception:
                await self._playwright.stop()
                self._playwright = None
                raise

            context.set_default_timeout(self.config.default_timeout_ms)
            await context.add_init_script(script=_shadow_mode_tracking_js())
            context.on("close", self._on_context_closed)
            self._startup_pages = list(context.pages)
            self._context = context
            return context

    def _on_context_closed(self, context: "BrowserContext") -> None:
        if self._context is context:
            self._context = None
            self.logger.warning("Browser context closed; it will be relaunched on the next page request")

    async def new_page(self, viewport: Optional[Dict[str, int]] = None) -> "Page":
        """Open a new tab in the shared browser"""
        context = await self.ensure_started()
        page = await context.new_page()
        if viewport:
            await page.set_viewport_size({"width": int(viewport["width"]), "height": int(viewport["height"])})
        await self._close_startup_pages()
        return page

    async def _close_startup_pages(self) -> None:
        # Closed only once a page of ours exists, so the browser always keeps a tab
        pages, self._startup_pages = self._startup_pages, []
        for page in pages:
            if page.is_closed():
                continue
            try:
                await page.close()
            except Exception as e:
                self.logger.warning(f"Error closing startup tab: {e}")
        if pages:
            self.logger.debug(f"Closed {len(pages)} startup tab(s)")

    async def stop(self) -> None:
        """Close the browser; pages must already be closed by their owner"""
        async with self._start_lock:
            context, self._context = self._context, None
            self._startup_pages = []
            playwright, self._playwright = self._playwright, None

            if context is not None:
                try:
                    await context.close()
                except Exception as e:
                    self.logger.warning(f"Error closing browser context: {e}")
            if playwright is not None:
                await playwright.stop()
            self.logger.info("Browser stopped")
