"""
Page Registry

Maps page names to live browser pages. A name gets a page on first request,
the same page on every later request, and loses it only on explicit close,
server shutdown, or when the browser closes the tab itself.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, TypeVar

from .browser_owner import BrowserOwner
from .errors import InvalidPageNameError, NotFoundError, PageClosedError
from .page_worker import PageWorker
from .types import PageInfo, SessionState, Snapshot

T = TypeVar("T")


class PageSession:
    """One named page and the worker that serializes access to it"""

    def __init__(self, name: str, page: Any):
        self.name = name
        self.page = page
        self.created_at = time.time()
        self.state = SessionState.ACTIVE

        # Latest snapshot, needed to resolve indices afterwards
        self.snapshot: Optional[Snapshot] = None

        self._worker = PageWorker(name)
        self._worker.start()

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    async def run(self, operation: Callable[[Any], Awaitable[T]], label: str = "operation") -> T:
        """Run an operation against the page after everything queued before it"""
        return await self._worker.submit(lambda: operation(self.page), label)

    async def close(self) -> None:
        """Let queued work finish, then close the page"""
        try:
            await self._worker.submit(self._close_page, "close", final=True)
        except PageClosedError:
            pass
        finally:
            await self._worker.stop()

    async def release(self) -> None:
        """Forget a page that the browser already closed"""
        self.state = SessionState.CLOSED
        self.snapshot = None
        await self._worker.stop()

    async def _close_page(self) -> None:
        self.state = SessionState.CLOSED
        self.snapshot = None
        if not self.page.is_closed():
            await self.page.close()

    def info(self, title: Optional[str] = None) -> PageInfo:
        url = "" if self.page.is_closed() else self.page.url
        return PageInfo(name=self.name, url=url, title=title, created_at=self.created_at, state=self.state)


class PageRegistry:
    """Name -> PageSession table; sole owner of the page handles"""

    def __init__(self, owner: BrowserOwner):
        self.owner = owner
        self.logger = logging.getLogger("PageRegistry")

        # Insertion order is registration order
        self._sessions: Dict[str, PageSession] = {}
        # One creation task per name; concurrent first requests share it
        self._pending: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()

    def __contains__(self, name: str) -> bool:
        return name in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    @staticmethod
    def _validate(name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise InvalidPageNameError(f"Page name must be a non-empty string, got {name!r}")

    async def get_or_create(self, name: str, viewport: Optional[Dict[str, int]] = None) -> PageSession:
        """Return the live page for ``name``, creating it if needed"""
        self._validate(name)

        session = self._sessions.get(name)
        if session is not None:
            return session

        task = self._pending.get(name)
        if task is None:
            task = asyncio.create_task(self._create(name, viewport))
            self._pending[name] = task
            task.add_done_callback(lambda done: self._creation_done(name, done))

        # A cancelled caller leaves the page to be created and registered anyway
        return await asyncio.shield(task)

    async def _create(self, name: str, viewport: Optional[Dict[str, int]]) -> PageSession:
        page = await self.owner.new_page(viewport)
        session = PageSession(name, page)
        self._sessions[name] = session
        page.on("close", lambda _page: self._on_page_closed(session))

        self.logger.info(f"Created page '{name}' ({len(self._sessions)} registered)")
        return session

    def _creation_done(self, name: str, task: asyncio.Task) -> None:
        if self._pending.get(name) is task:
            del self._pending[name]
        if not task.cancelled() and task.exception() is not None:
            self.logger.warning(f"Creating page '{name}' failed: {task.exception()}")

    def get(self, name: str) -> PageSession:
        session = self._sessions.get(name)
        if session is None:
            raise NotFoundError(name)
        return session

    def list(self) -> List[str]:
        return list(self._sessions)

    async def close(self, name: str) -> None:
        """Close and unregister a page"""
        pending = self._pending.get(name)
        if pending is not None:
            await asyncio.wait([pending])

        session = self._sessions.pop(name, None)
        if session is None:
            raise NotFoundError(name)
        await session.close()
        self.logger.info(f"Closed page '{name}' ({len(self._sessions)} registered)")

    async def close_all(self) -> None:
        """Close every page; one failure does not stop the rest"""
        if self._pending:
            await asyncio.wait(list(self._pending.values()))

        for name in list(self._sessions):
            try:
                await self.close(name)
            except Exception as e:
                self.logger.warning(f"Error closing page '{name}' during shutdown: {e}")

        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _on_page_closed(self, session: PageSession) -> None:
        # Fired for our own close() too; by then the session is already unregistered
        if self._sessions.get(session.name) is not session:
            return
        del self._sessions[session.name]
        self.logger.warning(f"Page '{session.name}' was closed by the browser; unregistered")

        task = asyncio.create_task(session.release())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
