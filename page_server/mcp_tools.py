"""
MCP tools for the Page Server

Dict-returning wrappers around AutomationServer. Every tool answers with
``{"status": "ok", ...}`` or an error payload naming the exception type,
the operation and the page, so one failed call never takes the server down.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .automation_server import AutomationServer

# Exception attributes copied into error payloads
ERROR_DETAIL_FIELDS = ("index", "reason", "tried")


class MCPPageTools:
    """MCP-facing operations on named pages"""

    def __init__(self, server: AutomationServer):
        self.server = server
        self.logger = logging.getLogger("MCPPageTools")

        # Usage counters
        self._usage_stats = {
            'total_calls': 0,
            'successful_calls': 0,
            'failed_calls': 0
        }

    def tool_functions(self) -> List[Callable[..., Awaitable[Dict[str, Any]]]]:
        """Bound methods to register as MCP tools"""
        return [
            self.create_or_get_page,
            self.list_pages,
            self.close_page,
            self.snapshot_page,
            self.resolve_index,
            self.navigate,
            self.click,
            self.fill,
            self.evaluate,
            self.screenshot,
            self.wait_for,
            self.page_info,
            self.server_status,
        ]

    async def _call(self, operation: str, page: Optional[str],
                    action: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        self._usage_stats['total_calls'] += 1
        try:
            payload = await action()
        except Exception as e:
            self._usage_stats['failed_calls'] += 1
            self.logger.error(f"Tool {operation} failed (page={page!r}): {type(e).__name__}: {e}")
            payload = {
                "status": "error",
                "error": str(e),
                "error_type": type(e).__name__,
                "operation": operation,
                "page": page,
            }
            details = {key: getattr(e, key) for key in ERROR_DETAIL_FIELDS if hasattr(e, key)}
            if details:
                payload["details"] = details
            return payload
        self._usage_stats['successful_calls'] += 1
        return {"status": "ok", **payload}

    async def create_or_get_page(self, name: str, width: Optional[int] = None,
                                 height: Optional[int] = None) -> Dict[str, Any]:
        """Get the page registered under `name`, creating it if needed. Optional width/height apply on creation only."""
        async def _action() -> Dict[str, Any]:
            viewport = {"width": width, "height": height} if width and height else None
            info = await self.server.create_or_get_page(name, viewport)
            return {"page": info.model_dump(mode="json")}
        return await self._call("create_or_get_page", name, _action)

    async def list_pages(self) -> Dict[str, Any]:
        """List registered page names in creation order."""
        async def _action() -> Dict[str, Any]:
            return {"pages": self.server.list_pages()}
        return await self._call("list_pages", None, _action)

    async def close_page(self, name: str) -> Dict[str, Any]:
        """Close the page registered under `name`."""
        async def _action() -> Dict[str, Any]:
            await self.server.close_page(name)
            return {"closed": name}
        return await self._call("close_page", name, _action)

    async def snapshot_page(self, name: str) -> Dict[str, Any]:
        """Indexed text tree of the page's interactive elements. Indices are valid until the next snapshot or navigation."""
        async def _action() -> Dict[str, Any]:
            snapshot = await self.server.snapshot_page(name)
            return {
                "snapshot": snapshot.text,
                "generation": snapshot.generation,
                "url": snapshot.url,
                "interactive_count": snapshot.element_count,
            }
        return await self._call("snapshot_page", name, _action)

    async def resolve_index(self, name: str, index: int) -> Dict[str, Any]:
        """Unique selector for an index from the page's latest snapshot."""
        async def _action() -> Dict[str, Any]:
            return {"selector": await self.server.resolve_index(name, index), "index": index}
        return await self._call("resolve_index", name, _action)

    async def navigate(self, name: str, url: str, wait_until: str = "load",
                       timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        """Navigate the page to `url`."""
        async def _action() -> Dict[str, Any]:
            return await self.server.navigate(name, url, wait_until=wait_until, timeout_ms=timeout_ms)
        return await self._call("navigate", name, _action)

    async def click(self, name: str, selector: str, timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        """Click the element matching `selector`."""
        async def _action() -> Dict[str, Any]:
            await self.server.click(name, selector, timeout_ms=timeout_ms)
            return {"performed": "click", "selector": selector}
        return await self._call("click", name, _action)

    async def fill(self, name: str, selector: str, value: str,
                   timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        """Fill the input matching `selector` with `value`."""
        async def _action() -> Dict[str, Any]:
            await self.server.fill(name, selector, value, timeout_ms=timeout_ms)
            return {"performed": "fill", "selector": selector, "textLen": len(value)}
        return await self._call("fill", name, _action)

    async def evaluate(self, name: str, expression: str, arg: Any = None) -> Dict[str, Any]:
        """Evaluate a JavaScript expression or function in the page and return its JSON result."""
        async def _action() -> Dict[str, Any]:
            return {"result": await self.server.evaluate(name, expression, arg)}
        return await self._call("evaluate", name, _action)

    async def screenshot(self, name: str, full_page: bool = False,
                         path: Optional[str] = None) -> Dict[str, Any]:
        """Save a PNG screenshot and return its local path."""
        async def _action() -> Dict[str, Any]:
            return {"path": await self.server.screenshot(name, path=path, full_page=full_page)}
        return await self._call("screenshot", name, _action)

    async def wait_for(self, name: str, selector: Optional[str] = None, state: str = "visible",
                       load_state: Optional[str] = None, timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        """Wait for a selector state (visible/hidden/attached/detached) and/or a load state (load/domcontentloaded/networkidle)."""
        async def _action() -> Dict[str, Any]:
            await self.server.wait_for(name, selector=selector, state=state,
                                       load_state=load_state, timeout_ms=timeout_ms)
            return {"selector": selector, "load_state": load_state}
        return await self._call("wait_for", name, _action)

    async def page_info(self, name: str) -> Dict[str, Any]:
        """URL, title and lifecycle state of a page."""
        async def _action() -> Dict[str, Any]:
            info = await self.server.page_info(name)
            return {"page": info.model_dump(mode="json")}
        return await self._call("page_info", name, _action)

    async def server_status(self) -> Dict[str, Any]:
        """Browser state, open pages and call counters."""
        async def _action() -> Dict[str, Any]:
            return {
                "browser_running": self.server.browser_running,
                "pages": self.server.list_pages(),
                "usage": dict(self._usage_stats),
            }
        return await self._call("server_status", None, _action)

    async def shutdown(self) -> None:
        await self.server.shutdown()
