"""
Page Server client

Thin proxy used by scripts: connects over MCP streamable HTTP, calls page
tools and turns error payloads back into the matching exceptions.
Disconnecting never closes pages; they stay on the server.
"""

import json
from contextlib import AsyncExitStack
from typing import Any, Callable, Dict, List, Optional

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import TextContent

from .errors import (
    InvalidPageNameError, NotFoundError, NotReadyError, PageClosedError,
    RemoteOperationError, SelectorAmbiguousError, StaleReferenceError,
    UnknownIndexError
)

DEFAULT_URL = "http://127.0.0.1:9224/mcp"

_ERROR_FACTORIES: Dict[str, Callable[[Dict[str, Any]], Exception]] = {
    "NotFoundError": lambda p: NotFoundError(p.get("page") or "", p.get("error", "")),
    "PageClosedError": lambda p: PageClosedError(p.get("page") or ""),
    "InvalidPageNameError": lambda p: InvalidPageNameError(p.get("error", "")),
    "NotReadyError": lambda p: NotReadyError(p.get("error", "")),
    "UnknownIndexError": lambda p: UnknownIndexError(_detail(p, "index", -1), p.get("error", "")),
    "StaleReferenceError": lambda p: StaleReferenceError(_detail(p, "index", -1), _detail(p, "reason", "")),
    "SelectorAmbiguousError": lambda p: SelectorAmbiguousError(
        _detail(p, "index", -1), _detail(p, "tried", 0), p.get("error", "")
    ),
}


def _detail(payload: Dict[str, Any], key: str, default: Any) -> Any:
    return (payload.get("details") or {}).get(key, default)


def raise_for_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return an ok payload, raise the mapped exception for an error payload"""
    if payload.get("status") == "ok":
        return payload

    error_type = payload.get("error_type") or "UnknownError"
    factory = _ERROR_FACTORIES.get(error_type)
    if factory is not None:
        raise factory(payload)
    raise RemoteOperationError(
        error_type,
        payload.get("error", ""),
        operation=payload.get("operation") or "",
        page=payload.get("page") or "",
    )


class RemotePage:
    """Proxy for one named page on the server"""

    def __init__(self, client: "PageServerClient", name: str, info: Optional[Dict[str, Any]] = None):
        self.client = client
        self.name = name
        self.info = info or {}

    async def navigate(self, url: str, wait_until: str = "load", timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        return await self.client.call("navigate", name=self.name, url=url,
                                      wait_until=wait_until, timeout_ms=timeout_ms)

    async def click(self, selector: str, timeout_ms: Optional[int] = None) -> None:
        await self.client.call("click", name=self.name, selector=selector, timeout_ms=timeout_ms)

    async def fill(self, selector: str, value: str, timeout_ms: Optional[int] = None) -> None:
        await self.client.call("fill", name=self.name, selector=selector, value=value, timeout_ms=timeout_ms)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        payload = await self.client.call("evaluate", name=self.name, expression=expression, arg=arg)
        return payload.get("result")

    async def screenshot(self, full_page: bool = False, path: Optional[str] = None) -> str:
        payload = await self.client.call("screenshot", name=self.name, full_page=full_page, path=path)
        return payload["path"]

    async def wait_for(self, selector: Optional[str] = None, state: str = "visible",
                       load_state: Optional[str] = None, timeout_ms: Optional[int] = None) -> None:
        await self.client.call("wait_for", name=self.name, selector=selector, state=state,
                               load_state=load_state, timeout_ms=timeout_ms)

    async def snapshot(self) -> str:
        payload = await self.client.call("snapshot_page", name=self.name)
        return payload["snapshot"]

    async def resolve(self, index: int) -> str:
        payload = await self.client.call("resolve_index", name=self.name, index=index)
        return payload["selector"]

    async def click_index(self, index: int, timeout_ms: Optional[int] = None) -> str:
        """Resolve an index from the latest snapshot and click it"""
        selector = await self.resolve(index)
        await self.click(selector, timeout_ms=timeout_ms)
        return selector

    async def refresh_info(self) -> Dict[str, Any]:
        payload = await self.client.call("page_info", name=self.name)
        self.info = payload["page"]
        return self.info

    async def close(self) -> None:
        await self.client.close_page(self.name)


class PageServerClient:
    """Async context manager holding one MCP session to the server"""

    def __init__(self, url: str = DEFAULT_URL, session: Optional[ClientSession] = None):
        self.url = url
        self.session = session
        self._stack: Optional[AsyncExitStack] = None

    async def __aenter__(self) -> "PageServerClient":
        if self.session is None:
            self._stack = AsyncExitStack()
            read, write, _get_session_id = await self._stack.enter_async_context(streamablehttp_client(self.url))
            self.session = await self._stack.enter_async_context(ClientSession(read, write))
            await self.session.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._stack is not None:
            stack, self._stack = self._stack, None
            self.session = None
            await stack.aclose()

    async def call(self, tool: str, **arguments: Any) -> Dict[str, Any]:
        """Call a tool; omitted (None) arguments fall back to server defaults"""
        if self.session is None:
            raise RuntimeError("PageServerClient is not connected; use 'async with'")

        args = {key: value for key, value in arguments.items() if value is not None}
        result = await self.session.call_tool(tool, arguments=args)

        texts = [c.text for c in getattr(result, "content", None) or [] if isinstance(c, TextContent)]
        if getattr(result, "isError", False):
            raise RemoteOperationError("ToolError", "\n".join(texts), operation=tool)

        payload = getattr(result, "structuredContent", None)
        if payload is None:
            payload = json.loads("\n".join(texts)) if texts else {}
        if set(payload) == {"result"} and isinstance(payload["result"], dict):
            payload = payload["result"]
        return raise_for_payload(payload)

    async def page(self, name: str, width: Optional[int] = None, height: Optional[int] = None) -> RemotePage:
        payload = await self.call("create_or_get_page", name=name, width=width, height=height)
        return RemotePage(self, name, payload.get("page"))

    async def list_pages(self) -> List[str]:
        payload = await self.call("list_pages")
        return list(payload.get("pages", []))

    async def close_page(self, name: str) -> None:
        await self.call("close_page", name=name)

    async def status(self) -> Dict[str, Any]:
        return await self.call("server_status")
