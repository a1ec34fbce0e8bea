"""
MCP server for the Page Server

Builds the FastMCP application around one AutomationServer and runs it over
streamable HTTP. The browser and pages belong to the process, not to MCP
client sessions: clients come and go, shutdown happens once on exit.
"""

import asyncio
import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .automation_server import AutomationServer
from .config import PageServerConfig
from .mcp_tools import MCPPageTools

INSTRUCTIONS = (
    "Named browser pages that persist between calls. Call create_or_get_page first, "
    "then navigate/click/fill by selector, or snapshot_page to get an indexed tree and "
    "resolve_index to turn an index into a selector."
)


def configure_logging(config: PageServerConfig) -> None:
    level = "DEBUG" if config.debug else config.log_level.upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_mcp_app(tools: MCPPageTools, config: Optional[PageServerConfig] = None) -> FastMCP:
    """FastMCP application exposing every page tool"""
    config = config or PageServerConfig()
    mcp = FastMCP(
        name=config.server.name,
        instructions=INSTRUCTIONS,
        host=config.server.host,
        port=config.server.port,
    )
    for tool in tools.tool_functions():
        mcp.add_tool(tool)
    return mcp


async def serve(config: Optional[PageServerConfig] = None) -> None:
    """Run until the listener stops, then close pages and the browser"""
    config = config or PageServerConfig()
    logger = logging.getLogger("PageServer")

    tools = MCPPageTools(AutomationServer(config))
    mcp = create_mcp_app(tools, config)

    logger.info(f"Listening on {config.server.host}:{config.server.port} ({config.server.transport})")
    try:
        if config.server.transport == "sse":
            await mcp.run_sse_async()
        elif config.server.transport == "stdio":
            await mcp.run_stdio_async()
        else:
            await mcp.run_streamable_http_async()
    finally:
        await tools.shutdown()
        logger.info("Page server stopped")


def run_server(config: Optional[PageServerConfig] = None) -> None:
    config = config or PageServerConfig()
    configure_logging(config)
    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        pass
