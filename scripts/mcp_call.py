"""
Call page server tools from the command line

Pages live on the server, so separate invocations see the same named pages.
Tools that act on a page get PAGE_SERVER_PAGE (default "main") as ``name``
unless the arguments already carry one.
"""

import asyncio
import json
import os
import sys
from typing import Any, Dict, List

from page_server.client import DEFAULT_URL, PageServerClient
from page_server.errors import PageServerError

SERVER_URL = os.environ.get("PAGE_SERVER_URL", DEFAULT_URL)
DEFAULT_PAGE = os.environ.get("PAGE_SERVER_PAGE", "main")

# Tools that take no page name
SERVER_TOOLS = {"list_pages", "server_status"}


def with_page_name(tool: str, args: Dict[str, Any], page: str = DEFAULT_PAGE) -> Dict[str, Any]:
	"""Fill in the default page name for page tools"""
	if tool in SERVER_TOOLS or "name" in args:
		return dict(args)
	return dict(args, name=page)


async def run_calls(client: PageServerClient, calls: List[Dict[str, Any]], page: str = DEFAULT_PAGE) -> int:
	"""Run calls in order; stop at the first failure and return the exit code"""
	for call in calls:
		tool = call.get("tool", "")
		try:
			payload = await client.call(tool, **with_page_name(tool, call.get("args") or {}, page))
		except PageServerError as e:
			print(f"{tool}: {type(e).__name__}: {e}", file=sys.stderr)
			return 1
		print(json.dumps(payload, ensure_ascii=False, indent=2))
	return 0


async def main() -> int:
	if len(sys.argv) < 2:
		usage = (
			"Usage:\n"
			"  python3 scripts/mcp_call.py <tool_name> [json_args]\n"
			"  python3 scripts/mcp_call.py batch '<JSON_ARRAY_OF_CALLS>'\n"
			"    where JSON_ARRAY_OF_CALLS = [{\"tool\":\"name\",\"args\":{}}]\n"
			f"  PAGE_SERVER_URL overrides the endpoint (default {DEFAULT_URL})\n"
			"  PAGE_SERVER_PAGE sets the page name used when args omit one (default main)"
		)
		print(usage, file=sys.stderr)
		return 2

	tool = sys.argv[1]
	args: Any = json.loads(sys.argv[2]) if len(sys.argv) >= 3 else {}
	if tool == "batch":
		calls = args if isinstance(args, list) else []
	else:
		calls = [{"tool": tool, "args": args}]

	async with PageServerClient(SERVER_URL) as client:
		return await run_calls(client, calls)


if __name__ == "__main__":
	sys.exit(asyncio.run(main()))
