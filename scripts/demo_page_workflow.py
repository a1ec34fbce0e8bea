import asyncio
import json
import os
import re
import sys
from typing import Optional

from page_server.client import PageServerClient

DEFAULT_URL = os.environ.get("PAGE_SERVER_URL", "http://127.0.0.1:9224/mcp")
TARGET = sys.argv[1] if len(sys.argv) > 1 else "https://example.com"


def first_index(snapshot: str, tag: str) -> Optional[int]:
	match = re.search(r"\[(\d+)\]<" + re.escape(tag) + r"\b", snapshot)
	return int(match.group(1)) if match else None


async def main() -> None:
	async with PageServerClient(DEFAULT_URL) as client:
		print("- Create page 'main' ...")
		page = await client.page("main")
		print(json.dumps(page.info, ensure_ascii=False, indent=2))

		print(f"- Navigate {TARGET} ...")
		print(json.dumps(await page.navigate(TARGET), ensure_ascii=False, indent=2))

		print("- Snapshot ...")
		snapshot = await page.snapshot()
		print(snapshot)

		index = first_index(snapshot, "a")
		if index is not None:
			print(f"- Resolve and click [{index}] ...")
			print(await page.click_index(index))
			await page.wait_for(load_state="load")

		print("- Reload ...")
		await page.evaluate("() => location.reload()")
		await page.wait_for(load_state="load")

		print("- Screenshot ...")
		print(await page.screenshot())

	# A new connection still sees the page: pages outlive client sessions
	async with PageServerClient(DEFAULT_URL) as client:
		print("- Pages after reconnect ...")
		print(json.dumps(await client.list_pages(), ensure_ascii=False))
		print(json.dumps(await client.status(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
	asyncio.run(main())
