"""
Start the page server: ``python -m page_server [options]``
"""

import argparse
from typing import List, Optional

from .config import load_config
from .mcp_server import run_server


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="page-server", description="Persistent named browser pages over MCP")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--host", default=None, help="Bind address (default 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default 9224)")
    parser.add_argument("--transport", choices=["streamable-http", "sse", "stdio"], default=None)
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--profile-dir", default=None, help="Persistent browser profile directory")
    parser.add_argument("--log-level", default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)

    # Command line wins over file and environment
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.transport:
        config.server.transport = args.transport
    if args.headed:
        config.browser.headless = False
    if args.profile_dir:
        config.browser.profile_dir = args.profile_dir
    if args.log_level:
        config.log_level = args.log_level

    run_server(config)


if __name__ == "__main__":
    main()
