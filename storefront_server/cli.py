"""Command line entry point: run the store over MCP stdio or as a REST API."""

import argparse
import asyncio
import sys
from typing import Optional, Sequence


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storefront-mcp-server",
        description="Hardware store cart, wishlist and checkout over MCP or HTTP",
    )
    parser.add_argument(
        "--mode",
        choices=["stdio", "http"],
        default="stdio",
        help="stdio speaks MCP on stdin/stdout; http serves the REST API (default: stdio)",
    )
    http_group = parser.add_argument_group("http mode")
    http_group.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    http_group.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    http_group.add_argument(
        "--reload", action="store_true", help="Restart on source changes"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    if args.mode == "http":
        from .http_server import run_http_server

        run_http_server(host=args.host, port=args.port, reload=args.reload)
        return

    from .server import main as run_stdio_server

    try:
        asyncio.run(run_stdio_server())
    except KeyboardInterrupt:
        print("\nShutting down...", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    main()
