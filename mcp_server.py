#!/usr/bin/env python
"""
MCP Server Entry Point

Run this to expose the transaction tools over stdio:
    python mcp_server.py
"""

import asyncio

from mcp.server.stdio import stdio_server

from labeler.core.logging import configure_logging, get_logger
from labeler.mcp.server import create_mcp_server

configure_logging()
logger = get_logger(__name__)


async def main():
    server = create_mcp_server()

    async with stdio_server() as (read_stream, write_stream):
        logger.info("mcp_server_running", transport="stdio")
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


if __name__ == "__main__":
    asyncio.run(main())
