"""
MCP stdio server exposing the tool registry.

Lets MCP-capable clients (desktop assistants, IDE agents) use the same
RAWG and statistics tools the chat service uses. Each call goes through
the ToolExecutor, so arguments are validated the same way; any failure
is reported to the client as an MCP tool error.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from gamesage import __version__
from gamesage.tools.executor import ToolExecutor
from gamesage.tools.models import ToolInvocationRequest

logger = logging.getLogger(__name__)

SERVER_NAME = "rawg-game-data"


def create_mcp_server(executor: ToolExecutor) -> Server:
    """Build an MCP server whose tools are the executor's registry."""
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=schema.name,
                description=schema.description,
                inputSchema=schema.input_schema(),
            )
            for schema in executor.registry.schemas()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
        record = await executor.execute(
            ToolInvocationRequest(name=name, arguments=arguments or {})
        )
        return [types.TextContent(type="text", text=json.dumps(record.result, indent=2))]

    return server


async def serve_stdio(executor: ToolExecutor) -> None:
    """Run the MCP server over stdin/stdout until the client disconnects."""
    server = create_mcp_server(executor)
    logger.info(f"{SERVER_NAME} MCP server running on stdio")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
