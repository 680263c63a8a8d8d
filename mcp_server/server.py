"""
MCP stdio server exposing the chat tool catalogue.

Tools run against the same database and service layer as the web app. The
process acts on behalf of the session whose token is configured in
``MCP_SESSION_TOKEN``; without it every mutating tool answers ``auth-required``.
"""

import json
import logging
import uuid

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from planner.chat import tools  # noqa: F401,E402  (registers the tool catalogue)
from planner.chat.context import RunContext  # noqa: E402
from planner.chat.registry import registry  # noqa: E402
from planner.config import get_settings  # noqa: E402
from planner.database import SessionLocal, init_db  # noqa: E402

logger = logging.getLogger(__name__)

settings = get_settings()

# Initialize the MCP server
server = Server("convention-planner")


def session_headers() -> dict[str, str]:
    """Request headers equivalent to the configured session token."""
    token = settings.mcp_session_token
    return {"authorization": f"Bearer {token}"} if token else {}


@server.list_tools()
async def list_tools():
    return registry.mcp_tools()


@server.call_tool()
async def call_tool(name: str, arguments: dict):
    """Handle tool calls."""
    db = SessionLocal()
    try:
        # No hub in this process: changes reach live clients on their next refresh
        ctx = RunContext(
            headers=session_headers(),
            cache={},
            request_id=str(uuid.uuid4()),
            db=db,
        )
        result = await registry.call(name, arguments, ctx)
        return [TextContent(type="text", text=json.dumps(result, default=str))]
    finally:
        db.close()


async def main():
    """Run the MCP server."""
    # Initialize database
    init_db()

    # Run the server
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    import asyncio
    asyncio.run(main())
