"""Stdio transport runner: one implicit session for the process lifetime."""

import logging

from mcp.server import Server as McpServer
from mcp.server.stdio import stdio_server

from datamerge_mcp.constants import STDIO_SESSION_ID
from datamerge_mcp.server.context import current_session_id
from datamerge_mcp.server.session.store import SessionStore

logger = logging.getLogger(__name__)

TRANSPORT_TYPE = "stdio"


async def run_stdio(mcp_server: McpServer, store: SessionStore) -> None:
    """Serve MCP over stdin/stdout until the peer closes the stream."""
    store.open(STDIO_SESSION_ID, transport_type=TRANSPORT_TYPE)
    token = current_session_id.set(STDIO_SESSION_ID)
    try:
        async with stdio_server() as (read_stream, write_stream):
            logger.info("DataMerge MCP server running on stdio.")
            await mcp_server.run(
                read_stream,
                write_stream,
                mcp_server.create_initialization_options(),
            )
    finally:
        current_session_id.reset(token)
        store.forget(STDIO_SESSION_ID)
        logger.info("Stdio session closed.")
