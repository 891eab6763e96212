"""MCP handler functions - registered on the MCP server instance."""

import logging
from typing import Any, Dict, List

from mcp import types as mcp_types
from mcp.server import Server as McpServer

from datamerge_mcp.constants import SERVER_DESCRIPTION, SERVER_NAME, SERVER_VERSION
from datamerge_mcp.server.context import current_session_id
from datamerge_mcp.server.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def register_handlers(mcp_server: McpServer, registry: ToolRegistry) -> None:
    """Register the tool handlers on the server instance."""

    @mcp_server.list_tools()
    async def handle_list_tools() -> List[mcp_types.Tool]:
        logger.debug("Handling listTools request...")
        tools = registry.list_tools()
        logger.info("Returning %s tools", len(tools))
        return tools

    # Arguments are validated by the registry against its own pydantic models.
    @mcp_server.call_tool(validate_input=False)
    async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> mcp_types.CallToolResult:
        session_id = current_session_id.get()
        logger.debug("Handling callTool: name='%s' session=%s", name, session_id)
        return await registry.call(name, arguments, session_id)


def create_mcp_server(registry: ToolRegistry) -> McpServer:
    """Create the low-level MCP server with the DataMerge tools registered."""
    mcp_server = McpServer(SERVER_NAME, version=SERVER_VERSION, instructions=SERVER_DESCRIPTION)
    register_handlers(mcp_server, registry)
    logger.debug("Underlying MCP server instance '%s' created.", mcp_server.name)
    return mcp_server
