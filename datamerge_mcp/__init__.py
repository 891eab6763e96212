"""DataMerge MCP server: the DataMerge Company API exposed as MCP tools."""

from datamerge_mcp.constants import SERVER_NAME, SERVER_VERSION

__all__ = ["SERVER_NAME", "SERVER_VERSION"]
__version__ = SERVER_VERSION
