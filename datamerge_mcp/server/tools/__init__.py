"""DataMerge tool catalog and dispatch."""

from datamerge_mcp.server.tools.registry import ToolContext, ToolRegistry, ToolSpec
from datamerge_mcp.server.tools.catalog import TOOLS

__all__ = ["TOOLS", "ToolContext", "ToolRegistry", "ToolSpec"]
