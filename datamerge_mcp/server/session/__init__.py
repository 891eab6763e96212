"""Session management for per-connection DataMerge clients."""

from datamerge_mcp.server.session.models import MCPSession
from datamerge_mcp.server.session.store import SessionStore

__all__ = ["MCPSession", "SessionStore"]
