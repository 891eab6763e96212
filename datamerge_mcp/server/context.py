"""Per-connection context shared between transports and tool handlers.

Each transport runs one MCP server loop per session and sets
:data:`current_session_id` inside that loop's task.  Handler tasks
spawned by the loop inherit the value, so tool dispatch can find the
session's client without the transport passing it explicitly.
"""

from contextvars import ContextVar
from typing import Optional

current_session_id: ContextVar[Optional[str]] = ContextVar(
    "datamerge_current_session_id", default=None
)
