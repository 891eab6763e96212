"""Tool registry and per-invocation dispatch.

The registry is transport-agnostic: it receives the caller's session id
and resolves that session's client through the :class:`SessionStore`.
Every failure except a missing session id is turned into an
``isError`` tool result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type

from mcp import types as mcp_types
from pydantic import BaseModel, ValidationError

from datamerge_mcp.config.schema import PollingSettings
from datamerge_mcp.errors import NotConfiguredError, SessionRequiredError
from datamerge_mcp.server.session.store import SessionStore
from datamerge_mcp.upstream.client import DataMergeClient

logger = logging.getLogger(__name__)


def text_result(text: str, *, is_error: bool = False) -> mcp_types.CallToolResult:
    return mcp_types.CallToolResult(
        content=[mcp_types.TextContent(type="text", text=text)],
        isError=is_error,
    )


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        msg = err["msg"]
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Input validation error: " + "; ".join(parts)


@dataclass(frozen=True)
class ToolContext:
    """What a handler may touch during one invocation."""

    session_id: str
    store: SessionStore
    polling: PollingSettings

    def client(self) -> DataMergeClient:
        """The session's client, built lazily.  Raises :class:`NotConfiguredError`."""
        return self.store.get_or_create_client(self.session_id)


Handler = Callable[[ToolContext, Any], Awaitable[mcp_types.CallToolResult]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: Type[BaseModel]
    handler: Handler

    def to_mcp_tool(self) -> mcp_types.Tool:
        schema = self.args_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return mcp_types.Tool(name=self.name, description=self.description, inputSchema=schema)


class ToolRegistry:
    """Fixed catalog of tools plus dispatch.

    Parameters
    ----------
    store:
        Session store used to resolve each caller's client.
    polling:
        Poller defaults for the ``*_and_wait`` tools.
    tools:
        Tool specs; defaults to the full DataMerge catalog.
    """

    def __init__(
        self,
        store: SessionStore,
        polling: Optional[PollingSettings] = None,
        tools: Optional[Iterable[ToolSpec]] = None,
    ) -> None:
        if tools is None:
            from datamerge_mcp.server.tools.catalog import TOOLS

            tools = TOOLS
        self._store = store
        self._polling = polling or PollingSettings()
        self._tools: Dict[str, ToolSpec] = {t.name: t for t in tools}

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def list_tools(self) -> List[mcp_types.Tool]:
        return [t.to_mcp_tool() for t in self._tools.values()]

    async def call(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]],
        session_id: Optional[str],
    ) -> mcp_types.CallToolResult:
        """Validate *arguments* and run tool *name* for *session_id*.

        Raises:
            SessionRequiredError: *session_id* is missing (transport bug).
        """
        if not session_id:
            raise SessionRequiredError()

        spec = self._tools.get(name)
        if spec is None:
            return text_result(f"Error: Unknown tool: {name}", is_error=True)

        try:
            args = spec.args_model.model_validate(arguments or {})
        except ValidationError as exc:
            logger.info("Tool '%s' rejected invalid arguments.", name)
            return text_result(format_validation_error(exc), is_error=True)

        ctx = ToolContext(session_id=session_id, store=self._store, polling=self._polling)
        logger.debug("Dispatching tool '%s' for session %s", name, session_id)
        try:
            return await spec.handler(ctx, args)
        except NotConfiguredError as exc:
            return text_result(f"Error: {exc}", is_error=True)
        except Exception as exc:
            logger.exception("Tool '%s' failed for session %s", name, session_id)
            return text_result(f"Error: {exc}", is_error=True)
