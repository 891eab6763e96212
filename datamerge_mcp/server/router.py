"""Session-aware router for the streamable HTTP transport.

One :class:`StreamableHTTPServerTransport` and one MCP server loop run
per session.  The router creates them on an ``initialize`` request that
carries no session header, routes later requests by ``Mcp-Session-Id``
and tears everything down when the loop ends or the client sends
``DELETE``.  Inbound ``Authorization`` credentials are handed to the
:class:`SessionStore` so tool calls can build the session's client.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import AsyncIterator, Dict, Optional

from mcp.server import Server as McpServer
from mcp.server.streamable_http import StreamableHTTPServerTransport
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import Message, Receive, Scope, Send

from datamerge_mcp.constants import AUTH_SCHEMES, AUTHORIZATION_HEADER, MCP_SESSION_ID_HEADER
from datamerge_mcp.server.context import current_session_id
from datamerge_mcp.server.session.models import new_session_id
from datamerge_mcp.server.session.store import SessionStore

logger = logging.getLogger(__name__)

TRANSPORT_TYPE = "streamable-http"

# JSON-RPC error codes used for transport-level rejections
BAD_REQUEST_CODE = -32000
INTERNAL_ERROR_CODE = -32603


def extract_credential(header_value: Optional[str]) -> Optional[str]:
    """Return the credential from ``Bearer <x>`` or ``Token <x>``, else ``None``."""
    if not header_value:
        return None
    scheme, _, credential = header_value.strip().partition(" ")
    if scheme.lower() not in AUTH_SCHEMES:
        return None
    return credential.strip() or None


def is_initialize_request(body: bytes) -> bool:
    """True if *body* is a JSON-RPC ``initialize`` request (or a batch holding one)."""
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return False
    messages = payload if isinstance(payload, list) else [payload]
    return any(isinstance(m, dict) and m.get("method") == "initialize" for m in messages)


def jsonrpc_error(message: str, code: int, status: HTTPStatus) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": None},
        status_code=status,
    )


def _replay_body(body: bytes, receive: Receive) -> Receive:
    """Wrap *receive* so an already-read request body is delivered again."""
    sent = False

    async def _receive() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return _receive


class StreamableHTTPRouter:
    """ASGI app multiplexing MCP sessions over one endpoint.

    Parameters
    ----------
    mcp_server:
        The shared low-level MCP server; ``run`` is called once per session.
    store:
        Session store owning per-session credentials and clients.
    json_response:
        Answer POSTs with a JSON body instead of an SSE stream.
    """

    def __init__(
        self,
        mcp_server: McpServer,
        store: SessionStore,
        *,
        json_response: bool = True,
    ) -> None:
        self._mcp_server = mcp_server
        self._store = store
        self._json_response = json_response
        self._transports: Dict[str, StreamableHTTPServerTransport] = {}
        self._tasks: Dict[str, asyncio.Task[None]] = {}
        self._running = False

    @property
    def active_sessions(self) -> int:
        return len(self._transports)

    def has_session(self, session_id: str) -> bool:
        return session_id in self._transports

    # ── Lifecycle ────────────────────────────────────────────────────

    @asynccontextmanager
    async def run(self) -> AsyncIterator["StreamableHTTPRouter"]:
        """Accept sessions while the context is open; stop them all on exit."""
        self._running = True
        logger.info("Streamable HTTP router started.")
        try:
            yield self
        finally:
            self._running = False
            tasks = list(self._tasks.values())
            for task in tasks:
                task.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            for session_id in list(self._transports):
                self._close_session(session_id)
            logger.info("Streamable HTTP router stopped (%d session(s) closed).", len(tasks))

    # ── ASGI entry point ─────────────────────────────────────────────

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self._handle(scope, receive, tracking_send)
        except Exception:
            logger.exception("Unhandled error in streamable HTTP router.")
            if response_started:
                # Headers already sent; nothing more can be written
                return
            response = jsonrpc_error(
                "Internal server error", INTERNAL_ERROR_CODE, HTTPStatus.INTERNAL_SERVER_ERROR
            )
            await response(scope, receive, send)

    async def _handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER) or None
        credential = extract_credential(request.headers.get(AUTHORIZATION_HEADER))

        if session_id is not None:
            transport = self._transports.get(session_id)
            if transport is None:
                logger.info("Rejected %s for unknown session %s.", request.method, session_id)
                await self._bad_request(scope, receive, send)
                return
            if credential:
                self._store.remember_credential(session_id, credential)
            await transport.handle_request(scope, receive, send)
            if request.method == "DELETE" and transport.is_terminated:
                self._close_session(session_id)
            return

        if request.method != "POST" or not self._running:
            await self._bad_request(scope, receive, send)
            return
        body = await request.body()
        if not is_initialize_request(body):
            logger.info("Rejected non-initialize request without a session id.")
            await self._bad_request(scope, receive, send)
            return

        session_id = await self._open_session(credential)
        await self._transports[session_id].handle_request(scope, _replay_body(body, receive), send)

    async def _bad_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = jsonrpc_error(
            "Bad Request: No valid session ID provided", BAD_REQUEST_CODE, HTTPStatus.BAD_REQUEST
        )
        await response(scope, receive, send)

    # ── Sessions ─────────────────────────────────────────────────────

    async def _open_session(self, credential: Optional[str]) -> str:
        session_id = new_session_id()
        transport = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self._json_response,
        )
        self._transports[session_id] = transport
        self._store.open(session_id, transport_type=TRANSPORT_TYPE)
        if credential:
            self._store.remember_credential(session_id, credential)

        ready = asyncio.Event()
        self._tasks[session_id] = asyncio.create_task(
            self._run_session(session_id, transport, ready),
            name=f"mcp-session-{session_id}",
        )
        await ready.wait()
        if session_id not in self._transports:
            raise RuntimeError(f"Session {session_id} failed to start")
        return session_id

    async def _run_session(
        self,
        session_id: str,
        transport: StreamableHTTPServerTransport,
        ready: asyncio.Event,
    ) -> None:
        """Run the MCP server loop for one session until its transport closes."""
        current_session_id.set(session_id)
        try:
            async with transport.connect() as (read_stream, write_stream):
                ready.set()
                logger.debug("MCP loop started for session %s.", session_id)
                await self._mcp_server.run(
                    read_stream,
                    write_stream,
                    self._mcp_server.create_initialization_options(),
                )
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("MCP loop for session %s crashed.", session_id)
        finally:
            ready.set()
            self._close_session(session_id)

    def _close_session(self, session_id: str) -> None:
        """Remove every trace of *session_id*; safe to call more than once."""
        transport = self._transports.pop(session_id, None)
        self._tasks.pop(session_id, None)
        self._store.forget(session_id)
        if transport is not None:
            logger.info("Session %s closed (%d active).", session_id, len(self._transports))
