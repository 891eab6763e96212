"""Tests for the stdio runner: one implicit "stdio" session per process."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import List, Tuple

import anyio
import pytest
from mcp import ClientSession

from datamerge_mcp.constants import STDIO_SESSION_ID
from datamerge_mcp.server.handlers import create_mcp_server
from datamerge_mcp.server.session.store import SessionStore
from datamerge_mcp.server.stdio import run_stdio
from datamerge_mcp.server.tools import ToolRegistry

BASE_URL = "https://api.datamerge.test"


class FakeClient:
    def __init__(self, credential: str, base_url: str) -> None:
        self.credential = credential
        self.base_url = base_url

    def uses_credential(self, credential: str) -> bool:
        return credential == self.credential

    async def health_check(self) -> bool:
        return True


class RecordingFactory:
    def __init__(self) -> None:
        self.built: List[Tuple[str, str]] = []

    def __call__(self, credential: str, base_url: str) -> FakeClient:
        self.built.append((credential, base_url))
        return FakeClient(credential, base_url)


def _store(fallback=None):
    factory = RecordingFactory()
    return SessionStore(fallback, BASE_URL, client_factory=factory), factory


def _patch_stdio(monkeypatch):
    """Swap the process stdio for in-memory streams; return the client ends."""
    client_to_server_send, client_to_server_recv = anyio.create_memory_object_stream(16)
    server_to_client_send, server_to_client_recv = anyio.create_memory_object_stream(16)

    @asynccontextmanager
    async def memory_stdio_server():
        yield client_to_server_recv, server_to_client_send

    monkeypatch.setattr("datamerge_mcp.server.stdio.stdio_server", memory_stdio_server)
    return server_to_client_recv, client_to_server_send


# ── Session lifecycle ────────────────────────────────────────────────────


class TestStdioSession:
    def test_tool_calls_use_stdio_session(self, monkeypatch):
        store, factory = _store(fallback="fallback-key")
        mcp_server = create_mcp_server(ToolRegistry(store))
        seen = {}

        async def scenario():
            read_stream, write_stream = _patch_stdio(monkeypatch)
            with anyio.fail_after(10):
                async with anyio.create_task_group() as tg:
                    tg.start_soon(run_stdio, mcp_server, store)
                    async with ClientSession(read_stream, write_stream) as session:
                        await session.initialize()
                        seen["open"] = STDIO_SESSION_ID in store

                        first = await session.call_tool("health_check", {})
                        seen["first"] = first
                        seen["fallback_client"] = store.get(STDIO_SESSION_ID).client

                        configured = await session.call_tool(
                            "configure_datamerge", {"apiKey": "explicit-key"}
                        )
                        seen["configured"] = configured
                        seen["explicit_client"] = store.get(STDIO_SESSION_ID).client

                        seen["second"] = await session.call_tool("health_check", {})
                    # Closing stdin ends the server loop
                    await write_stream.aclose()

        asyncio.run(scenario())

        assert seen["open"] is True
        assert not seen["first"].isError
        assert "is healthy" in seen["first"].content[0].text
        assert seen["fallback_client"].credential == "fallback-key"
        assert "configured successfully" in seen["configured"].content[0].text
        assert seen["explicit_client"] is not seen["fallback_client"]
        assert seen["explicit_client"].credential == "explicit-key"
        assert not seen["second"].isError
        assert factory.built == [("fallback-key", BASE_URL), ("explicit-key", BASE_URL)]
        assert STDIO_SESSION_ID not in store
        assert len(store) == 0

    def test_no_credential_reports_configure_hint(self, monkeypatch):
        store, factory = _store()
        mcp_server = create_mcp_server(ToolRegistry(store))
        seen = {}

        async def scenario():
            read_stream, write_stream = _patch_stdio(monkeypatch)
            with anyio.fail_after(10):
                async with anyio.create_task_group() as tg:
                    tg.start_soon(run_stdio, mcp_server, store)
                    async with ClientSession(read_stream, write_stream) as session:
                        await session.initialize()
                        seen["result"] = await session.call_tool("health_check", {})
                    await write_stream.aclose()

        asyncio.run(scenario())

        assert seen["result"].isError is True
        assert "configure_datamerge" in seen["result"].content[0].text
        assert factory.built == []
        assert STDIO_SESSION_ID not in store

    def test_session_forgotten_when_transport_fails(self, monkeypatch):
        store, _ = _store(fallback="fallback-key")
        mcp_server = create_mcp_server(ToolRegistry(store))

        @asynccontextmanager
        async def broken_stdio_server():
            assert STDIO_SESSION_ID in store
            raise OSError("stdin closed")
            yield  # pragma: no cover

        monkeypatch.setattr("datamerge_mcp.server.stdio.stdio_server", broken_stdio_server)
        with pytest.raises(OSError, match="stdin closed"):
            asyncio.run(run_stdio(mcp_server, store))
        assert STDIO_SESSION_ID not in store
