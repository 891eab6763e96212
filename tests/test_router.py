"""Tests for the streamable HTTP app: session routing and credential flow."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest
from starlette.testclient import TestClient

from datamerge_mcp.config.schema import DataMergeSettings
from datamerge_mcp.server.app import create_app
from datamerge_mcp.server.router import (
    BAD_REQUEST_CODE,
    INTERNAL_ERROR_CODE,
    extract_credential,
    is_initialize_request,
)
from datamerge_mcp.server.session.store import SessionStore

HEADERS = {
    "Accept": "application/json, text/event-stream",
    "Content-Type": "application/json",
}

INITIALIZE = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {
        "protocolVersion": "2025-03-26",
        "capabilities": {},
        "clientInfo": {"name": "test-client", "version": "0.1"},
    },
}

INITIALIZED = {"jsonrpc": "2.0", "method": "notifications/initialized"}


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


def _app(fallback: Optional[str] = None):
    factory = RecordingFactory()
    store = SessionStore(fallback, "https://api.datamerge.test", client_factory=factory)
    return create_app(DataMergeSettings(), store=store), store, factory


def _initialize(client: TestClient, headers: Optional[Dict[str, str]] = None) -> str:
    resp = client.post("/", json=INITIALIZE, headers={**HEADERS, **(headers or {})})
    assert resp.status_code == 200
    session_id = resp.headers["mcp-session-id"]
    assert resp.json()["result"]["serverInfo"]["name"] == "datamerge-mcp"
    ack = client.post("/", json=INITIALIZED, headers={**HEADERS, "mcp-session-id": session_id})
    assert ack.status_code == 202
    return session_id


def _call_tool(client: TestClient, session_id: str, name: str, arguments: Dict[str, Any] = None):
    resp = client.post(
        "/",
        json={
            "jsonrpc": "2.0",
            "id": 2,
            "method": "tools/call",
            "params": {"name": name, "arguments": arguments or {}},
        },
        headers={**HEADERS, "mcp-session-id": session_id},
    )
    assert resp.status_code == 200
    return resp.json()["result"]


# ── Helpers ──────────────────────────────────────────────────────────────


class TestExtractCredential:
    def test_schemes(self):
        assert extract_credential("Bearer abc123") == "abc123"
        assert extract_credential("Token abc123") == "abc123"
        assert extract_credential("token   abc123 ") == "abc123"
        assert extract_credential("BEARER abc123") == "abc123"

    def test_rejected(self):
        assert extract_credential(None) is None
        assert extract_credential("") is None
        assert extract_credential("Basic dXNlcjpwYXNz") is None
        assert extract_credential("Bearer") is None
        assert extract_credential("Bearer    ") is None


class TestIsInitializeRequest:
    def test_single_and_batch(self):
        assert is_initialize_request(b'{"jsonrpc": "2.0", "id": 1, "method": "initialize"}')
        assert is_initialize_request(b'[{"jsonrpc": "2.0", "id": 1, "method": "initialize"}]')

    def test_other(self):
        assert not is_initialize_request(b'{"jsonrpc": "2.0", "id": 1, "method": "tools/list"}')
        assert not is_initialize_request(b"not json")
        assert not is_initialize_request(b"")


# ── HTTP app ─────────────────────────────────────────────────────────────


class TestHealthEndpoint:
    def test_health(self):
        app, _, factory = _app()
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "service": "datamerge-mcp"}
        assert factory.built == []


class TestSessionRouting:
    def test_header_credential_reaches_tool(self):
        app, store, factory = _app()
        with TestClient(app) as client:
            session_id = _initialize(client, {"Authorization": "Token abc123"})
            assert session_id in store
            result = _call_tool(client, session_id, "health_check")
        assert not result.get("isError")
        assert "is healthy" in result["content"][0]["text"]
        assert factory.built == [("abc123", "https://api.datamerge.test")]

    def test_sessions_do_not_share_clients(self):
        app, _, factory = _app()
        with TestClient(app) as client:
            first = _initialize(client, {"Authorization": "Bearer key-one"})
            second = _initialize(client, {"Authorization": "Bearer key-two"})
            assert first != second
            _call_tool(client, first, "health_check")
            _call_tool(client, second, "health_check")
        assert [c for c, _ in factory.built] == ["key-one", "key-two"]

    def test_no_credential_anywhere(self):
        app, _, factory = _app()
        with TestClient(app) as client:
            session_id = _initialize(client)
            result = _call_tool(client, session_id, "health_check")
        assert result["isError"] is True
        assert "configure_datamerge" in result["content"][0]["text"]
        assert factory.built == []

    def test_configure_tool_over_http(self):
        app, _, factory = _app()
        with TestClient(app) as client:
            session_id = _initialize(client)
            _call_tool(client, session_id, "configure_datamerge", {"apiKey": "explicit-key"})
            _call_tool(client, session_id, "health_check")
        assert factory.built == [("explicit-key", "https://api.datamerge.test")]

    def test_tools_list(self):
        app, _, _ = _app()
        with TestClient(app) as client:
            session_id = _initialize(client)
            resp = client.post(
                "/",
                json={"jsonrpc": "2.0", "id": 3, "method": "tools/list"},
                headers={**HEADERS, "mcp-session-id": session_id},
            )
        names = [t["name"] for t in resp.json()["result"]["tools"]]
        assert len(names) == 20
        assert "start_company_enrichment_and_wait" in names


class TestRejections:
    def test_unknown_session(self):
        app, store, factory = _app(fallback="fallback-key")
        with TestClient(app) as client:
            resp = client.post(
                "/",
                json={
                    "jsonrpc": "2.0",
                    "id": 2,
                    "method": "tools/call",
                    "params": {"name": "health_check", "arguments": {}},
                },
                headers={**HEADERS, "mcp-session-id": "does-not-exist"},
            )
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"]["code"] == BAD_REQUEST_CODE
        assert body["error"]["message"] == "Bad Request: No valid session ID provided"
        assert "does-not-exist" not in store
        assert factory.built == []

    def test_non_initialize_without_session(self):
        app, _, _ = _app()
        with TestClient(app) as client:
            resp = client.post(
                "/", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"}, headers=HEADERS
            )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == BAD_REQUEST_CODE

    @pytest.mark.parametrize("method", ["GET", "DELETE"])
    def test_get_or_delete_without_session(self, method):
        app, _, _ = _app()
        with TestClient(app) as client:
            resp = client.request(method, "/", headers=HEADERS)
        assert resp.status_code == 400


class TestTeardown:
    def test_delete_forgets_session(self):
        app, store, _ = _app()
        with TestClient(app) as client:
            session_id = _initialize(client, {"Authorization": "Token abc123"})
            resp = client.delete("/", headers={**HEADERS, "mcp-session-id": session_id})
            assert resp.status_code == 200
            assert session_id not in store
            assert not app.state.router.has_session(session_id)
            again = client.post(
                "/",
                json={"jsonrpc": "2.0", "id": 3, "method": "tools/list"},
                headers={**HEADERS, "mcp-session-id": session_id},
            )
            assert again.status_code == 400

    def test_shutdown_closes_all_sessions(self):
        app, store, _ = _app()
        with TestClient(app) as client:
            _initialize(client, {"Authorization": "Token abc123"})
            _initialize(client, {"Authorization": "Token def456"})
            assert app.state.router.active_sessions == 2
        assert app.state.router.active_sessions == 0
        assert len(store) == 0


class TestUnhandledErrors:
    @staticmethod
    def _drive(router) -> List[Dict[str, Any]]:
        sent: List[Dict[str, Any]] = []

        async def receive():
            return {"type": "http.request", "body": b"", "more_body": False}

        async def send(message):
            sent.append(message)

        scope = {"type": "http", "method": "POST", "path": "/", "headers": []}
        asyncio.run(router(scope, receive, send))
        return sent

    def test_error_before_response_becomes_500(self, monkeypatch):
        app, _, _ = _app()
        router = app.state.router

        async def failing_handle(scope, receive, send):
            raise RuntimeError("boom")

        monkeypatch.setattr(router, "_handle", failing_handle)
        sent = self._drive(router)
        starts = [m for m in sent if m["type"] == "http.response.start"]
        assert len(starts) == 1
        assert starts[0]["status"] == 500
        body = b"".join(m.get("body", b"") for m in sent if m["type"] == "http.response.body")
        assert f'"code":{INTERNAL_ERROR_CODE}'.encode() in body

    def test_error_after_response_started_sends_nothing_more(self, monkeypatch):
        app, _, _ = _app()
        router = app.state.router

        async def half_sent_handle(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})
            raise RuntimeError("stream broke")

        monkeypatch.setattr(router, "_handle", half_sent_handle)
        sent = self._drive(router)
        assert sent == [{"type": "http.response.start", "status": 200, "headers": []}]
