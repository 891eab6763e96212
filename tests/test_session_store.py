"""Tests for the session model and session-scoped client store."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Tuple

import pytest

from datamerge_mcp.display.logging_config import SecretRedactionFilter, secret_redaction_filter
from datamerge_mcp.errors import NotConfiguredError
from datamerge_mcp.server.session.models import MCPSession
from datamerge_mcp.server.session.store import SessionStore
from datamerge_mcp.upstream.client import DataMergeClient


class FakeClient:
    def __init__(self, credential: str, base_url: str) -> None:
        self.credential = credential
        self.base_url = base_url

    def uses_credential(self, credential: str) -> bool:
        return credential == self.credential


class RecordingFactory:
    def __init__(self) -> None:
        self.built: List[Tuple[str, str]] = []

    def __call__(self, credential: str, base_url: str) -> FakeClient:
        self.built.append((credential, base_url))
        return FakeClient(credential, base_url)


def _store(fallback=None) -> Tuple[SessionStore, RecordingFactory]:
    factory = RecordingFactory()
    return SessionStore(fallback, "https://api.test", client_factory=factory), factory


# ════════════════════════════════════════════════════════════════════════
#  MCPSession model tests
# ════════════════════════════════════════════════════════════════════════


class TestMCPSession:
    def test_default_creation(self):
        s = MCPSession()
        assert s.id
        assert len(s.id) == 32
        assert s.client is None
        assert not s.configured

    def test_ids_unique(self):
        assert len({MCPSession().id for _ in range(200)}) == 200

    def test_to_dict_never_contains_credential(self):
        s = MCPSession(credential="very-secret-token", transport_type="stdio")
        d = s.to_dict()
        assert "very-secret-token" not in str(d)
        assert d["has_credential"] is True
        assert d["transport_type"] == "stdio"

    def test_repr_hides_credential(self):
        assert "very-secret-token" not in repr(MCPSession(credential="very-secret-token"))


# ════════════════════════════════════════════════════════════════════════
#  SessionStore tests
# ════════════════════════════════════════════════════════════════════════


class TestCredentialPrecedence:
    def test_explicit_wins(self):
        store, factory = _store(fallback="B-fallback")
        store.remember_credential("s1", "A-session")
        client = store.get_or_create_client("s1", credential="C-explicit")
        assert client.credential == "C-explicit"
        assert store.get("s1").credential_source == "explicit"

    def test_remembered_next(self):
        store, _ = _store(fallback="B-fallback")
        store.remember_credential("s1", "A-session")
        assert store.get_or_create_client("s1").credential == "A-session"
        assert store.get("s1").credential_source == "session"

    def test_fallback_last(self):
        store, _ = _store(fallback="B-fallback")
        assert store.get_or_create_client("s1").credential == "B-fallback"
        assert store.get("s1").credential_source == "fallback"

    def test_none_raises(self):
        store, factory = _store()
        with pytest.raises(NotConfiguredError, match="configure_datamerge"):
            store.get_or_create_client("s1")
        assert factory.built == []

    def test_base_url_passed(self):
        store, factory = _store(fallback="B-fallback")
        store.get_or_create_client("s1")
        assert factory.built == [("B-fallback", "https://api.test")]


class TestClientCaching:
    def test_cached_client_returned(self):
        store, factory = _store(fallback="B-fallback")
        c1 = store.get_or_create_client("s1")
        c2 = store.get_or_create_client("s1", credential="other-key")
        assert c1 is c2
        assert len(factory.built) == 1

    def test_concurrent_first_calls_build_once(self):
        store, factory = _store()
        store.remember_credential("s1", "A-session")

        async def lookup():
            await asyncio.sleep(0)
            return store.get_or_create_client("s1")

        async def main():
            return await asyncio.gather(*(lookup() for _ in range(20)))

        clients = asyncio.run(main())
        assert all(c is clients[0] for c in clients)
        assert len(factory.built) == 1

    def test_sessions_isolated(self):
        store, _ = _store()
        store.remember_credential("s1", "key-one")
        store.remember_credential("s2", "key-two")
        assert store.get_or_create_client("s1").credential == "key-one"
        assert store.get_or_create_client("s2").credential == "key-two"

    def test_header_rotation_keeps_built_client(self):
        store, factory = _store()
        store.remember_credential("s1", "key-one")
        first = store.get_or_create_client("s1")
        store.remember_credential("s1", "key-two")
        assert store.get_or_create_client("s1") is first
        assert store.get("s1").credential == "key-two"
        assert len(factory.built) == 1


class TestForget:
    def test_forget_removes_everything(self):
        store, _ = _store()
        store.remember_credential("s1", "key-one")
        store.get_or_create_client("s1")
        assert store.forget("s1") is True
        assert "s1" not in store
        with pytest.raises(NotConfiguredError):
            store.get_or_create_client("s1")

    def test_forget_then_fallback(self):
        store, factory = _store(fallback="B-fallback")
        store.remember_credential("s1", "key-one")
        store.get_or_create_client("s1")
        store.forget("s1")
        assert store.get_or_create_client("s1").credential == "B-fallback"
        assert len(factory.built) == 2

    def test_forget_unknown_is_noop(self):
        store, _ = _store()
        assert store.forget("never-seen") is False
        assert len(store) == 0


class TestConfigure:
    def test_configure_replaces_client(self):
        store, factory = _store()
        store.open("s1", transport_type="streamable-http")
        store.remember_credential("s1", "key-one")
        first = store.get_or_create_client("s1")
        second = store.configure("s1", "key-two", "https://other.test/")
        assert second is not first
        assert store.get_or_create_client("s1") is second
        assert second.base_url == "https://other.test"
        assert store.get("s1").transport_type == "streamable-http"

    def test_configure_without_key_uses_fallback(self):
        store, _ = _store(fallback="B-fallback")
        assert store.configure("s1").credential == "B-fallback"

    def test_configure_without_any_key_raises(self):
        store, _ = _store()
        with pytest.raises(NotConfiguredError):
            store.configure("s1")
        assert "s1" not in store

    def test_list_sessions_has_no_secrets(self):
        store, _ = _store()
        store.configure("s1", "very-secret-token")
        assert "very-secret-token" not in str(store.list_sessions())


class TestRedaction:
    def test_remembered_credentials_are_redacted(self):
        store, _ = _store()
        store.remember_credential("s1", "leaky-credential-xyz")
        record = logging.LogRecord(
            "datamerge_mcp.test", logging.INFO, __file__, 1,
            "key is %s", ("leaky-credential-xyz",), None,
        )
        secret_redaction_filter.filter(record)
        assert "leaky-credential-xyz" not in record.getMessage()

    def test_short_values_ignored(self):
        f = SecretRedactionFilter()
        f.register("abc")
        assert f.redact("abc") == "abc"
        f.register("abcd")
        assert f.redact("xabcdx") == "x***REDACTED***x"

    def test_real_client_registers_key(self):
        DataMergeClient("client-key-registered")
        assert "client-key-registered" not in secret_redaction_filter.redact("client-key-registered")
