"""Session-scoped DataMerge client store.

Maps a session id to its remembered credential and its (at most one)
:class:`DataMergeClient`.  All methods are synchronous and contain no
``await``, so under the single event loop every operation is atomic
with respect to concurrent tool calls and connection teardown.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from datamerge_mcp.config.schema import UpstreamSettings
from datamerge_mcp.constants import DEFAULT_BASE_URL
from datamerge_mcp.display.logging_config import secret_redaction_filter
from datamerge_mcp.errors import NotConfiguredError
from datamerge_mcp.server.session.models import MCPSession
from datamerge_mcp.upstream.client import DataMergeClient

logger = logging.getLogger(__name__)

# (credential, base_url) -> client
ClientFactory = Callable[[str, str], DataMergeClient]

SOURCE_EXPLICIT = "explicit"
SOURCE_SESSION = "session"
SOURCE_FALLBACK = "fallback"


class SessionStore:
    """Owns every session's credential and client.

    Parameters
    ----------
    fallback_credential:
        Process-wide credential used when a session has none of its own.
    base_url:
        Default upstream base URL for clients built by the store.
    client_factory:
        Builds a client from ``(credential, base_url)``.  Defaults to
        :class:`DataMergeClient`; tests inject fakes.
    """

    def __init__(
        self,
        fallback_credential: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._sessions: Dict[str, MCPSession] = {}
        self._fallback_credential = fallback_credential or None
        self._base_url = base_url
        self._client_factory: ClientFactory = client_factory or (
            lambda credential, url: DataMergeClient(credential, base_url=url)
        )
        if self._fallback_credential:
            secret_redaction_filter.register(self._fallback_credential)

    @classmethod
    def from_settings(
        cls, upstream: UpstreamSettings, client_factory: Optional[ClientFactory] = None
    ) -> "SessionStore":
        if client_factory is None:

            def client_factory(credential: str, url: str) -> DataMergeClient:
                return DataMergeClient(
                    credential,
                    base_url=url,
                    timeout=upstream.timeout,
                    health_timeout=upstream.health_timeout,
                )

        return cls(
            fallback_credential=upstream.api_key,
            base_url=upstream.base_url,
            client_factory=client_factory,
        )

    # ── Session lifecycle ────────────────────────────────────────────

    def open(self, session_id: str, transport_type: str = "") -> MCPSession:
        """Return the session for *session_id*, creating it if unseen."""
        session = self._sessions.get(session_id)
        if session is None:
            session = MCPSession(id=session_id, transport_type=transport_type)
            self._sessions[session_id] = session
            logger.info("Session created: id=%s transport=%s", session_id, transport_type)
        return session

    def forget(self, session_id: str) -> bool:
        """Drop the client and credential of *session_id*.

        Unknown ids are a no-op.  Returns ``True`` if the session existed.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.info(
            "Session forgotten: id=%s (client %s)",
            session_id,
            "built" if session.configured else "never built",
        )
        return True

    # ── Credentials and clients ──────────────────────────────────────

    def remember_credential(self, session_id: str, credential: str) -> None:
        """Associate *credential* with the session without building a client.

        An already-built client is kept as is; only ``configure`` replaces it.
        """
        if not credential:
            return
        secret_redaction_filter.register(credential)
        session = self.open(session_id)
        if session.credential == credential:
            return
        session.credential = credential
        if session.client is not None and not session.client.uses_credential(credential):
            logger.info(
                "Session %s presented a new credential; the existing client is kept.",
                session_id,
            )
        else:
            logger.debug("Credential remembered for session %s.", session_id)

    def resolve_credential(
        self, session_id: str, credential: Optional[str] = None
    ) -> Optional[Tuple[str, str]]:
        """Return ``(credential, source)`` by precedence, or ``None``.

        Precedence: *credential* argument, the session's remembered
        credential, the process-wide fallback.
        """
        if credential:
            return credential, SOURCE_EXPLICIT
        session = self._sessions.get(session_id)
        if session is not None and session.credential:
            return session.credential, SOURCE_SESSION
        if self._fallback_credential:
            return self._fallback_credential, SOURCE_FALLBACK
        return None

    def get_or_create_client(
        self, session_id: str, credential: Optional[str] = None
    ) -> DataMergeClient:
        """Return the session's client, building and caching it if needed.

        Raises:
            NotConfiguredError: No credential can be resolved.
        """
        session = self._sessions.get(session_id)
        if session is not None and session.client is not None:
            return session.client

        resolved = self.resolve_credential(session_id, credential)
        if resolved is None:
            raise NotConfiguredError(session_id)
        value, source = resolved

        session = self.open(session_id)
        session.client = self._client_factory(value, self._base_url)
        session.credential_source = source
        if source == SOURCE_EXPLICIT:
            secret_redaction_filter.register(value)
            session.credential = value
        logger.info("DataMerge client built for session %s (credential: %s).", session_id, source)
        return session.client

    def configure(
        self,
        session_id: str,
        credential: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> DataMergeClient:
        """Replace the session's client with a freshly built one.

        The previous session entry is discarded as a whole.  With no
        *credential* the remembered or fallback credential is used.

        Raises:
            NotConfiguredError: No credential can be resolved.
        """
        resolved = self.resolve_credential(session_id, credential)
        if resolved is None:
            raise NotConfiguredError(session_id)
        value, source = resolved
        secret_redaction_filter.register(value)

        previous = self._sessions.get(session_id)
        session = MCPSession(
            id=session_id,
            credential=value,
            transport_type=previous.transport_type if previous else "",
        )
        session.client = self._client_factory(value, (base_url or self._base_url).rstrip("/"))
        session.credential_source = source
        self._sessions[session_id] = session
        logger.info(
            "Session %s configured (credential: %s, base_url=%s).",
            session_id,
            source,
            session.client.base_url,
        )
        return session.client

    # ── Queries ──────────────────────────────────────────────────────

    def get(self, session_id: str) -> Optional[MCPSession]:
        return self._sessions.get(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def has_fallback(self) -> bool:
        return self._fallback_credential is not None

    def list_sessions(self) -> List[Dict[str, object]]:
        """Return session summaries (no credentials)."""
        return [s.to_dict() for s in self._sessions.values()]
