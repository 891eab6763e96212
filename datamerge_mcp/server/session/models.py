"""Session data model for per-connection DataMerge state."""

from __future__ import annotations

from dataclasses import dataclass, field
from time import monotonic
from typing import Any, Dict, Optional
from uuid import uuid4

from datamerge_mcp.upstream.client import DataMergeClient


def new_session_id() -> str:
    """Generate an opaque, practically collision-free session id."""
    return uuid4().hex


@dataclass
class MCPSession:
    """Represents one logical caller connection.

    A session holds at most one :class:`DataMergeClient`.  The client is
    never mutated; reconfiguring replaces the whole session entry.
    """

    id: str = field(default_factory=new_session_id)

    credential: Optional[str] = field(default=None, repr=False)
    """Raw credential remembered for this session (never logged)."""

    client: Optional[DataMergeClient] = None
    """Client built for this session, once a tool needed one."""

    credential_source: str = ""
    """Where the client's credential came from: explicit, session or fallback."""

    transport_type: str = ""
    """``"stdio"`` or ``"streamable-http"``."""

    created_at: float = field(default_factory=monotonic)
    """Monotonic timestamp of session creation."""

    @property
    def configured(self) -> bool:
        return self.client is not None

    @property
    def age_seconds(self) -> float:
        """Seconds since the session was created."""
        return monotonic() - self.created_at

    def to_dict(self) -> Dict[str, Any]:
        """Serialise for diagnostics.  The credential is never included."""
        return {
            "id": self.id,
            "transport_type": self.transport_type,
            "configured": self.configured,
            "has_credential": self.credential is not None,
            "credential_source": self.credential_source,
            "base_url": self.client.base_url if self.client else None,
            "age_seconds": round(self.age_seconds, 1),
        }
