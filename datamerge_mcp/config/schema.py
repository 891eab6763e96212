"""Pydantic configuration models for the DataMerge MCP server."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from datamerge_mcp.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_HEALTH_TIMEOUT,
    DEFAULT_HOST,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_REQUEST_TIMEOUT,
)


class ServerSettings(BaseModel):
    """Inbound transport settings (host, port, transport)."""

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    transport: Literal["stdio", "streamable-http"] = "streamable-http"
    json_response: bool = Field(
        default=True,
        description="Answer POSTs with a single JSON body instead of an SSE stream.",
    )
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("transport", mode="before")
    @classmethod
    def _normalise_transport(cls, v: str) -> str:
        """Accept 'http' as a shorthand for 'streamable-http'."""
        if isinstance(v, str) and v.strip().lower() == "http":
            return "streamable-http"
        return v


class UpstreamSettings(BaseModel):
    """DataMerge API connection settings."""

    api_key: Optional[str] = Field(
        default=None,
        description="Process-wide fallback credential. Also DATAMERGE_API_KEY env var.",
    )
    base_url: str = DEFAULT_BASE_URL
    timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)
    health_timeout: float = Field(default=DEFAULT_HEALTH_TIMEOUT, gt=0)

    @field_validator("api_key")
    @classmethod
    def _blank_key_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip()
        return v or None

    @field_validator("base_url")
    @classmethod
    def _validate_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL '{v}' must start with http:// or https://")
        return v


class PollingSettings(BaseModel):
    """Defaults for the start-and-wait job poller."""

    interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    timeout_seconds: float = Field(default=DEFAULT_POLL_TIMEOUT, gt=0)


class DataMergeSettings(BaseModel):
    """Top-level validated configuration.

    Example YAML::

        server:
          port: 3000
        upstream:
          api_key: ${DATAMERGE_API_KEY}
        polling:
          interval_seconds: 5
    """

    server: ServerSettings = Field(default_factory=ServerSettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
