"""Configuration loading and validation."""

from datamerge_mcp.config.loader import load_settings
from datamerge_mcp.config.schema import (
    DataMergeSettings,
    PollingSettings,
    ServerSettings,
    UpstreamSettings,
)

__all__ = [
    "DataMergeSettings",
    "PollingSettings",
    "ServerSettings",
    "UpstreamSettings",
    "load_settings",
]
