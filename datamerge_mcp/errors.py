"""Custom exception classes for the DataMerge MCP server."""

from typing import Optional

from datamerge_mcp.constants import API_KEY_ENV_VAR


class DataMergeMCPError(Exception):
    """Base class for all custom exceptions in the DataMerge MCP server."""

    pass


class ConfigurationError(DataMergeMCPError):
    """Raised when loading or validating the configuration file fails."""

    pass


class NotConfiguredError(DataMergeMCPError):
    """Raised when no credential can be resolved for a session."""

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id
        super().__init__(
            "DataMerge client not configured. Please call configure_datamerge "
            f"or set {API_KEY_ENV_VAR}."
        )


class SessionRequiredError(DataMergeMCPError):
    """Raised when a tool is invoked outside of any session.

    This indicates a transport wiring bug rather than a caller mistake,
    so it is allowed to propagate out of tool dispatch.
    """

    def __init__(self) -> None:
        super().__init__("Session ID is required")


class UpstreamError(DataMergeMCPError):
    """
    Raised when the DataMerge API rejects a request or cannot be reached.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        orig_exc: Optional[Exception] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.orig_exc = orig_exc

        full_msg = "DataMerge API error"
        if status_code is not None:
            full_msg += f" (HTTP {status_code})"
        full_msg += f": {message}"
        super().__init__(full_msg)
