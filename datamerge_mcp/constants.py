"""Shared constants for the DataMerge MCP server."""

SERVER_NAME = "datamerge-mcp"
SERVER_VERSION = "1.0.0"
SERVER_DESCRIPTION = "DataMerge MCP Server for company enrichment and hierarchy"

# Network defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

# HTTP paths
STREAMABLE_HTTP_PATH = "/"
HEALTH_PATH = "/health"

# Inbound headers
MCP_SESSION_ID_HEADER = "mcp-session-id"
AUTHORIZATION_HEADER = "authorization"
AUTH_SCHEMES = ("bearer", "token")

# Upstream defaults
DEFAULT_BASE_URL = "https://api.datamerge.ai"
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds per upstream call
DEFAULT_HEALTH_TIMEOUT = 5.0  # seconds for the /auth/info probe
HEALTH_PROBE_PATH = "/auth/info"

# Job polling defaults
DEFAULT_POLL_INTERVAL = 5.0  # seconds between status fetches
DEFAULT_POLL_TIMEOUT = 60.0  # seconds before giving up on a job

# Session id of the single implicit session of the stdio transport
STDIO_SESSION_ID = "stdio"

# Environment variables
API_KEY_ENV_VAR = "DATAMERGE_API_KEY"
BASE_URL_ENV_VAR = "DATAMERGE_BASE_URL"
CONFIG_ENV_VAR = "DATAMERGE_MCP_CONFIG"
TRANSPORT_ENV_VAR = "DATAMERGE_MCP_TRANSPORT"

# Logging defaults
LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"
