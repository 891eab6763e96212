"""Allow ``python -m datamerge_mcp``."""

from datamerge_mcp.cli import main

main()
