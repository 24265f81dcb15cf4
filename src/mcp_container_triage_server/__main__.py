"""Run the container triage MCP server over stdio.

    python -m mcp_container_triage_server
"""

from __future__ import annotations

from mcp_container_triage_server.server.container_server import main

if __name__ == "__main__":
    main()
