"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: callable actions (e.g., diagnose a container, detect compose drift)
- Resources: addressable data blobs (e.g., active thresholds, compose files via URI)
- Prompts: reusable conversation templates that clients can invoke

Run locally (stdio):
    python -m mcp_container_triage_server.server.container_server
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_container_triage_server.prompts.registry import register_prompts
from mcp_container_triage_server.resources.registry import register_resources
from mcp_container_triage_server.tools.containers import (
    detect_drift_impl,
    diagnose_container_impl,
    get_container_logs_impl,
    get_container_stats_impl,
    health_check_impl,
    list_containers_impl,
)

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure a reasonable default logging setup.

    stdout carries the stdio transport, so logs go to stderr.
    """
    level_name = os.getenv("CONTAINER_TRIAGE_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


mcp = FastMCP("container-triage", json_response=True)

register_resources(mcp)
register_prompts(mcp)


@mcp.tool()
async def health_check() -> dict[str, Any]:
    """Check that the Docker daemon is reachable and report its version."""
    return await health_check_impl()


@mcp.tool()
async def list_containers(
    all: bool = False,
    filters: dict[str, str] | None = None,
) -> dict[str, Any]:
    """List containers.

    Parameters
    ----------
    all:
        Include stopped containers (default: running only).
    filters:
        Docker list filters, e.g. {"label": "app=web", "name": "nginx"}.
    """
    return await list_containers_impl(all_=all, filters=filters)


@mcp.tool()
async def get_container_logs(
    container_id: str,
    tail: int | None = None,
    since: str | None = None,
    until: str | None = None,
    date: str | None = None,
    hour: str | None = None,
    timestamps: bool = True,
) -> dict[str, Any]:
    """Return demultiplexed stdout/stderr lines for a container.

    Parameters
    ----------
    container_id:
        Container id or name.
    tail:
        Last N lines (default 100, capped at 1000).
    since/until:
        ISO-8601 datetimes. If timezone is omitted, UTC is assumed.
    date/hour:
        Convenience selectors (2025-12-31, 2025-12-31T20); they override since/until.
    timestamps:
        Split the runtime timestamp out of each line.

    Credentials in key=value form are masked in the returned messages.
    """
    return await get_container_logs_impl(
        container_id=container_id,
        tail=tail,
        since=since,
        until=until,
        date=date,
        hour=hour,
        timestamps=timestamps,
    )


@mcp.tool()
async def get_container_stats(container_id: str) -> dict[str, Any]:
    """Return CPU, memory, network and block I/O usage for a running container."""
    return await get_container_stats_impl(container_id=container_id)


@mcp.tool()
async def diagnose_container(
    container_id: str,
    include_logs: bool = True,
    log_tail: int | None = None,
) -> dict[str, Any]:
    """Diagnose a container: symptoms, likely causes and suggested actions.

    Combines current resource usage, restart count, exit code and recent
    log lines (default 200) into a ranked report with a Markdown explanation.
    """
    return await diagnose_container_impl(
        container_id=container_id,
        include_logs=include_logs,
        log_tail=log_tail,
    )


@mcp.tool()
async def detect_drift(compose_file: str, project_name: str | None = None) -> dict[str, Any]:
    """Compare a Docker Compose file with the containers that are actually present.

    Parameters
    ----------
    compose_file:
        Path to the compose file.
    project_name:
        Compose project name (defaults to the file's `name`, then "default").
    """
    return await detect_drift_impl(compose_file=compose_file, project_name=project_name)


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    _ = argv or sys.argv[1:]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
