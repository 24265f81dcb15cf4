"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_container_triage_server.core.diagnosis import CAUSE_RULES
from mcp_container_triage_server.core.drift import ComposeFile
from mcp_container_triage_server.core.thresholds import resolve_thresholds

ALLOWED_FILE_SUFFIXES = {".yml", ".yaml"}
BASE_DIR_ENV = "CONTAINER_TRIAGE_BASE_DIR"
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "replace"

SAMPLE_COMPOSE = """\
name: shop
services:
  web:
    image: nginx:1.25
    deploy:
      replicas: 2
    ports:
      - "8080:80"
  api:
    image: ghcr.io/example/shop-api:2.3.1
    container_name: shop-api
  worker:
    build: ./worker
"""


def _base_dir() -> Path:
    """Return the resolved base directory for file resources."""
    raw = os.getenv(BASE_DIR_ENV, os.getcwd())
    return Path(raw).resolve()


def _safe_resolve(path: str) -> Path:
    """Resolve a path under the configured base directory."""
    base = _base_dir()
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = base / p
    p = p.resolve()
    if base not in p.parents and p != base:
        raise ValueError("Path escapes base dir")
    return p


def _resolve_compose_path(path: str) -> Path:
    """Resolve and validate a compose file path."""
    resolved = _safe_resolve(path)
    if not resolved.is_file():
        raise FileNotFoundError(f"File not found: {resolved}")
    if resolved.suffix.lower() not in ALLOWED_FILE_SUFFIXES:
        allowed = ", ".join(sorted(ALLOWED_FILE_SUFFIXES))
        raise ValueError(f"File type not allowed. Allowed: {allowed}.")
    return resolved


def thresholds_payload() -> dict[str, dict[str, float]]:
    """Active threshold tables, env overrides applied."""
    t = resolve_thresholds()
    return {
        name: {"warning": table.warning, "error": table.error, "critical": table.critical}
        for name, table in (("cpu_percent", t.cpu), ("memory_percent", t.memory), ("restart_count", t.restart_count))
    }


def register_resources(mcp: FastMCP) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://container-triage/help")
    def help_resource() -> str:
        """Return a short list of available resource URIs."""
        allowed = ", ".join(sorted(ALLOWED_FILE_SUFFIXES))
        base = _base_dir()
        return (
            "Resources:\n"
            "- app://container-triage/help\n"
            "- app://container-triage/config/thresholds\n"
            "- app://container-triage/config/cause-rules\n"
            "- app://container-triage/schemas/compose\n"
            "- app://container-triage/examples/sample-compose\n"
            f"- compose://{{path}} (restricted to {BASE_DIR_ENV}; allowed: {allowed})\n"
            f"\nBase directory: {base}\n"
        )

    @mcp.resource("app://container-triage/examples/sample-compose")
    def sample_compose() -> str:
        """Return a tiny compose file for demos and tests."""
        return SAMPLE_COMPOSE

    @mcp.resource("app://container-triage/config/thresholds")
    def thresholds() -> dict[str, dict[str, float]]:
        """Return the warning/error/critical breakpoints used by diagnosis."""
        return thresholds_payload()

    @mcp.resource("app://container-triage/config/cause-rules")
    def cause_rules() -> list[dict[str, Any]]:
        """Return the cause inference rules in evaluation order."""
        return [
            {
                "key": r.key,
                "requires": [t.value for t in r.requires],
                "confidence": r.confidence,
                "guard": r.guard.value,
            }
            for r in CAUSE_RULES
        ]

    @mcp.resource("app://container-triage/schemas/compose")
    def compose_schema() -> dict[str, Any]:
        """Return the JSON schema of the compose subset that drift detection reads."""
        return ComposeFile.model_json_schema()

    @mcp.resource("compose://{path}")
    async def read_compose(path: str) -> str:
        """Read a compose file from within CONTAINER_TRIAGE_BASE_DIR."""
        p = _resolve_compose_path(path)
        return await asyncio.to_thread(p.read_text, encoding=TEXT_ENCODING, errors=TEXT_ERRORS)
