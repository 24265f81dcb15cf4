"""MCP prompt registry.

Prompts are predefined conversation/workflow templates that the client can invoke explicitly.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP


def register_prompts(mcp: FastMCP) -> None:
    """Register prompt templates on the MCP server."""

    @mcp.prompt()
    def diagnose_container_issue(
        container_id: str,
        log_tail: int = 200,
        symptom: str | None = None,
    ) -> list[dict[str, Any]]:
        """Build a prompt for an evidence-based container diagnosis."""
        reported = f"\nThe user reports: {symptom}\n" if symptom else ""
        return [
            {
                "role": "system",
                "content": (
                    "You are a senior SRE helping diagnose Docker containers. "
                    "Provide concise, evidence-based conclusions from tool output. "
                    "Do not invent details; if the evidence is insufficient, say so."
                ),
            },
            {
                "role": "user",
                "content": (
                    f"Diagnose container {container_id}.{reported}\n"
                    "Workflow:\n"
                    f"- Call diagnose_container with container_id={container_id!r} and "
                    f"log_tail={log_tail}.\n"
                    "- If the report lists a log_error or oom_killed symptom, call "
                    "get_container_logs with the same container_id to quote evidence.\n"
                    "- If the report has no symptoms, say the container looks healthy and "
                    "suggest what else to check.\n\n"
                    "Return this structure:\n"
                    "1) Status (one line, using the report summary)\n"
                    "2) Evidence (symptoms with their evidence values; quote 1-3 log lines)\n"
                    "3) Likely cause (with confidence; say 'Unknown' if none was inferred)\n"
                    "4) Next actions (ordered by urgency, include commands when given)\n"
                ),
            },
        ]

    @mcp.prompt()
    def audit_compose_drift(
        compose_file: str,
        project_name: str | None = None,
    ) -> list[dict[str, Any]]:
        """Build a prompt that audits a compose project against running containers."""
        call = f"- compose_file: {compose_file}"
        if project_name:
            call += f"\n- project_name: {project_name}"
        return [
            {
                "role": "system",
                "content": (
                    "You compare declared infrastructure with what is actually running. "
                    "Be precise and only use tool output."
                ),
            },
            {
                "role": "user",
                "content": (
                    "Call detect_drift with:\n"
                    f"{call}\n\n"
                    "Then report:\n"
                    "1) Overall status (synced/drifted) and the summary line\n"
                    "2) A table of differences: service, drift type, expected, actual\n"
                    "3) Untracked containers, if any, and whether they look intentional\n"
                    "4) Commands to reconcile (e.g., docker compose up -d <service>)\n"
                ),
            },
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "The compose file is available as:"},
                    {"type": "resource", "uri": f"compose://{compose_file}"},
                ],
            },
        ]
