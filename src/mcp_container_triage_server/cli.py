from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from typing import Any

from mcp_container_triage_server.core.errors import TriageError
from mcp_container_triage_server.tools.containers import detect_drift_impl, diagnose_container_impl


def _print_diagnosis(report: dict[str, Any]) -> None:
    print(f"{report['container_name']} ({report['container_id']}) [{report['state']}]")
    print(report["summary"])
    if report["detailed_explanation"]:
        print()
        print(report["detailed_explanation"])


def _print_drift(report: dict[str, Any]) -> None:
    print(f"{report['source']}: {report['status']}")
    for d in report["differences"]:
        print(f"- [{d['drift_type']}] {d['message']}")
    print(f"\n{report['summary']}")


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entrypoint for local testing (without an MCP client)."""
    p = argparse.ArgumentParser(description="Container diagnosis and compose drift detection.")
    p.add_argument("--json", action="store_true", help="Print the raw JSON report")
    sub = p.add_subparsers(dest="command", required=True)

    d = sub.add_parser("diagnose", help="Diagnose a container")
    d.add_argument("container_id")
    d.add_argument("--no-logs", action="store_true", help="Skip log analysis")
    d.add_argument("--log-tail", type=int, default=None, help="Log lines to analyze (default: 200)")

    r = sub.add_parser("drift", help="Compare a compose file with running containers")
    r.add_argument("compose_file")
    r.add_argument("--project-name", default=None)

    args = p.parse_args(argv)

    try:
        if args.command == "diagnose":
            report = asyncio.run(
                diagnose_container_impl(
                    container_id=args.container_id,
                    include_logs=not args.no_logs,
                    log_tail=args.log_tail,
                )
            )
            printer = _print_diagnosis
        else:
            report = asyncio.run(
                detect_drift_impl(compose_file=args.compose_file, project_name=args.project_name)
            )
            printer = _print_drift
    except TriageError as e:
        print(f"Error ({e.kind.value}): {e.message}", file=sys.stderr)
        raise SystemExit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)

    if args.json:
        print(json.dumps(report, indent=2, ensure_ascii=False))
    else:
        printer(report)


if __name__ == "__main__":
    main()
