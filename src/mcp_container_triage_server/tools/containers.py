"""MCP tool implementations.

This module contains the *implementation* behind the exposed MCP tools.
Keep this layer thin: validate inputs, fetch raw data through the runtime,
hand it to the core, and return JSON-serializable data structures.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from mcp_container_triage_server.core.diagnosis import build_report, diagnose
from mcp_container_triage_server.core.drift import detect_drift, load_compose_file
from mcp_container_triage_server.core.errors import TriageError
from mcp_container_triage_server.core.log_stream import parse_log_stream, split_tty_output
from mcp_container_triage_server.core.metrics import calculate_stats
from mcp_container_triage_server.core.models import ContainerState, ContainerStats, HealthCheck, LogEntry
from mcp_container_triage_server.core.redaction import mask_log_entries, mask_symptom_evidence
from mcp_container_triage_server.core.runtime import (
    ContainerRuntime,
    DockerRuntime,
    container_from_inspect,
    inspect_exit_code,
    inspect_is_tty,
    inspect_restart_count,
    inspect_uptime,
)
from mcp_container_triage_server.core.thresholds import DiagnosisThresholds, resolve_thresholds
from mcp_container_triage_server.core.time_window import resolve_time_window, to_unix_seconds

LOGGER = logging.getLogger(__name__)

DEFAULT_LOG_TAIL = 100
MAX_LOG_TAIL = 1000
DEFAULT_DIAGNOSIS_LOG_TAIL = DEFAULT_LOG_TAIL * 2

_default_runtime: ContainerRuntime | None = None


def get_runtime() -> ContainerRuntime:
    """Seam for swapping runtime implementations (tests inject fakes)."""
    global _default_runtime
    if _default_runtime is None:
        _default_runtime = DockerRuntime()
    return _default_runtime


def to_jsonable(obj: Any) -> Any:
    """Convert dataclasses, enums and datetimes into JSON-compatible values."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, Mapping):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in obj]
    return obj


def _require_container_id(container_id: str) -> str:
    ref = (container_id or "").strip()
    if not ref:
        raise ValueError("container_id is required")
    return ref


def _decode_logs(raw: bytes, *, tty: bool, timestamps: bool) -> list[LogEntry]:
    if tty:
        return split_tty_output(raw, timestamps=timestamps)
    return parse_log_stream(raw, timestamps=timestamps)


async def health_check_impl(runtime: ContainerRuntime | None = None) -> dict[str, Any]:
    """Implementation for the `health_check` MCP tool."""
    runtime = runtime or get_runtime()
    now = datetime.now(UTC)

    connected = await asyncio.to_thread(runtime.ping)
    version = await asyncio.to_thread(runtime.version) if connected else None
    if connected:
        LOGGER.info("Docker reachable (version %s)", version)
        result = HealthCheck(
            status="healthy",
            runtime_connected=True,
            runtime_version=version,
            timestamp=now,
            message=f"Connected to Docker {version}" if version else "Connected to Docker",
        )
    else:
        result = HealthCheck(
            status="unhealthy",
            runtime_connected=False,
            runtime_version=None,
            timestamp=now,
            message="Cannot connect to the Docker daemon. Check that Docker is running.",
        )
    return to_jsonable(result)


async def list_containers_impl(
    *,
    all_: bool = False,
    filters: Mapping[str, str] | None = None,
    runtime: ContainerRuntime | None = None,
) -> dict[str, Any]:
    """Implementation for the `list_containers` MCP tool."""
    runtime = runtime or get_runtime()
    try:
        containers = await asyncio.to_thread(runtime.list_containers, all_=all_, filters=filters)
    except TriageError as exc:
        LOGGER.error("list_containers failed: %s", exc.message)
        raise

    LOGGER.info("Listed %d containers", len(containers))
    return {"count": len(containers), "containers": to_jsonable(containers)}


async def get_container_logs_impl(
    *,
    container_id: str,
    tail: int | None = None,
    since: str | None = None,
    until: str | None = None,
    date: str | None = None,
    hour: str | None = None,
    timestamps: bool = True,
    runtime: ContainerRuntime | None = None,
) -> dict[str, Any]:
    """Implementation for the `get_container_logs` MCP tool.

    Notes
    -----
    - tail defaults to DEFAULT_LOG_TAIL and is capped at MAX_LOG_TAIL
    - date/hour selectors take precedence over since/until
    - sensitive key=value pairs are masked before returning
    """
    ref = _require_container_id(container_id)
    if tail is None:
        tail = DEFAULT_LOG_TAIL
    if tail <= 0:
        raise ValueError("tail must be > 0")
    tail = min(tail, MAX_LOG_TAIL)

    window_since, window_until = resolve_time_window(since=since, until=until, date_=date, hour=hour)
    runtime = runtime or get_runtime()

    try:
        inspect = await asyncio.to_thread(runtime.inspect_container, ref)
        raw = await asyncio.to_thread(
            runtime.container_logs,
            ref,
            tail=tail,
            since=to_unix_seconds(window_since),
            until=to_unix_seconds(window_until),
            timestamps=timestamps,
        )
    except TriageError as exc:
        LOGGER.error("get_container_logs failed for %s: %s", ref, exc.message)
        raise

    info = container_from_inspect(inspect)
    entries = mask_log_entries(_decode_logs(raw, tty=inspect_is_tty(inspect), timestamps=timestamps))
    LOGGER.info("Fetched %d log lines from %s", len(entries), info.name)

    return {
        "container_id": info.id,
        "container_name": info.name,
        "entries": to_jsonable(entries),
        "count": len(entries),
        "tail": tail,
        "since": window_since.isoformat() if window_since else None,
    }


async def get_container_stats_impl(
    *,
    container_id: str,
    runtime: ContainerRuntime | None = None,
) -> dict[str, Any]:
    """Implementation for the `get_container_stats` MCP tool."""
    ref = _require_container_id(container_id)
    runtime = runtime or get_runtime()

    try:
        inspect = await asyncio.to_thread(runtime.inspect_container, ref)
        raw = await asyncio.to_thread(runtime.container_stats, ref)
    except TriageError as exc:
        LOGGER.error("get_container_stats failed for %s: %s", ref, exc.message)
        raise

    info = container_from_inspect(inspect)
    stats = calculate_stats(raw, container_id=info.id, container_name=info.name)
    LOGGER.info("Collected stats for %s", info.name)
    return to_jsonable(stats)


async def _collect_stats(runtime: ContainerRuntime, ref: str, name: str, *, id_: str) -> ContainerStats | None:
    try:
        raw = await asyncio.to_thread(runtime.container_stats, ref)
    except TriageError as exc:
        LOGGER.warning("Stats unavailable for %s: %s", name, exc.message)
        return None
    return calculate_stats(raw, container_id=id_, container_name=name)


async def _collect_logs(
    runtime: ContainerRuntime, ref: str, name: str, *, tail: int, tty: bool
) -> list[LogEntry]:
    try:
        raw = await asyncio.to_thread(runtime.container_logs, ref, tail=tail, timestamps=False)
    except TriageError as exc:
        LOGGER.warning("Logs unavailable for %s: %s", name, exc.message)
        return []
    return _decode_logs(raw, tty=tty, timestamps=False)


async def diagnose_container_impl(
    *,
    container_id: str,
    include_logs: bool = True,
    log_tail: int | None = None,
    thresholds: DiagnosisThresholds | None = None,
    runtime: ContainerRuntime | None = None,
) -> dict[str, Any]:
    """Implementation for the `diagnose_container` MCP tool.

    Only the container lookup is fatal; missing stats or logs degrade the
    diagnosis instead of failing it.
    """
    ref = _require_container_id(container_id)
    if log_tail is None:
        log_tail = DEFAULT_DIAGNOSIS_LOG_TAIL
    if log_tail <= 0:
        raise ValueError("log_tail must be > 0")
    log_tail = min(log_tail, MAX_LOG_TAIL)
    runtime = runtime or get_runtime()
    thresholds = thresholds or resolve_thresholds()

    try:
        inspect = await asyncio.to_thread(runtime.inspect_container, ref)
    except TriageError as exc:
        LOGGER.error("diagnose_container failed for %s: %s", ref, exc.message)
        raise

    info = container_from_inspect(inspect)

    stats = None
    if info.state is ContainerState.RUNNING:
        stats = await _collect_stats(runtime, ref, info.name, id_=info.id)

    logs: list[LogEntry] = []
    if include_logs:
        logs = await _collect_logs(runtime, ref, info.name, tail=log_tail, tty=inspect_is_tty(inspect))

    restart_count = inspect_restart_count(inspect)
    exit_code = inspect_exit_code(inspect)
    now = datetime.now(UTC)

    result = diagnose(
        stats,
        logs,
        restart_count,
        exit_code,
        thresholds=thresholds,
        container=info.name or info.id,
        now=now,
    )
    result = dataclasses.replace(result, symptoms=mask_symptom_evidence(result.symptoms))
    report = build_report(
        info,
        result,
        restart_count=restart_count,
        exit_code=exit_code,
        uptime=inspect_uptime(inspect, now=now),
        now=now,
    )
    LOGGER.info("Diagnosed %s: %d symptom(s)", info.name, len(report.symptoms))
    return to_jsonable(report)


async def detect_drift_impl(
    *,
    compose_file: str,
    project_name: str | None = None,
    runtime: ContainerRuntime | None = None,
) -> dict[str, Any]:
    """Implementation for the `detect_drift` MCP tool."""
    if not (compose_file or "").strip():
        raise ValueError("compose_file is required")
    runtime = runtime or get_runtime()

    try:
        desired = await load_compose_file(compose_file)
        observed = await asyncio.to_thread(runtime.list_containers, all_=True)
    except TriageError as exc:
        LOGGER.error("detect_drift failed for %s: %s", compose_file, exc.message)
        raise

    report = detect_drift(desired, observed, source=compose_file, project_name=project_name)
    LOGGER.info("Drift check for %s: %s", compose_file, report.status.value)
    return to_jsonable(report)
