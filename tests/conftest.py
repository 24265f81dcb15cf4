from __future__ import annotations

import struct
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from mcp_container_triage_server.core.errors import ErrorKind, TriageError
from mcp_container_triage_server.core.models import ContainerInfo, ContainerState


def _frame(tag: int, payload: str | bytes) -> bytes:
    data = payload.encode("utf-8") if isinstance(payload, str) else payload
    return struct.pack(">BxxxL", tag, len(data)) + data


@pytest.fixture
def make_frame() -> Callable[[int, str | bytes], bytes]:
    return _frame


def _raw_stats(
    *,
    cpu_total: int = 0,
    precpu_total: int = 0,
    system: int = 0,
    presystem: int = 0,
    online_cpus: int | None = 2,
    mem_usage: int = 0,
    mem_limit: int = 0,
    networks: Mapping[str, Mapping[str, int]] | None = None,
    blkio: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    cpu_stats: dict[str, Any] = {"cpu_usage": {"total_usage": cpu_total}, "system_cpu_usage": system}
    if online_cpus is not None:
        cpu_stats["online_cpus"] = online_cpus
    return {
        "read": "2025-12-30T08:00:01.000000000Z",
        "cpu_stats": cpu_stats,
        "precpu_stats": {"cpu_usage": {"total_usage": precpu_total}, "system_cpu_usage": presystem},
        "memory_stats": {"usage": mem_usage, "limit": mem_limit},
        "networks": dict(networks or {}),
        "blkio_stats": {"io_service_bytes_recursive": blkio},
    }


@pytest.fixture
def raw_stats() -> Callable[..., dict[str, Any]]:
    return _raw_stats


def _container(
    name: str,
    *,
    id_: str | None = None,
    image: str = "nginx:latest",
    state: ContainerState = ContainerState.RUNNING,
    labels: Mapping[str, str] | None = None,
) -> ContainerInfo:
    return ContainerInfo(
        id=id_ or f"{abs(hash(name)) % 10**12:012d}",
        name=name,
        image=image,
        state=state,
        status="Up 5 minutes" if state is ContainerState.RUNNING else "Exited (1) 2 minutes ago",
        created="2025-12-30T08:00:00+00:00",
        labels=dict(labels or {}),
    )


@pytest.fixture
def make_container() -> Callable[..., ContainerInfo]:
    return _container


@pytest.fixture
def write_compose() -> Callable[[Path, str], Path]:
    def _write(path: Path, text: str) -> Path:
        path.write_text(text, encoding="utf-8")
        return path

    return _write


class FakeRuntime:
    """In-memory ContainerRuntime used by tool tests."""

    def __init__(
        self,
        *,
        containers: list[ContainerInfo] | None = None,
        inspect: Mapping[str, dict[str, Any]] | None = None,
        stats: Mapping[str, dict[str, Any]] | None = None,
        logs: Mapping[str, bytes] | None = None,
        connected: bool = True,
    ) -> None:
        self.containers = containers or []
        self.inspect = dict(inspect or {})
        self.stats = dict(stats or {})
        self.logs = dict(logs or {})
        self.connected = connected
        self.log_calls: list[dict[str, Any]] = []

    def ping(self) -> bool:
        return self.connected

    def version(self) -> str | None:
        return "27.1.1" if self.connected else None

    def list_containers(self, *, all_: bool = False, filters: Mapping[str, str] | None = None) -> list[ContainerInfo]:
        if not self.connected:
            raise TriageError(ErrorKind.CONNECTION_FAILED, "Cannot connect to the Docker daemon")
        if all_:
            return list(self.containers)
        return [c for c in self.containers if c.state is ContainerState.RUNNING]

    def inspect_container(self, ref: str) -> dict[str, Any]:
        try:
            return self.inspect[ref]
        except KeyError:
            raise TriageError(ErrorKind.NOT_FOUND, f"Container not found: {ref}") from None

    def container_stats(self, ref: str) -> dict[str, Any]:
        if ref not in self.stats:
            raise TriageError(ErrorKind.INTERNAL_ERROR, "stats unavailable")
        return self.stats[ref]

    def container_logs(
        self,
        ref: str,
        *,
        tail: int,
        since: int | None = None,
        until: int | None = None,
        timestamps: bool = False,
    ) -> bytes:
        self.log_calls.append({"ref": ref, "tail": tail, "since": since, "until": until, "timestamps": timestamps})
        if ref not in self.logs:
            raise TriageError(ErrorKind.INTERNAL_ERROR, "logs unavailable")
        return self.logs[ref]


def _inspect_payload(
    name: str,
    *,
    id_: str = "abcdef1234567890",
    image: str = "nginx:1.25",
    status: str = "running",
    restart_count: int = 0,
    exit_code: int = 0,
    tty: bool = False,
    started_at: str = "2025-12-30T08:00:00.123456789Z",
) -> dict[str, Any]:
    return {
        "Id": id_,
        "Name": f"/{name}",
        "Created": "2025-12-30T07:59:58.000000000Z",
        "RestartCount": restart_count,
        "State": {
            "Status": status,
            # the engine reports Running for restarting and paused containers too
            "Running": status in ("running", "restarting", "paused"),
            "Restarting": status == "restarting",
            "Paused": status == "paused",
            "ExitCode": exit_code,
            "StartedAt": started_at,
        },
        "Config": {"Image": image, "Labels": {"app": name}, "Tty": tty},
        "NetworkSettings": {"Ports": {"80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8080"}]}},
    }


@pytest.fixture
def fake_runtime() -> type[FakeRuntime]:
    return FakeRuntime


@pytest.fixture
def inspect_payload() -> Callable[..., dict[str, Any]]:
    return _inspect_payload
