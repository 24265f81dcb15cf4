"""Container runtime adapter.

``ContainerRuntime`` is the seam the tool layer talks to; ``DockerRuntime``
implements it over the Docker Engine with the ``docker`` SDK. Failures are
translated into :class:`TriageError` and never retried here.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

import docker
import requests
from docker.errors import APIError, DockerException, NotFound

from .errors import ErrorKind, TriageError
from .models import ContainerInfo, ContainerState

logger = logging.getLogger(__name__)

_STATES = {s.value: s for s in ContainerState}
_FRACTION_RE = re.compile(r"\.(\d+)")


@runtime_checkable
class ContainerRuntime(Protocol):
    def ping(self) -> bool: ...

    def version(self) -> str | None: ...

    def list_containers(
        self, *, all_: bool = False, filters: Mapping[str, str] | None = None
    ) -> list[ContainerInfo]: ...

    def inspect_container(self, ref: str) -> dict[str, Any]: ...

    def container_stats(self, ref: str) -> dict[str, Any]: ...

    def container_logs(
        self,
        ref: str,
        *,
        tail: int,
        since: int | None = None,
        until: int | None = None,
        timestamps: bool = False,
    ) -> bytes: ...


def map_state(state: str | None) -> ContainerState:
    """Unknown or missing states are reported as exited."""
    return _STATES.get((state or "").lower(), ContainerState.EXITED)


def map_ports(ports: Any) -> dict[str, str | None]:
    """Normalize list-style (summary) or mapping-style (inspect) port data."""
    out: dict[str, str | None] = {}
    if isinstance(ports, list):
        for p in ports:
            key = f"{p.get('PrivatePort')}/{p.get('Type', 'tcp')}"
            public = p.get("PublicPort")
            out[key] = str(public) if public else None
    elif isinstance(ports, dict):
        for key, bindings in ports.items():
            if isinstance(bindings, list) and bindings:
                out[key] = bindings[0].get("HostPort") or None
            else:
                out[key] = None
    return out


def container_from_summary(d: Mapping[str, Any]) -> ContainerInfo:
    """Map a container list entry into ContainerInfo."""
    names = d.get("Names") or []
    created = d.get("Created")
    return ContainerInfo(
        id=(d.get("Id") or "")[:12],
        name=names[0].lstrip("/") if names else "",
        image=d.get("Image") or "",
        state=map_state(d.get("State")),
        status=d.get("Status") or "",
        created=datetime.fromtimestamp(created, UTC).isoformat() if created else "",
        ports=map_ports(d.get("Ports")),
        labels=dict(d.get("Labels") or {}),
    )


def container_from_inspect(d: Mapping[str, Any]) -> ContainerInfo:
    """Map an inspect payload into ContainerInfo."""
    config = d.get("Config") or {}
    state = d.get("State") or {}
    network = d.get("NetworkSettings") or {}
    return ContainerInfo(
        id=(d.get("Id") or "")[:12],
        name=(d.get("Name") or "").lstrip("/"),
        image=config.get("Image") or "",
        state=map_state(state.get("Status")),
        status=state.get("Status") or "",
        created=d.get("Created") or "",
        ports=map_ports(network.get("Ports")),
        labels=dict(config.get("Labels") or {}),
    )


def inspect_restart_count(d: Mapping[str, Any]) -> int:
    return int(d.get("RestartCount") or 0)


def _is_up(state: Mapping[str, Any]) -> bool:
    # The engine keeps Running set while a container is restarting.
    return bool(state.get("Running")) and not state.get("Restarting")


def inspect_exit_code(d: Mapping[str, Any]) -> int | None:
    """Last exit code; None while the container is up (not restarting)."""
    state = d.get("State") or {}
    if _is_up(state):
        return None
    code = state.get("ExitCode")
    return int(code) if code is not None else None


def inspect_is_tty(d: Mapping[str, Any]) -> bool:
    return bool((d.get("Config") or {}).get("Tty"))


def _parse_runtime_ts(value: str) -> datetime | None:
    # The engine reports nanoseconds; datetime keeps microseconds.
    value = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6], value.replace("Z", "+00:00"), count=1)
    try:
        ts = datetime.fromisoformat(value)
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def format_duration(seconds: float) -> str:
    seconds = max(0, int(seconds))
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m {secs}s"


def inspect_uptime(d: Mapping[str, Any], *, now: datetime | None = None) -> str | None:
    """Human-readable uptime for running containers."""
    state = d.get("State") or {}
    if not _is_up(state):
        return None
    started = _parse_runtime_ts(state.get("StartedAt") or "")
    if started is None or started.year <= 1:
        return None
    now = now or datetime.now(UTC)
    return format_duration((now - started).total_seconds())


def _http_status(exc: Exception) -> int | None:
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None)


@contextmanager
def runtime_errors(ref: str | None = None) -> Iterator[None]:
    """Translate docker/requests failures into TriageError."""
    details: dict[str, Any] = {"container_id": ref} if ref else {}
    try:
        yield
    except TriageError:
        raise
    except NotFound as exc:
        raise TriageError(ErrorKind.NOT_FOUND, f"Container not found: {ref}", details) from exc
    except (APIError, requests.exceptions.HTTPError) as exc:
        status = _http_status(exc)
        if status == 404:
            raise TriageError(ErrorKind.NOT_FOUND, f"Container not found: {ref}", details) from exc
        if status == 403:
            raise TriageError(ErrorKind.PERMISSION_DENIED, "Permission denied by the Docker daemon", details) from exc
        raise TriageError(ErrorKind.INTERNAL_ERROR, f"Docker API error: {exc}", details) from exc
    except PermissionError as exc:
        raise TriageError(ErrorKind.PERMISSION_DENIED, f"Permission denied: {exc}", details) from exc
    except (requests.exceptions.ConnectionError, requests.exceptions.Timeout, DockerException) as exc:
        raise TriageError(
            ErrorKind.CONNECTION_FAILED,
            "Cannot connect to the Docker daemon. Is it running?",
            {**details, "original_error": str(exc)},
        ) from exc


class DockerRuntime:
    """ContainerRuntime backed by the local Docker Engine."""

    def __init__(self, client: docker.DockerClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            with runtime_errors():
                self._client = docker.from_env()
        return self._client

    def ping(self) -> bool:
        try:
            with runtime_errors():
                return bool(self.client.ping())
        except TriageError as exc:
            logger.error("Docker ping failed: %s", exc.message)
            return False

    def version(self) -> str | None:
        try:
            with runtime_errors():
                return self.client.version().get("Version")
        except TriageError as exc:
            logger.error("Docker version lookup failed: %s", exc.message)
            return None

    def list_containers(
        self, *, all_: bool = False, filters: Mapping[str, str] | None = None
    ) -> list[ContainerInfo]:
        with runtime_errors():
            raw = self.client.api.containers(all=all_, filters=dict(filters or {}))
        return [container_from_summary(d) for d in raw]

    def inspect_container(self, ref: str) -> dict[str, Any]:
        with runtime_errors(ref):
            return self.client.api.inspect_container(ref)

    def container_stats(self, ref: str) -> dict[str, Any]:
        with runtime_errors(ref):
            return self.client.api.stats(ref, stream=False)

    def container_logs(
        self,
        ref: str,
        *,
        tail: int,
        since: int | None = None,
        until: int | None = None,
        timestamps: bool = False,
    ) -> bytes:
        """Raw bytes of the combined log endpoint (framed unless the container has a TTY)."""
        params: dict[str, Any] = {
            "stdout": 1,
            "stderr": 1,
            "timestamps": int(timestamps),
            "tail": str(tail),
        }
        if since is not None:
            params["since"] = since
        if until is not None:
            params["until"] = until

        api = self.client.api
        with runtime_errors(ref):
            resp = api.get(f"{api.base_url}/containers/{ref}/logs", params=params)
            resp.raise_for_status()
            return resp.content
