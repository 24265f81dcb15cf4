from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
import requests
from docker.errors import APIError, DockerException, NotFound

from mcp_container_triage_server.core.errors import ErrorKind, TriageError
from mcp_container_triage_server.core.models import ContainerState
from mcp_container_triage_server.core.runtime import (
    ContainerRuntime,
    DockerRuntime,
    container_from_inspect,
    container_from_summary,
    format_duration,
    inspect_exit_code,
    inspect_is_tty,
    inspect_restart_count,
    inspect_uptime,
    map_state,
    runtime_errors,
)


def _response(status: int) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    return resp


def test_container_from_summary() -> None:
    info = container_from_summary(
        {
            "Id": "0123456789abcdef0123",
            "Names": ["/shop-web-1"],
            "Image": "nginx:1.25",
            "State": "running",
            "Status": "Up 2 hours",
            "Created": 0,
            "Ports": [
                {"PrivatePort": 80, "PublicPort": 8080, "Type": "tcp"},
                {"PrivatePort": 443, "Type": "tcp"},
            ],
            "Labels": {"com.docker.compose.service": "web"},
        }
    )
    assert info.id == "0123456789ab"
    assert info.name == "shop-web-1"
    assert info.state is ContainerState.RUNNING
    assert info.ports == {"80/tcp": "8080", "443/tcp": None}
    assert info.labels == {"com.docker.compose.service": "web"}


def test_container_from_inspect(inspect_payload) -> None:
    info = container_from_inspect(inspect_payload("api", status="exited"))
    assert info.id == "abcdef123456"
    assert info.name == "api"
    assert info.image == "nginx:1.25"
    assert info.state is ContainerState.EXITED
    assert info.ports == {"80/tcp": "8080"}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("running", ContainerState.RUNNING), ("Paused", ContainerState.PAUSED), ("weird", ContainerState.EXITED), (None, ContainerState.EXITED)],
)
def test_map_state(raw: str | None, expected: ContainerState) -> None:
    assert map_state(raw) is expected


def test_inspect_helpers(inspect_payload) -> None:
    running = inspect_payload("web", restart_count=4, tty=True)
    stopped = inspect_payload("web", status="exited", exit_code=137)

    assert inspect_restart_count(running) == 4
    assert inspect_exit_code(running) is None
    assert inspect_exit_code(stopped) == 137
    assert inspect_is_tty(running) is True
    assert inspect_is_tty(stopped) is False


def test_inspect_uptime(inspect_payload) -> None:
    now = datetime(2025, 12, 30, 10, 5, 0, tzinfo=UTC)
    assert inspect_uptime(inspect_payload("web"), now=now) == "2h 4m"
    assert inspect_uptime(inspect_payload("web", status="exited"), now=now) is None
    assert inspect_uptime(inspect_payload("web", started_at="0001-01-01T00:00:00Z"), now=now) is None
    assert inspect_uptime(inspect_payload("web", status="restarting"), now=now) is None


def test_restarting_container_reports_last_exit_code(inspect_payload) -> None:
    payload = inspect_payload("api", status="restarting", restart_count=4, exit_code=1)
    assert payload["State"]["Running"] is True
    assert payload["State"]["Restarting"] is True

    assert inspect_exit_code(payload) == 1
    assert container_from_inspect(payload).state is ContainerState.RESTARTING


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(42, "0m 42s"), (3 * 60 + 5, "3m 5s"), (3600 * 5 + 60, "5h 1m"), (86400 * 2 + 3600, "2d 1h 0m"), (-5, "0m 0s")],
)
def test_format_duration(seconds: float, expected: str) -> None:
    assert format_duration(seconds) == expected


def test_runtime_errors_not_found() -> None:
    with pytest.raises(TriageError) as ei:
        with runtime_errors("ghost"):
            raise NotFound("No such container: ghost")
    assert ei.value.kind is ErrorKind.NOT_FOUND
    assert ei.value.details == {"container_id": "ghost"}


@pytest.mark.parametrize(
    ("status", "kind"),
    [(404, ErrorKind.NOT_FOUND), (403, ErrorKind.PERMISSION_DENIED), (500, ErrorKind.INTERNAL_ERROR)],
)
def test_runtime_errors_http_status(status: int, kind: ErrorKind) -> None:
    with pytest.raises(TriageError) as ei:
        with runtime_errors("web"):
            raise requests.exceptions.HTTPError("boom", response=_response(status))
    assert ei.value.kind is kind


def test_runtime_errors_api_error() -> None:
    with pytest.raises(TriageError) as ei:
        with runtime_errors("web"):
            raise APIError("server error", response=_response(500))
    assert ei.value.kind is ErrorKind.INTERNAL_ERROR


@pytest.mark.parametrize(
    "exc",
    [
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.ReadTimeout("read timed out"),
        DockerException("Error while fetching server API version"),
    ],
)
def test_runtime_errors_connection(exc: Exception) -> None:
    with pytest.raises(TriageError) as ei:
        with runtime_errors():
            raise exc
    assert ei.value.kind is ErrorKind.CONNECTION_FAILED
    assert "original_error" in ei.value.details


def test_runtime_errors_permission() -> None:
    with pytest.raises(TriageError) as ei:
        with runtime_errors():
            raise PermissionError(13, "Permission denied", "/var/run/docker.sock")
    assert ei.value.kind is ErrorKind.PERMISSION_DENIED


def test_docker_runtime_satisfies_protocol() -> None:
    assert isinstance(DockerRuntime(client=MagicMock()), ContainerRuntime)


def test_docker_runtime_ping_failure_is_false() -> None:
    client = MagicMock()
    client.ping.side_effect = requests.exceptions.ConnectionError("refused")
    rt = DockerRuntime(client=client)
    assert rt.ping() is False
    client.version.side_effect = DockerException("down")
    assert rt.version() is None


def test_docker_runtime_list_containers() -> None:
    client = MagicMock()
    client.api.containers.return_value = [
        {"Id": "0123456789abcdef", "Names": ["/web"], "Image": "nginx", "State": "exited", "Status": "Exited (0)"},
    ]
    rt = DockerRuntime(client=client)

    out = rt.list_containers(all_=True, filters={"name": "web"})

    client.api.containers.assert_called_once_with(all=True, filters={"name": "web"})
    assert [(c.id, c.name, c.state) for c in out] == [("0123456789ab", "web", ContainerState.EXITED)]


def test_docker_runtime_logs_request() -> None:
    client = MagicMock()
    client.api.base_url = "http+docker://localhost"
    client.api.get.return_value.content = b"raw"
    rt = DockerRuntime(client=client)

    assert rt.container_logs("web", tail=50, since=100, timestamps=True) == b"raw"

    client.api.get.assert_called_once_with(
        "http+docker://localhost/containers/web/logs",
        params={"stdout": 1, "stderr": 1, "timestamps": 1, "tail": "50", "since": 100},
    )
    client.api.get.return_value.raise_for_status.assert_called_once_with()


def test_docker_runtime_inspect_not_found() -> None:
    client = MagicMock()
    client.api.inspect_container.side_effect = NotFound("No such container: ghost")
    with pytest.raises(TriageError) as ei:
        DockerRuntime(client=client).inspect_container("ghost")
    assert ei.value.kind is ErrorKind.NOT_FOUND
