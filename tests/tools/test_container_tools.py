from __future__ import annotations

import json
from pathlib import Path

import pytest

from mcp_container_triage_server.core.errors import ErrorKind, TriageError
from mcp_container_triage_server.core.models import ContainerState
from mcp_container_triage_server.core.thresholds import CPU_ENV, MEMORY_ENV, RESTART_ENV
from mcp_container_triage_server.tools.containers import (
    MAX_LOG_TAIL,
    detect_drift_impl,
    diagnose_container_impl,
    get_container_logs_impl,
    get_container_stats_impl,
    health_check_impl,
    list_containers_impl,
)


@pytest.fixture(autouse=True)
def _default_thresholds(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (CPU_ENV, MEMORY_ENV, RESTART_ENV):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.asyncio
async def test_health_check(fake_runtime) -> None:
    out = await health_check_impl(runtime=fake_runtime())
    assert out["status"] == "healthy"
    assert out["runtime_connected"] is True
    assert out["runtime_version"] == "27.1.1"

    out = await health_check_impl(runtime=fake_runtime(connected=False))
    assert out["status"] == "unhealthy"
    assert out["runtime_version"] is None
    assert "Docker" in out["message"]


@pytest.mark.asyncio
async def test_list_containers(fake_runtime, make_container) -> None:
    rt = fake_runtime(
        containers=[
            make_container("web", id_="aaa"),
            make_container("job", id_="bbb", state=ContainerState.EXITED),
        ]
    )

    running = await list_containers_impl(runtime=rt)
    everything = await list_containers_impl(all_=True, runtime=rt)

    assert running["count"] == 1
    assert running["containers"][0]["name"] == "web"
    assert running["containers"][0]["state"] == "running"
    assert [c["id"] for c in everything["containers"]] == ["aaa", "bbb"]
    json.dumps(everything)


@pytest.mark.asyncio
async def test_list_containers_connection_failure(fake_runtime) -> None:
    with pytest.raises(TriageError) as ei:
        await list_containers_impl(runtime=fake_runtime(connected=False))
    assert ei.value.kind is ErrorKind.CONNECTION_FAILED


@pytest.mark.asyncio
async def test_get_container_logs_masks_and_splits(fake_runtime, inspect_payload, make_frame) -> None:
    raw = make_frame(1, "2025-12-30T08:00:00.000000001Z connecting with password=hunter2\n") + make_frame(
        2, "2025-12-30T08:00:01.5Z ERROR upstream timeout\n"
    )
    rt = fake_runtime(inspect={"web": inspect_payload("web")}, logs={"web": raw})

    out = await get_container_logs_impl(container_id="web", runtime=rt)

    assert out["container_name"] == "web"
    assert out["count"] == 2
    assert out["tail"] == 100
    assert out["entries"] == [
        {"timestamp": "2025-12-30T08:00:00.000000001Z", "stream": "stdout", "message": "connecting with [MASKED]"},
        {"timestamp": "2025-12-30T08:00:01.5Z", "stream": "stderr", "message": "ERROR upstream timeout"},
    ]
    assert rt.log_calls == [{"ref": "web", "tail": 100, "since": None, "until": None, "timestamps": True}]


@pytest.mark.asyncio
async def test_get_container_logs_tty_container(fake_runtime, inspect_payload) -> None:
    rt = fake_runtime(
        inspect={"web": inspect_payload("web", tty=True)},
        logs={"web": b"line one\r\nline two\r\n"},
    )
    out = await get_container_logs_impl(container_id="web", timestamps=False, runtime=rt)
    assert [e["message"] for e in out["entries"]] == ["line one", "line two"]
    assert {e["stream"] for e in out["entries"]} == {"stdout"}


@pytest.mark.asyncio
async def test_get_container_logs_caps_tail_and_resolves_window(fake_runtime, inspect_payload) -> None:
    rt = fake_runtime(inspect={"web": inspect_payload("web")}, logs={"web": b""})

    out = await get_container_logs_impl(container_id="web", tail=50_000, hour="2025-12-30T08", runtime=rt)

    assert out["tail"] == MAX_LOG_TAIL
    assert out["since"] == "2025-12-30T08:00:00+00:00"
    call = rt.log_calls[0]
    assert call["tail"] == MAX_LOG_TAIL
    assert call["until"] - call["since"] == 3600


@pytest.mark.asyncio
async def test_get_container_logs_rejects_bad_input(fake_runtime) -> None:
    with pytest.raises(ValueError):
        await get_container_logs_impl(container_id="   ", runtime=fake_runtime())
    with pytest.raises(ValueError):
        await get_container_logs_impl(container_id="web", tail=0, runtime=fake_runtime())


@pytest.mark.asyncio
async def test_get_container_logs_unknown_container(fake_runtime) -> None:
    with pytest.raises(TriageError) as ei:
        await get_container_logs_impl(container_id="ghost", runtime=fake_runtime())
    assert ei.value.kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_get_container_stats(fake_runtime, inspect_payload, raw_stats) -> None:
    rt = fake_runtime(
        inspect={"web": inspect_payload("web")},
        stats={"web": raw_stats(cpu_total=300, precpu_total=100, system=1100, presystem=100, mem_usage=50, mem_limit=200)},
    )
    out = await get_container_stats_impl(container_id="web", runtime=rt)

    assert out["container_name"] == "web"
    assert out["container_id"] == "abcdef123456"
    assert out["cpu_percent"] == 40.0
    assert out["memory_percent"] == 25.0
    assert isinstance(out["timestamp"], str)


@pytest.mark.asyncio
async def test_diagnose_running_container(fake_runtime, inspect_payload, raw_stats, make_frame) -> None:
    logs = make_frame(2, "kernel: OOMKilled process 1\n") + make_frame(1, "db password=hunter2 error\n")
    rt = fake_runtime(
        inspect={"web": inspect_payload("web")},
        stats={"web": raw_stats(mem_usage=97, mem_limit=100)},
        logs={"web": logs},
    )

    report = await diagnose_container_impl(container_id="web", runtime=rt)

    assert report["container_name"] == "web"
    assert report["state"] == "running"
    assert report["exit_code"] is None
    assert [s["type"] for s in report["symptoms"]] == ["high_memory", "oom_killed", "log_error"]
    assert report["likely_causes"][0]["confidence"] == 0.95
    assert report["suggestions"][0]["urgency"] == "immediate"
    assert report["suggestions"][0]["command"].endswith(" web")
    assert report["summary"].startswith("Memory usage is high (97.0%). ")
    assert report["detailed_explanation"].startswith("## Symptoms")

    samples = report["symptoms"][2]["evidence"]["sample_errors"]
    assert samples == [{"timestamp": None, "stream": "stdout", "message": "db [MASKED] error"}]
    assert rt.log_calls[0]["tail"] == 200
    json.dumps(report)


@pytest.mark.asyncio
async def test_diagnose_crash_looping_container(fake_runtime, inspect_payload) -> None:
    rt = fake_runtime(
        inspect={"api": inspect_payload("api", status="restarting", restart_count=6, exit_code=1)},
        logs={"api": b""},
    )

    report = await diagnose_container_impl(container_id="api", runtime=rt)

    assert report["restart_count"] == 6
    assert report["exit_code"] == 1
    assert report["uptime"] is None
    assert [(s["type"], s["severity"]) for s in report["symptoms"]] == [
        ("restart_loop", "critical"),
        ("exit_error", "error"),
    ]
    assert report["likely_causes"][0]["description"] == "The application is crashing repeatedly"


@pytest.mark.asyncio
async def test_diagnose_matches_patterns_before_masking(fake_runtime, inspect_payload, make_frame) -> None:
    rt = fake_runtime(
        inspect={"auth": inspect_payload("auth")},
        logs={"auth": make_frame(2, "auth token=FAILED_validation\n")},
    )

    report = await diagnose_container_impl(container_id="auth", runtime=rt)

    assert [s["type"] for s in report["symptoms"]] == ["log_error"]
    samples = report["symptoms"][0]["evidence"]["sample_errors"]
    assert samples == [{"timestamp": None, "stream": "stderr", "message": "auth [MASKED]"}]
    assert "FAILED_validation" not in json.dumps(report)


@pytest.mark.asyncio
async def test_diagnose_degrades_without_stats_or_logs(fake_runtime, inspect_payload) -> None:
    rt = fake_runtime(inspect={"web": inspect_payload("web")})
    report = await diagnose_container_impl(container_id="web", runtime=rt)
    assert report["symptoms"] == []
    assert report["summary"] == "Container is healthy"


@pytest.mark.asyncio
async def test_diagnose_without_logs(fake_runtime, inspect_payload) -> None:
    rt = fake_runtime(inspect={"web": inspect_payload("web")}, logs={"web": b"unused"})
    await diagnose_container_impl(container_id="web", include_logs=False, runtime=rt)
    assert rt.log_calls == []


@pytest.mark.asyncio
async def test_diagnose_unknown_container(fake_runtime) -> None:
    with pytest.raises(TriageError) as ei:
        await diagnose_container_impl(container_id="ghost", runtime=fake_runtime())
    assert ei.value.kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_detect_drift(tmp_path: Path, write_compose, fake_runtime, make_container) -> None:
    compose = write_compose(
        tmp_path / "compose.yml",
        "name: shop\nservices:\n  web:\n    image: nginx:1.25\n  db:\n    image: postgres:16\n",
    )
    rt = fake_runtime(
        containers=[
            make_container("shop-web-1", image="nginx:1.25"),
            make_container("shop-db-1", image="postgres:16", state=ContainerState.EXITED),
        ]
    )

    out = await detect_drift_impl(compose_file=str(compose), runtime=rt)

    assert out["status"] == "drifted"
    assert out["source"] == str(compose)
    assert [(d["service_name"], d["drift_type"]) for d in out["differences"]] == [
        ("db", "replica_mismatch"),
    ]
    assert out["untracked"] == []
    json.dumps(out)


@pytest.mark.asyncio
async def test_detect_drift_missing_file(tmp_path: Path, fake_runtime) -> None:
    with pytest.raises(TriageError) as ei:
        await detect_drift_impl(compose_file=str(tmp_path / "missing.yml"), runtime=fake_runtime())
    assert ei.value.kind is ErrorKind.NOT_FOUND

    with pytest.raises(ValueError):
        await detect_drift_impl(compose_file="", runtime=fake_runtime())
