"""Resource metrics from cumulative runtime counters.

The runtime reports monotonically increasing counters together with the
previous sample (``precpu_stats``); percentages are computed from deltas
between the two. Missing fields default to zero before any arithmetic.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import ContainerStats


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CpuUsage(_Lenient):
    total_usage: int = 0


class CpuSnapshot(_Lenient):
    cpu_usage: CpuUsage = Field(default_factory=CpuUsage)
    system_cpu_usage: int = 0
    online_cpus: int = 0


class MemorySnapshot(_Lenient):
    usage: int = 0
    limit: int = 0


class NetworkCounters(_Lenient):
    rx_bytes: int = 0
    tx_bytes: int = 0


class BlockIoEntry(_Lenient):
    op: str = ""
    value: int = 0


class BlockIoSnapshot(_Lenient):
    io_service_bytes_recursive: list[BlockIoEntry] = Field(default_factory=list)

    @field_validator("io_service_bytes_recursive", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class RawStatsSnapshot(_Lenient):
    """Typed view over the runtime's one-shot stats payload."""

    cpu_stats: CpuSnapshot = Field(default_factory=CpuSnapshot)
    precpu_stats: CpuSnapshot = Field(default_factory=CpuSnapshot)
    memory_stats: MemorySnapshot = Field(default_factory=MemorySnapshot)
    networks: dict[str, NetworkCounters] = Field(default_factory=dict)
    blkio_stats: BlockIoSnapshot = Field(default_factory=BlockIoSnapshot)

    @field_validator(
        "cpu_stats", "precpu_stats", "memory_stats", "networks", "blkio_stats", mode="before"
    )
    @classmethod
    def _none_is_default(cls, v: Any) -> Any:
        return {} if v is None else v

    @classmethod
    def from_runtime(cls, payload: Mapping[str, Any]) -> RawStatsSnapshot:
        return cls.model_validate(dict(payload))


def round_percent(value: float) -> float:
    """Round to 2 decimals, half-up."""
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def cpu_percent(snapshot: RawStatsSnapshot) -> float:
    cpu_delta = snapshot.cpu_stats.cpu_usage.total_usage - snapshot.precpu_stats.cpu_usage.total_usage
    system_delta = snapshot.cpu_stats.system_cpu_usage - snapshot.precpu_stats.system_cpu_usage
    if system_delta <= 0:
        return 0.0
    cpus = snapshot.cpu_stats.online_cpus or 1
    return round_percent(cpu_delta / system_delta * cpus * 100)


def memory_percent(snapshot: RawStatsSnapshot) -> float:
    mem = snapshot.memory_stats
    if mem.limit <= 0:
        return 0.0
    return round_percent(mem.usage / mem.limit * 100)


def network_totals(snapshot: RawStatsSnapshot) -> tuple[int, int]:
    rx = sum(n.rx_bytes for n in snapshot.networks.values())
    tx = sum(n.tx_bytes for n in snapshot.networks.values())
    return rx, tx


def block_io_totals(snapshot: RawStatsSnapshot) -> tuple[int, int]:
    read = 0
    write = 0
    for io in snapshot.blkio_stats.io_service_bytes_recursive:
        op = io.op.lower()
        if op == "read":
            read += io.value
        elif op == "write":
            write += io.value
    return read, write


def calculate_stats(
    snapshot: RawStatsSnapshot | Mapping[str, Any],
    *,
    container_id: str | None = None,
    container_name: str | None = None,
    now: datetime | None = None,
) -> ContainerStats:
    """Build ContainerStats from a raw snapshot (model or runtime dict)."""
    if not isinstance(snapshot, RawStatsSnapshot):
        snapshot = RawStatsSnapshot.from_runtime(snapshot)

    rx, tx = network_totals(snapshot)
    read, write = block_io_totals(snapshot)

    return ContainerStats(
        cpu_percent=cpu_percent(snapshot),
        cpu_count=snapshot.cpu_stats.online_cpus or 1,
        memory_usage_bytes=snapshot.memory_stats.usage,
        memory_limit_bytes=snapshot.memory_stats.limit,
        memory_percent=memory_percent(snapshot),
        network_rx_bytes=rx,
        network_tx_bytes=tx,
        block_read_bytes=read,
        block_write_bytes=write,
        timestamp=now or datetime.now(UTC),
        container_id=container_id,
        container_name=container_name,
    )
