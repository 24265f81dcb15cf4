"""Core data models for container triage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class LogStream(str, Enum):
    """Origin of a demultiplexed log line."""

    STDOUT = "stdout"
    STDERR = "stderr"


class ContainerState(str, Enum):
    """Normalized container lifecycle states reported by the runtime."""

    RUNNING = "running"
    EXITED = "exited"
    PAUSED = "paused"
    RESTARTING = "restarting"
    DEAD = "dead"
    CREATED = "created"
    REMOVING = "removing"


_SEVERITY_RANK = {"info": 0, "warning": 1, "error": 2, "critical": 3}


class Severity(str, Enum):
    """Symptom severity tiers, ordered info < warning < error < critical."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


class SymptomType(str, Enum):
    HIGH_CPU = "high_cpu"
    HIGH_MEMORY = "high_memory"
    OOM_KILLED = "oom_killed"
    RESTART_LOOP = "restart_loop"
    EXIT_ERROR = "exit_error"
    NETWORK_ERROR = "network_error"
    DISK_PRESSURE = "disk_pressure"
    SLOW_RESPONSE = "slow_response"
    LOG_ERROR = "log_error"


class SuggestionUrgency(str, Enum):
    IMMEDIATE = "immediate"
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"


class DriftType(str, Enum):
    NOT_RUNNING = "not_running"
    EXTRA_CONTAINER = "extra_container"
    REPLICA_MISMATCH = "replica_mismatch"
    IMAGE_MISMATCH = "image_mismatch"
    CONFIG_MISMATCH = "config_mismatch"
    MISSING_SERVICE = "missing_service"


class DriftStatus(str, Enum):
    SYNCED = "synced"
    DRIFTED = "drifted"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class LogEntry:
    """A single demultiplexed log line."""

    timestamp: str | None  # RFC3339 as emitted by the runtime, None when not requested/absent
    stream: LogStream
    message: str


@dataclass(frozen=True, slots=True)
class ContainerInfo:
    """Observed container, normalized from runtime list/inspect payloads."""

    id: str
    name: str
    image: str
    state: ContainerState
    status: str
    created: str
    ports: dict[str, str | None] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ContainerStats:
    """Point-in-time resource metrics derived from two counter snapshots."""

    cpu_percent: float
    cpu_count: int
    memory_usage_bytes: int
    memory_limit_bytes: int
    memory_percent: float
    network_rx_bytes: int
    network_tx_bytes: int
    block_read_bytes: int
    block_write_bytes: int
    timestamp: datetime
    container_id: str | None = None
    container_name: str | None = None


@dataclass(frozen=True, slots=True)
class Symptom:
    type: SymptomType
    severity: Severity
    description: str
    evidence: dict[str, Any]
    detected_at: datetime


@dataclass(frozen=True, slots=True)
class LikelyCause:
    description: str
    confidence: float
    evidence: list[str]
    related_symptoms: tuple[SymptomType, ...]


@dataclass(frozen=True, slots=True)
class Suggestion:
    urgency: SuggestionUrgency
    action: str
    rationale: str
    command: str | None = None


@dataclass(frozen=True, slots=True)
class DiagnosisResult:
    """Raw engine output: symptoms in detection order, then causes and suggestions."""

    symptoms: list[Symptom]
    likely_causes: list[LikelyCause]
    suggestions: list[Suggestion]


@dataclass(frozen=True, slots=True)
class DiagnosisReport:
    container_id: str
    container_name: str
    timestamp: datetime
    state: ContainerState
    uptime: str | None
    restart_count: int
    exit_code: int | None
    symptoms: list[Symptom]
    likely_causes: list[LikelyCause]
    suggestions: list[Suggestion]
    summary: str
    detailed_explanation: str


@dataclass(frozen=True, slots=True)
class ServiceDrift:
    service_name: str
    drift_type: DriftType
    expected: dict[str, Any]
    actual: dict[str, Any]
    message: str


@dataclass(frozen=True, slots=True)
class DriftReport:
    timestamp: datetime
    source: str
    status: DriftStatus
    differences: list[ServiceDrift]
    untracked: list[ContainerInfo]
    summary: str


@dataclass(frozen=True, slots=True)
class HealthCheck:
    status: str  # healthy | unhealthy
    runtime_connected: bool
    runtime_version: str | None
    timestamp: datetime
    message: str | None = None
