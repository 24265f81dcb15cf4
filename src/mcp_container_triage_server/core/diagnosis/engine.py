"""Rule-based container diagnosis.

Symptoms are detected in a fixed order (CPU, memory, restart loop, exit
code, log patterns) and are never re-sorted; causes and suggestions are
derived from that symptom list only.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import UTC, datetime

from ..messages import DEFAULT_CATALOG, MessageCatalog, render
from ..models import (
    ContainerStats,
    DiagnosisResult,
    LogEntry,
    Severity,
    Symptom,
    SymptomType,
)
from ..thresholds import DiagnosisThresholds
from .rules import generate_suggestions, infer_causes

_OOM_RE = re.compile(r"oomkilled|out of memory", re.IGNORECASE)
_ERROR_RE = re.compile(r"error|exception|fatal|panic|fail", re.IGNORECASE)
MAX_SAMPLE_ERRORS = 3


def _metric_symptom(
    value: float,
    *,
    kind: SymptomType,
    evidence_key: str,
    thresholds: DiagnosisThresholds,
    messages: MessageCatalog,
    now: datetime,
) -> Symptom | None:
    table = thresholds.cpu if kind is SymptomType.HIGH_CPU else thresholds.memory
    hit = table.evaluate(value)
    if hit is None:
        return None
    severity, breakpoint = hit
    return Symptom(
        type=kind,
        severity=severity,
        description=render(messages, f"symptom.{kind.value}", percent=value),
        evidence={evidence_key: value, "threshold": breakpoint},
        detected_at=now,
    )


def check_cpu(
    stats: ContainerStats,
    *,
    thresholds: DiagnosisThresholds,
    messages: MessageCatalog = DEFAULT_CATALOG,
    now: datetime,
) -> Symptom | None:
    return _metric_symptom(
        stats.cpu_percent,
        kind=SymptomType.HIGH_CPU,
        evidence_key="cpu_percent",
        thresholds=thresholds,
        messages=messages,
        now=now,
    )


def check_memory(
    stats: ContainerStats,
    *,
    thresholds: DiagnosisThresholds,
    messages: MessageCatalog = DEFAULT_CATALOG,
    now: datetime,
) -> Symptom | None:
    return _metric_symptom(
        stats.memory_percent,
        kind=SymptomType.HIGH_MEMORY,
        evidence_key="memory_percent",
        thresholds=thresholds,
        messages=messages,
        now=now,
    )


def check_restart_loop(
    restart_count: int,
    *,
    thresholds: DiagnosisThresholds,
    messages: MessageCatalog = DEFAULT_CATALOG,
    now: datetime,
) -> Symptom | None:
    hit = thresholds.restart_count.evaluate(restart_count, inclusive=True)
    if hit is None:
        return None
    severity, breakpoint = hit
    return Symptom(
        type=SymptomType.RESTART_LOOP,
        severity=severity,
        description=render(messages, "symptom.restart_loop", count=restart_count),
        evidence={"restart_count": restart_count, "threshold": breakpoint},
        detected_at=now,
    )


def check_exit_code(
    exit_code: int | None,
    *,
    messages: MessageCatalog = DEFAULT_CATALOG,
    now: datetime,
) -> Symptom | None:
    if exit_code is None or exit_code == 0:
        return None
    return Symptom(
        type=SymptomType.EXIT_ERROR,
        severity=Severity.ERROR,
        description=render(messages, "symptom.exit_error", exit_code=exit_code),
        evidence={"exit_code": exit_code},
        detected_at=now,
    )


def check_logs(
    logs: Sequence[LogEntry],
    *,
    messages: MessageCatalog = DEFAULT_CATALOG,
    now: datetime,
) -> list[Symptom]:
    """OOM and generic error pattern checks; both may fire."""
    symptoms: list[Symptom] = []

    oom = [e for e in logs if _OOM_RE.search(e.message)]
    if oom:
        symptoms.append(
            Symptom(
                type=SymptomType.OOM_KILLED,
                severity=Severity.CRITICAL,
                description=render(messages, "symptom.oom_killed"),
                evidence={"occurrences": len(oom)},
                detected_at=now,
            )
        )

    errors = [e for e in logs if _ERROR_RE.search(e.message)]
    if errors:
        symptoms.append(
            Symptom(
                type=SymptomType.LOG_ERROR,
                severity=Severity.WARNING,
                description=render(messages, "symptom.log_error", count=len(errors)),
                evidence={"error_count": len(errors), "sample_errors": errors[:MAX_SAMPLE_ERRORS]},
                detected_at=now,
            )
        )

    return symptoms


def diagnose(
    stats: ContainerStats | None,
    logs: Sequence[LogEntry],
    restart_count: int = 0,
    exit_code: int | None = None,
    *,
    thresholds: DiagnosisThresholds | None = None,
    messages: MessageCatalog | None = None,
    container: str | None = None,
    now: datetime | None = None,
) -> DiagnosisResult:
    """Diagnose a container from metrics, logs, restart count and exit code.

    Parameters
    ----------
    stats:
        Current metrics, or None when unavailable (CPU/memory checks are skipped).
    logs:
        Demultiplexed log entries to scan.
    container:
        Optional container reference used to fill in suggested commands.
    now:
        Detection timestamp; defaults to the current UTC time.
    """
    thresholds = thresholds or DiagnosisThresholds()
    messages = messages or DEFAULT_CATALOG
    now = now or datetime.now(UTC)

    symptoms: list[Symptom] = []

    if stats is not None:
        for check in (check_cpu, check_memory):
            s = check(stats, thresholds=thresholds, messages=messages, now=now)
            if s is not None:
                symptoms.append(s)

    s = check_restart_loop(restart_count, thresholds=thresholds, messages=messages, now=now)
    if s is not None:
        symptoms.append(s)

    s = check_exit_code(exit_code, messages=messages, now=now)
    if s is not None:
        symptoms.append(s)

    symptoms.extend(check_logs(logs, messages=messages, now=now))

    return DiagnosisResult(
        symptoms=symptoms,
        likely_causes=infer_causes(symptoms, messages=messages),
        suggestions=generate_suggestions(symptoms, container=container, messages=messages),
    )
