"""Tiered threshold tables for the diagnosis engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

from .models import Severity

CPU_ENV = "CONTAINER_TRIAGE_CPU_THRESHOLDS"
MEMORY_ENV = "CONTAINER_TRIAGE_MEMORY_THRESHOLDS"
RESTART_ENV = "CONTAINER_TRIAGE_RESTART_THRESHOLDS"


@dataclass(frozen=True, slots=True)
class ThresholdTable:
    """Warning/error/critical breakpoints for one metric (strictly increasing)."""

    warning: float
    error: float
    critical: float

    def __post_init__(self) -> None:
        if not (self.warning < self.error < self.critical):
            raise ValueError(
                "thresholds must be strictly increasing: "
                f"warning={self.warning}, error={self.error}, critical={self.critical}"
            )

    def tiers(self) -> tuple[tuple[Severity, float], ...]:
        """Tiers in evaluation order, most severe first."""
        return (
            (Severity.CRITICAL, self.critical),
            (Severity.ERROR, self.error),
            (Severity.WARNING, self.warning),
        )

    def evaluate(self, value: float, *, inclusive: bool = False) -> tuple[Severity, float] | None:
        """Return the first matching (severity, breakpoint), or None.

        ``inclusive`` switches the comparison from ``>`` to ``>=``.
        """
        for severity, breakpoint in self.tiers():
            hit = value >= breakpoint if inclusive else value > breakpoint
            if hit:
                return severity, breakpoint
        return None


@dataclass(frozen=True, slots=True)
class DiagnosisThresholds:
    cpu: ThresholdTable = field(default_factory=lambda: ThresholdTable(70, 85, 95))
    memory: ThresholdTable = field(default_factory=lambda: ThresholdTable(75, 85, 95))
    # Restarts are already a completed count, compared inclusively.
    restart_count: ThresholdTable = field(default_factory=lambda: ThresholdTable(2, 3, 5))


def parse_threshold_table(raw: str, *, name: str) -> ThresholdTable:
    """Parse ``"warning,error,critical"`` into a ThresholdTable."""
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 3:
        raise ValueError(f"{name} must look like 'warning,error,critical' (e.g., 70,85,95)")
    try:
        warning, error, critical = (float(p) for p in parts)
    except ValueError as exc:
        raise ValueError(f"{name} must contain numbers") from exc
    try:
        return ThresholdTable(warning, error, critical)
    except ValueError as exc:
        raise ValueError(f"{name}: {exc}") from exc


def resolve_thresholds(base: DiagnosisThresholds | None = None) -> DiagnosisThresholds:
    """Return thresholds with optional env overrides applied."""
    if base is None:
        base = DiagnosisThresholds()

    overrides: dict[str, ThresholdTable] = {}
    for attr, env_name in (("cpu", CPU_ENV), ("memory", MEMORY_ENV), ("restart_count", RESTART_ENV)):
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        overrides[attr] = parse_threshold_table(raw, name=env_name)

    if not overrides:
        return base
    return replace(base, **overrides)
