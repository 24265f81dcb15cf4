"""Message catalog for human-readable report text.

Diagnosis and drift logic only produce enums and evidence; every sentence a
user reads is rendered here from a template table supplied by the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

ENGLISH_TEMPLATES: dict[str, str] = {
    # symptoms
    "symptom.high_cpu": "CPU usage is high ({percent:.1f}%)",
    "symptom.high_memory": "Memory usage is high ({percent:.1f}%)",
    "symptom.restart_loop": "Container restarted {count} times",
    "symptom.exit_error": "Container exited with code {exit_code}",
    "symptom.oom_killed": "Container was killed for running out of memory (OOMKilled)",
    "symptom.log_error": "Found {count} error lines in the logs",
    # causes
    "cause.memory_limit_exceeded": "The container exceeded its memory limit and was killed",
    "cause.memory_limit_exceeded.evidence.oom": "OOM kill found in logs",
    "cause.memory_limit_exceeded.evidence.memory": "High memory usage",
    "cause.crash_loop": "The application is crashing repeatedly",
    "cause.crash_loop.evidence.exit": "Abnormal exit detected",
    "cause.crash_loop.evidence.restarts": "Repeated restarts",
    "cause.cpu_bound": "A CPU-intensive workload or an infinite loop may be running",
    "cause.cpu_bound.evidence.cpu": "High CPU usage",
    # suggestions
    "suggestion.increase_memory": "Increase the container memory limit",
    "suggestion.increase_memory.rationale": "The container is being killed for exceeding its memory limit",
    "suggestion.check_logs": "Inspect the logs to find the root cause",
    "suggestion.check_logs.rationale": "The cause of the repeated restarts needs to be identified",
    "suggestion.optimize_resource": "Optimize resource usage",
    "suggestion.optimize_resource.rationale": "Reducing resource usage may improve performance",
    # report
    "report.healthy": "Container is healthy",
    "report.symptoms": "Symptoms",
    "report.causes": "Likely causes",
    "report.suggestions": "Suggested actions",
    "report.confidence": "confidence: {percent}%",
    # drift
    "drift.not_running": "Service {service_name} is not running",
    "drift.replica_mismatch": "Service {service_name} has {actual} running replicas, expected {expected}",
    "drift.image_mismatch": "Service {service_name} runs a different image than declared",
    "drift.extra_container": "Container {container_name} is not declared in the compose file",
    "drift.synced": "All services match the compose file",
    "drift.detected": "Drift detected: {tally}",
}


@dataclass(frozen=True, slots=True)
class MessageCatalog:
    """Locale-scoped template table."""

    locale: str = "en"
    templates: Mapping[str, str] = field(default_factory=lambda: dict(ENGLISH_TEMPLATES))


DEFAULT_CATALOG = MessageCatalog()


def render(catalog: MessageCatalog, key: str, **params: Any) -> str:
    """Format a template; unknown keys render as the key itself."""
    template = catalog.templates.get(key)
    if template is None:
        logger.debug("Missing message %r for locale %s", key, catalog.locale)
        return key
    try:
        return template.format(**params)
    except (KeyError, IndexError, ValueError) as exc:
        logger.warning("Bad template %r for locale %s: %s", key, catalog.locale, exc)
        return template
