"""Desired-vs-observed drift detection for compose projects."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime

from ..messages import DEFAULT_CATALOG, MessageCatalog, render
from ..models import (
    ContainerInfo,
    ContainerState,
    DriftReport,
    DriftStatus,
    DriftType,
    ServiceDrift,
)
from .compose import ComposeFile, ComposeService

logger = logging.getLogger(__name__)

COMPOSE_SERVICE_LABEL = "com.docker.compose.service"
DEFAULT_PROJECT_NAME = "default"


def normalize_image(ref: str) -> str:
    """Append ':latest' when the reference carries no tag or digest.

    Only the last path component is checked for a tag, so a registry port
    (``localhost:5000/app``) is not mistaken for one.
    """
    if "@" in ref:
        return ref
    last = ref.rsplit("/", 1)[-1]
    if ":" in last:
        return ref
    return f"{ref}:latest"


def image_matches(actual: str, expected: str) -> bool:
    return normalize_image(actual) == normalize_image(expected)


def container_matches(
    container: ContainerInfo,
    service_name: str,
    service: ComposeService,
    *,
    project_name: str,
) -> bool:
    """Label, then explicit container_name, then the '{project}-{service}' prefix."""
    if container.labels.get(COMPOSE_SERVICE_LABEL) == service_name:
        return True
    if service.container_name and container.name == service.container_name:
        return True
    return container.name.startswith(f"{project_name}-{service_name}")


def match_service(
    containers: Sequence[ContainerInfo],
    service_name: str,
    service: ComposeService,
    *,
    project_name: str,
) -> list[ContainerInfo]:
    """Containers matching one service, in observed order."""
    return [
        c for c in containers if container_matches(c, service_name, service, project_name=project_name)
    ]


def service_drift(
    service_name: str,
    service: ComposeService,
    matched: Sequence[ContainerInfo],
    *,
    messages: MessageCatalog = DEFAULT_CATALOG,
) -> list[ServiceDrift]:
    """Availability difference first, then the image check on the first match."""
    out: list[ServiceDrift] = []
    expected = service.replicas
    running = sum(1 for c in matched if c.state is ContainerState.RUNNING)

    if not matched:
        out.append(
            ServiceDrift(
                service_name=service_name,
                drift_type=DriftType.NOT_RUNNING,
                expected={"replicas": expected, "status": "running"},
                actual={"replicas": 0, "status": "stopped"},
                message=render(messages, "drift.not_running", service_name=service_name),
            )
        )
        return out

    if running < expected:
        out.append(
            ServiceDrift(
                service_name=service_name,
                drift_type=DriftType.REPLICA_MISMATCH,
                expected={"replicas": expected},
                actual={"replicas": running},
                message=render(
                    messages,
                    "drift.replica_mismatch",
                    service_name=service_name,
                    expected=expected,
                    actual=running,
                ),
            )
        )

    first = matched[0]
    if service.image and not image_matches(first.image, service.image):
        out.append(
            ServiceDrift(
                service_name=service_name,
                drift_type=DriftType.IMAGE_MISMATCH,
                expected={"image": service.image},
                actual={"image": first.image},
                message=render(messages, "drift.image_mismatch", service_name=service_name),
            )
        )

    return out


def untracked_containers(
    containers: Sequence[ContainerInfo],
    matched_ids: Iterable[frozenset[str]],
) -> list[ContainerInfo]:
    """Containers whose id appears in none of the per-service match sets."""
    tracked: frozenset[str] = frozenset().union(*matched_ids)
    return [c for c in containers if c.id not in tracked]


def summarize_drift(differences: Sequence[ServiceDrift], messages: MessageCatalog = DEFAULT_CATALOG) -> str:
    if not differences:
        return render(messages, "drift.synced")
    counts = Counter(d.drift_type.value for d in differences)
    tally = ", ".join(f"{kind}: {n}" for kind, n in counts.items())
    return render(messages, "drift.detected", tally=tally)


def detect_drift(
    desired: ComposeFile,
    observed: Sequence[ContainerInfo],
    *,
    source: str,
    project_name: str | None = None,
    messages: MessageCatalog | None = None,
    now: datetime | None = None,
) -> DriftReport:
    """Compare a compose document against the observed containers.

    A container may match more than one service; matching is evaluated per
    service without exclusivity.
    """
    messages = messages or DEFAULT_CATALOG
    project = project_name or desired.name or DEFAULT_PROJECT_NAME

    differences: list[ServiceDrift] = []
    match_sets: list[frozenset[str]] = []

    services: Mapping[str, ComposeService] = desired.services
    for name, service in services.items():
        if not service.image:
            logger.warning("Service %s declares no image; skipping (build-only services are not compared)", name)
            continue

        matched = match_service(observed, name, service, project_name=project)
        match_sets.append(frozenset(c.id for c in matched))
        differences.extend(service_drift(name, service, matched, messages=messages))

    untracked = untracked_containers(observed, match_sets)
    for c in untracked:
        differences.append(
            ServiceDrift(
                service_name=c.name,
                drift_type=DriftType.EXTRA_CONTAINER,
                expected={},
                actual={"name": c.name},
                message=render(messages, "drift.extra_container", container_name=c.name),
            )
        )

    return DriftReport(
        timestamp=now or datetime.now(UTC),
        source=source,
        status=DriftStatus.DRIFTED if differences else DriftStatus.SYNCED,
        differences=differences,
        untracked=untracked,
        summary=summarize_drift(differences, messages),
    )
