"""Summary text and report assembly for diagnosis results."""

from __future__ import annotations

from datetime import UTC, datetime

from ..messages import DEFAULT_CATALOG, MessageCatalog, render
from ..models import ContainerInfo, DiagnosisReport, DiagnosisResult


def summarize(result: DiagnosisResult, messages: MessageCatalog = DEFAULT_CATALOG) -> str:
    """Top symptom, followed by the top cause when one was inferred."""
    if not result.symptoms:
        return render(messages, "report.healthy")

    top = result.symptoms[0].description
    if result.likely_causes:
        return f"{top}. {result.likely_causes[0].description}"
    return top


def explain(result: DiagnosisResult, messages: MessageCatalog = DEFAULT_CATALOG) -> str:
    """Render a Markdown explanation; empty sections are omitted."""
    parts: list[str] = []

    if result.symptoms:
        parts.append(f"## {render(messages, 'report.symptoms')}")
        for i, s in enumerate(result.symptoms, start=1):
            parts.append(f"{i}. [{s.severity.value.upper()}] {s.description}")

    if result.likely_causes:
        if parts:
            parts.append("")
        parts.append(f"## {render(messages, 'report.causes')}")
        for i, c in enumerate(result.likely_causes, start=1):
            conf = render(messages, "report.confidence", percent=round(c.confidence * 100))
            parts.append(f"{i}. {c.description} ({conf})")

    if result.suggestions:
        if parts:
            parts.append("")
        parts.append(f"## {render(messages, 'report.suggestions')}")
        for i, sg in enumerate(result.suggestions, start=1):
            line = f"{i}. [{sg.urgency.value.upper()}] {sg.action}"
            if sg.command:
                line += f" (`{sg.command}`)"
            parts.append(line)

    return "\n".join(parts)


def build_report(
    container: ContainerInfo,
    result: DiagnosisResult,
    *,
    restart_count: int = 0,
    exit_code: int | None = None,
    uptime: str | None = None,
    messages: MessageCatalog = DEFAULT_CATALOG,
    now: datetime | None = None,
) -> DiagnosisReport:
    return DiagnosisReport(
        container_id=container.id,
        container_name=container.name,
        timestamp=now or datetime.now(UTC),
        state=container.state,
        uptime=uptime,
        restart_count=restart_count,
        exit_code=exit_code,
        symptoms=result.symptoms,
        likely_causes=result.likely_causes,
        suggestions=result.suggestions,
        summary=summarize(result, messages),
        detailed_explanation=explain(result, messages),
    )
