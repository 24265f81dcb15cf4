"""Redaction helpers for container log output."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import replace

from .models import LogEntry, Symptom

MASK = "[MASKED]"

_PASSWORD_RE = re.compile(r"(?i)password\s*[:=]\s*\S+")
_API_KEY_RE = re.compile(r"(?i)api[_-]?key\s*[:=]\s*\S+")
_SECRET_RE = re.compile(r"(?i)secret\s*[:=]\s*\S+")
_TOKEN_RE = re.compile(r"(?i)token\s*[:=]\s*\S+")

SENSITIVE_PATTERNS: tuple[re.Pattern[str], ...] = (
    _PASSWORD_RE,
    _API_KEY_RE,
    _SECRET_RE,
    _TOKEN_RE,
)


def mask_sensitive(text: str) -> str:
    """Replace key=value credentials in text with a fixed marker."""
    for pattern in SENSITIVE_PATTERNS:
        text = pattern.sub(MASK, text)
    return text


def mask_log_entries(entries: Iterable[LogEntry]) -> list[LogEntry]:
    """Return masked copies of entries; stream and timestamp are untouched."""
    return [replace(e, message=mask_sensitive(e.message)) for e in entries]


def mask_symptom_evidence(symptoms: Iterable[Symptom]) -> list[Symptom]:
    """Mask log lines quoted as evidence; detection runs on unmasked text."""
    out: list[Symptom] = []
    for s in symptoms:
        samples = s.evidence.get("sample_errors")
        if samples:
            s = replace(s, evidence={**s.evidence, "sample_errors": mask_log_entries(samples)})
        out.append(s)
    return out
