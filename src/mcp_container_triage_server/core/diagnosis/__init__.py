"""Diagnosis package."""

from __future__ import annotations

from .engine import check_logs, diagnose
from .report import build_report, explain, summarize
from .rules import CAUSE_RULES, SUGGESTION_RULES, CauseRule, Guard, SuggestionRule

__all__ = [
    "CAUSE_RULES",
    "SUGGESTION_RULES",
    "CauseRule",
    "Guard",
    "SuggestionRule",
    "build_report",
    "check_logs",
    "diagnose",
    "explain",
    "summarize",
]
