"""Cause and suggestion rules, expressed as data.

Rules are evaluated in declaration order. A cause rule fires when every
symptom type it requires is present and its guard allows it; suggestion
rules fire when any of their trigger types is present.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from ..messages import DEFAULT_CATALOG, MessageCatalog, render
from ..models import LikelyCause, Suggestion, SuggestionUrgency, Symptom, SymptomType


class Guard(str, Enum):
    ALWAYS = "always"
    ONLY_IF_NO_PRIOR_CAUSE = "only_if_no_prior_cause"


@dataclass(frozen=True, slots=True)
class CauseRule:
    key: str
    requires: tuple[SymptomType, ...]
    confidence: float
    evidence_keys: tuple[str, ...]
    guard: Guard = Guard.ALWAYS

    def matches(self, present: set[SymptomType], prior_causes: int) -> bool:
        if self.guard is Guard.ONLY_IF_NO_PRIOR_CAUSE and prior_causes:
            return False
        return all(t in present for t in self.requires)


@dataclass(frozen=True, slots=True)
class SuggestionRule:
    key: str
    triggers: tuple[SymptomType, ...]
    urgency: SuggestionUrgency
    command: str | None = None  # formatted with {container}


CAUSE_RULES: tuple[CauseRule, ...] = (
    CauseRule(
        key="cause.memory_limit_exceeded",
        requires=(SymptomType.OOM_KILLED, SymptomType.HIGH_MEMORY),
        confidence=0.95,
        evidence_keys=("oom", "memory"),
    ),
    CauseRule(
        key="cause.crash_loop",
        requires=(SymptomType.RESTART_LOOP, SymptomType.EXIT_ERROR),
        confidence=0.9,
        evidence_keys=("exit", "restarts"),
    ),
    CauseRule(
        key="cause.cpu_bound",
        requires=(SymptomType.HIGH_CPU,),
        confidence=0.7,
        evidence_keys=("cpu",),
        guard=Guard.ONLY_IF_NO_PRIOR_CAUSE,
    ),
)

SUGGESTION_RULES: tuple[SuggestionRule, ...] = (
    SuggestionRule(
        key="suggestion.increase_memory",
        triggers=(SymptomType.OOM_KILLED,),
        urgency=SuggestionUrgency.IMMEDIATE,
        command="docker update --memory <new-limit> --memory-swap <new-limit> {container}",
    ),
    SuggestionRule(
        key="suggestion.check_logs",
        triggers=(SymptomType.RESTART_LOOP,),
        urgency=SuggestionUrgency.IMMEDIATE,
        command="docker logs --tail 200 {container}",
    ),
    SuggestionRule(
        key="suggestion.optimize_resource",
        triggers=(SymptomType.HIGH_CPU, SymptomType.HIGH_MEMORY),
        urgency=SuggestionUrgency.SHORT_TERM,
        command="docker stats --no-stream {container}",
    ),
)


def infer_causes(
    symptoms: Sequence[Symptom],
    *,
    rules: Sequence[CauseRule] = CAUSE_RULES,
    messages: MessageCatalog = DEFAULT_CATALOG,
) -> list[LikelyCause]:
    """Apply cause rules in order over the symptom set."""
    present = {s.type for s in symptoms}
    causes: list[LikelyCause] = []
    for rule in rules:
        if not rule.matches(present, len(causes)):
            continue
        causes.append(
            LikelyCause(
                description=render(messages, rule.key),
                confidence=rule.confidence,
                evidence=[render(messages, f"{rule.key}.evidence.{k}") for k in rule.evidence_keys],
                related_symptoms=rule.requires,
            )
        )
    return causes


def generate_suggestions(
    symptoms: Sequence[Symptom],
    *,
    container: str | None = None,
    rules: Sequence[SuggestionRule] = SUGGESTION_RULES,
    messages: MessageCatalog = DEFAULT_CATALOG,
) -> list[Suggestion]:
    """One suggestion per rule whose trigger types appear in the symptoms."""
    present = {s.type for s in symptoms}
    out: list[Suggestion] = []
    for rule in rules:
        if not any(t in present for t in rule.triggers):
            continue
        command = None
        if container and rule.command:
            command = rule.command.format(container=container)
        out.append(
            Suggestion(
                urgency=rule.urgency,
                action=render(messages, rule.key),
                rationale=render(messages, f"{rule.key}.rationale"),
                command=command,
            )
        )
    return out
