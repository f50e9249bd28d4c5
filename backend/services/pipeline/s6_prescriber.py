"""Stage 6: Prescriber - issues and training prescriptions for one cycle.

Template-based rules, no scoring model:
    1. Themes whose mean indicator score is below GOOD become issues, each
       with a territorial interpretation and an evidence list.
    2. Issues are matched to trainings through indicator mappings, filtered
       by the actions the rule engine still allows for the issue's pillar.
"""

import logging
from collections import defaultdict
from typing import Any, Sequence

from models.schemas.indicator import PILLAR_NAMES, PILLAR_ORDER, IndicatorScore, Pillar
from models.schemas.pillar_score import Severity
from models.schemas.prescription import (
    Issue,
    IssueEvidence,
    Prescription,
    PrescriptionPlan,
    TargetAgent,
    TrainingMapping,
)
from models.schemas.relevance import RelevanceCandidate
from models.schemas.rule_outcome import ActionCode, Interpretation, RuleOutcome
from services.pipeline.base import BaseEngineService
from services.pipeline.s2_pillar_aggregator import GOOD_FROM, severity_for

logger = logging.getLogger(__name__)

MAX_TRAININGS_PER_ISSUE = 3

DEFAULT_JUSTIFICATION = (
    "This training was prescribed because indicator {indicator} is at {status} level "
    "in pillar {pillar}."
)

SEVERITY_LABELS = {
    Severity.CRITICAL: "Critical",
    Severity.MODERATE: "Attention",
    Severity.GOOD: "Adequate",
}

INTERPRETATION_LABELS = {
    Interpretation.STRUCTURAL: "Structural",
    Interpretation.MANAGEMENT: "Management",
    Interpretation.DELIVERY: "Delivery",
}

TARGET_AGENTS = {
    Interpretation.STRUCTURAL: TargetAgent.MANAGERS,  # strategic decisions
    Interpretation.MANAGEMENT: TargetAgent.TECHNICIANS,
    Interpretation.DELIVERY: TargetAgent.TRADE,  # service delivery
}

THEME_DESCRIPTIONS = {
    "environmental": "Environmental sustainability",
    "governance": "Governance and public management",
    "infrastructure": "Tourism infrastructure",
    "marketing": "Marketing and promotion",
    "performance": "Market performance",
    "supply": "Tourism supply",
    "social": "Sociocultural aspects",
    "economic": "Economic development",
}

_SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.MODERATE: 1, Severity.GOOD: 2}


class PrescriberService(BaseEngineService):
    engine_name = "s6_prescriber"

    def load(self) -> None:
        logger.info("S6 Prescriber ready (template rules)")

    def predict(self, **kwargs: Any) -> PrescriptionPlan:
        self.ensure_loaded()
        indicator_scores: list[IndicatorScore] = kwargs["indicator_scores"]
        outcome: RuleOutcome = kwargs["rule_outcome"]
        mappings: list[TrainingMapping] = kwargs.get("mappings", [])
        trainings: list[RelevanceCandidate] = kwargs.get("trainings", [])

        issues = detect_issues(indicator_scores)
        prescriptions, skipped = prescribe(issues, mappings, trainings, outcome)
        return PrescriptionPlan(issues=issues, prescriptions=prescriptions, skipped_pillars=skipped)


# ---------------------------------------------------------------------------
# Issue detection
# ---------------------------------------------------------------------------

def detect_issues(indicator_scores: Sequence[IndicatorScore]) -> list[Issue]:
    """One issue per (pillar, theme) whose plain mean score is below GOOD."""
    groups: dict[tuple[Pillar, str], list[IndicatorScore]] = defaultdict(list)
    for s in indicator_scores:
        groups[(s.pillar, s.theme)].append(s)

    issues: list[Issue] = []
    for pillar in PILLAR_ORDER:
        themes = sorted(theme for (p, theme) in groups if p == pillar)
        for theme in themes:
            members = groups[(pillar, theme)]
            mean = sum(m.score for m in members) / len(members)
            if mean >= GOOD_FROM:
                continue
            severity = severity_for(mean)
            interpretation = interpret_theme(pillar, theme, mean)
            issues.append(Issue(
                pillar=pillar,
                theme=theme,
                score=mean,
                severity=severity,
                interpretation=interpretation,
                title=_issue_title(pillar, theme, severity, interpretation),
                evidence=[IssueEvidence(code=m.indicator_code, name=m.name, score=m.score) for m in members],
            ))
    return issues


def interpret_theme(pillar: Pillar, theme: str, score: float) -> Interpretation:
    """Territorial reading of a low theme, from its pillar and theme keywords."""
    t = theme.lower()
    critical = score < 0.34

    if pillar is Pillar.RA:
        if any(k in t for k in ("social", "economic", "gini")):
            return Interpretation.STRUCTURAL
        if any(k in t for k in ("environmental", "cultural")):
            return Interpretation.STRUCTURAL if critical else Interpretation.MANAGEMENT
        return Interpretation.STRUCTURAL

    if pillar is Pillar.OE:
        if any(k in t for k in ("infrastructure", "superstructure")):
            return Interpretation.STRUCTURAL if critical else Interpretation.MANAGEMENT
        return Interpretation.MANAGEMENT

    if any(k in t for k in ("supply", "demand")):
        return Interpretation.MANAGEMENT if critical else Interpretation.DELIVERY
    return Interpretation.DELIVERY


def _issue_title(pillar: Pillar, theme: str, severity: Severity, interpretation: Interpretation) -> str:
    description = THEME_DESCRIPTIONS.get(theme.lower(), theme or "Unclassified theme")
    return (
        f"{description} at {SEVERITY_LABELS[severity]} level ({PILLAR_NAMES[pillar]}) "
        f"- interpretation: {INTERPRETATION_LABELS[interpretation]}"
    )


# ---------------------------------------------------------------------------
# Prescriptions
# ---------------------------------------------------------------------------

def prescribe(
    issues: Sequence[Issue],
    mappings: Sequence[TrainingMapping],
    trainings: Sequence[RelevanceCandidate],
    outcome: RuleOutcome,
) -> tuple[list[Prescription], list[Pillar]]:
    """Match issues to trainings, most severe issues first.

    Returns the prescriptions and the pillars whose issues were skipped
    because the rule outcome blocks their training action.
    """
    active = {t.id for t in trainings}
    by_indicator: dict[str, list[TrainingMapping]] = defaultdict(list)
    for m in mappings:
        by_indicator[m.indicator_code].append(m)

    ordered = sorted(enumerate(issues), key=lambda pair: (_SEVERITY_RANK[pair[1].severity], pair[0]))

    prescriptions: list[Prescription] = []
    skipped: list[Pillar] = []
    used: set[str] = set()
    priority = 1

    for _, issue in ordered:
        if not outcome.is_allowed(ActionCode(f"EDU_{issue.pillar.value}")):
            logger.info("Skipping prescriptions for pillar %s: blocked by rule outcome", issue.pillar.value)
            if issue.pillar not in skipped:
                skipped.append(issue.pillar)
            continue

        matched: list[tuple[TrainingMapping, IssueEvidence]] = []
        for evidence in issue.evidence:
            for mapping in by_indicator.get(evidence.code, []):
                if mapping.pillar is not issue.pillar or mapping.training_id not in active:
                    continue
                if mapping.training_id in used or any(m.training_id == mapping.training_id for m, _ in matched):
                    continue
                matched.append((mapping, evidence))

        matched.sort(key=lambda pair: pair[0].priority)

        for mapping, evidence in matched[:MAX_TRAININGS_PER_ISSUE]:
            used.add(mapping.training_id)
            prescriptions.append(Prescription(
                training_id=mapping.training_id,
                pillar=issue.pillar,
                theme=issue.theme,
                severity=issue.severity,
                interpretation=issue.interpretation,
                target_agent=TARGET_AGENTS[issue.interpretation],
                justification=_justify(mapping, evidence, issue),
                priority=priority,
            ))
            priority += 1

    return prescriptions, skipped


def _justify(mapping: TrainingMapping, evidence: IssueEvidence, issue: Issue) -> str:
    template = mapping.reason_template or DEFAULT_JUSTIFICATION
    return (
        template
        .replace("{indicator}", evidence.name or evidence.code)
        .replace("{status}", SEVERITY_LABELS[issue.severity])
        .replace("{pillar}", PILLAR_NAMES[issue.pillar])
    )
