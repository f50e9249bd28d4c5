"""Stage 3: Rule Engine - the IGMA cross-pillar rule battery.

Rules run in a fixed order; a rule may read conclusions of earlier rules,
never of later ones:

    1. Environmental priority   RA critical blocks structural expansion
    2. Review cadence           next review from the worst severity
    3. Externality detection    OE up while RA down versus the previous cycle
    4. Central governance       AO critical blocks every downstream action
    5. Marketing gate           RA or AO critical blocks marketing
    6. Cross-sector dependency  intersectoral indicators in a non-GOOD pillar

A missing pillar score raises InsufficientDataError instead of defaulting
to any severity.
"""

import calendar
import logging
from datetime import date
from typing import Any, Mapping, Sequence

from config import settings
from models.schemas.indicator import PILLAR_ORDER, Indicator, Pillar
from models.schemas.pillar_score import PillarScore, Severity
from models.schemas.rule_outcome import (
    ActionCode,
    AlertCode,
    Interpretation,
    RuleMessage,
    RuleOutcome,
)
from services.errors import InsufficientDataError
from services.pipeline.base import BaseEngineService

logger = logging.getLogger(__name__)


def add_months(start: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of the month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class RuleEngineService(BaseEngineService):
    engine_name = "s3_rule_engine"

    def __init__(self) -> None:
        self._review_months: dict[Severity, int] = {}

    def load(self) -> None:
        self._review_months = {
            Severity.CRITICAL: settings.review_months_critical,
            Severity.MODERATE: settings.review_months_moderate,
            Severity.GOOD: settings.review_months_good,
        }
        logger.info("S3 Rule Engine ready (review months: %s)", {k.value: v for k, v in self._review_months.items()})

    def predict(self, **kwargs: Any) -> RuleOutcome:
        self.ensure_loaded()
        return self.evaluate(
            kwargs["current"],
            kwargs.get("previous"),
            kwargs.get("indicators", ()),
            kwargs.get("assessed_on"),
        )

    def evaluate(
        self,
        current: Mapping[Pillar, PillarScore],
        previous: Mapping[Pillar, float | None] | None = None,
        indicators: Sequence[Indicator] = (),
        assessed_on: date | None = None,
    ) -> RuleOutcome:
        """Apply the six rules to one cycle's pillar scores.

        previous holds the preceding cycle's pillar scores, or None on a
        subject's first cycle. Without assessed_on the review interval is
        still set but next_review_on stays None.
        """
        scores, severities = _require_pillars(current)
        ra, oe, ao = (severities[p] for p in PILLAR_ORDER)

        outcome = RuleOutcome()

        # Rule 1: environmental priority
        if ra is Severity.CRITICAL:
            outcome.alerts.append(AlertCode.RA_BLOCKS_OE)
            outcome.structural_expansion_blocked = True
            outcome.messages.append(RuleMessage(
                level="critical",
                alert=AlertCode.RA_BLOCKS_OE,
                title="Structural limitation of the territory",
                message=(
                    "Environmental relations are critical: the territory has structural limits "
                    "that compromise tourism sustainability regardless of market or management "
                    "actions. Structural expansion is suspended; prioritise RA capacity building."
                ),
            ))

        # Rule 2: review cadence
        worst = _worst(severities.values())
        outcome.review_interval_months = self._review_months.get(worst, 12)
        if assessed_on is not None:
            outcome.next_review_on = add_months(assessed_on, outcome.review_interval_months)

        # Rule 3: externality detection
        if previous is not None:
            prev_ra = previous.get(Pillar.RA)
            prev_oe = previous.get(Pillar.OE)
            if prev_ra is None or prev_oe is None:
                logger.debug("Externality rule skipped: previous RA/OE undefined")
            elif scores[Pillar.OE] > prev_oe and scores[Pillar.RA] < prev_ra:
                outcome.alerts.append(AlertCode.NEGATIVE_EXTERNALITY)
                outcome.messages.append(RuleMessage(
                    level="warning",
                    alert=AlertCode.NEGATIVE_EXTERNALITY,
                    title="Negative externality",
                    message=(
                        "Structural growth is happening at environmental cost: OE improved "
                        f"({prev_oe:.2f} -> {scores[Pillar.OE]:.2f}) while RA declined "
                        f"({prev_ra:.2f} -> {scores[Pillar.RA]:.2f})."
                    ),
                ))

        # Rule 4: central governance
        if ao is Severity.CRITICAL:
            outcome.alerts.append(AlertCode.AO_BLOCKS_SYSTEM)
            outcome.all_actions_blocked = True
            outcome.messages.append(RuleMessage(
                level="critical",
                alert=AlertCode.AO_BLOCKS_SYSTEM,
                title="Governance weakness",
                message=(
                    "Operational actions are critical: governance weaknesses compromise the "
                    "effectiveness of every market and investment action. All downstream "
                    "actions are blocked until AO recovers."
                ),
            ))

        # Rule 5: marketing gate
        if ra is Severity.CRITICAL or ao is Severity.CRITICAL:
            outcome.marketing_blocked = True
            outcome.messages.append(RuleMessage(
                level="warning",
                title="Marketing temporarily blocked",
                message="Tourism promotion must be preceded by territorial and institutional consolidation.",
            ))

        # Rule 6: cross-sector dependency tagging
        outcome.cross_sector_dependencies = sorted(
            ind.code
            for ind in indicators
            if ind.intersectoral_dependency and severities[ind.pillar] is not Severity.GOOD
        )
        if outcome.cross_sector_dependencies:
            outcome.alerts.append(AlertCode.INTERSECTORAL_DEPENDENCY)
            outcome.messages.append(RuleMessage(
                level="info",
                alert=AlertCode.INTERSECTORAL_DEPENDENCY,
                title="Intersectoral dependency",
                message=(
                    f"{len(outcome.cross_sector_dependencies)} indicator(s) depend on coordination "
                    "with other sectors (health, safety, education, sanitation) beyond tourism policy."
                ),
            ))

        outcome.allowed_actions = _allowed_actions(outcome)
        outcome.blocked_actions = [a for a, ok in outcome.allowed_actions.items() if not ok]
        outcome.interpretation = _interpretation(ra, oe, ao)
        outcome.critical_pillar = min(PILLAR_ORDER, key=lambda p: scores[p])

        logger.debug(
            "Rules evaluated: alerts=%s blocked=%s review=%d months",
            [a.value for a in outcome.alerts],
            [a.value for a in outcome.blocked_actions],
            outcome.review_interval_months,
        )
        return outcome


def _require_pillars(
    current: Mapping[Pillar, PillarScore],
) -> tuple[dict[Pillar, float], dict[Pillar, Severity]]:
    scores: dict[Pillar, float] = {}
    severities: dict[Pillar, Severity] = {}
    for pillar in PILLAR_ORDER:
        ps = current.get(pillar)
        if ps is None or ps.score is None or ps.severity is None:
            raise InsufficientDataError(pillar.value)
        scores[pillar] = ps.score
        severities[pillar] = ps.severity
    return scores, severities


def _worst(severities) -> Severity:
    found = set(severities)
    if Severity.CRITICAL in found:
        return Severity.CRITICAL
    if Severity.MODERATE in found:
        return Severity.MODERATE
    return Severity.GOOD


def _allowed_actions(outcome: RuleOutcome) -> dict[ActionCode, bool]:
    if outcome.all_actions_blocked:
        return {action: False for action in ActionCode}
    return {
        ActionCode.EDU_RA: True,
        ActionCode.EDU_OE: not outcome.structural_expansion_blocked,
        ActionCode.EDU_AO: not outcome.structural_expansion_blocked,
        ActionCode.MARKETING: not outcome.marketing_blocked,
    }


def _interpretation(ra: Severity, oe: Severity, ao: Severity) -> Interpretation:
    if ra is Severity.CRITICAL:
        return Interpretation.STRUCTURAL
    if ao is Severity.CRITICAL:
        return Interpretation.MANAGEMENT
    if oe is Severity.CRITICAL:
        return Interpretation.DELIVERY
    return Interpretation.MANAGEMENT
