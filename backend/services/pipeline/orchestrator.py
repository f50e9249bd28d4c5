"""Pipeline orchestrator: wires the diagnostic stages for one cycle.

Flow:
    CycleInput
      ├─ tier filter + catalogue lookup
      ├─ S1.normalize(indicator, value)       → IndicatorScore | None
      │     └─ compose(composite, rules)      → IndicatorScore | None
      ├─ S2.aggregate_all(scores, weights)    → {Pillar: PillarScore}
      ├─ S3.evaluate(pillars, previous)       → RuleOutcome
      ├─ S4.compare_all / regression_alerts   → [EvolutionRecord], [RegressionAlert]
      └─ S6.detect_issues / prescribe         → [Issue], [Prescription]
                       ↓
                 CycleDiagnostic

Pure and synchronous: persistence, confirmation of cycles and storage of
snapshots belong to the caller. S5 (relevance) runs on its own request path.
"""

import logging

from models.requests import CycleInput
from models.responses import CycleDiagnostic
from models.schemas.evolution import CycleSnapshot
from models.schemas.indicator import Indicator, IndicatorScore, Tier
from services.errors import ConfigurationError
from services.pipeline.engine_registry import get_engine
from services.pipeline.s1_normalizer import compose
from services.pipeline.s4_evolution_tracker import summarize

logger = logging.getLogger(__name__)

TIER_SCOPE = {
    Tier.SMALL: {Tier.SMALL},
    Tier.MEDIUM: {Tier.SMALL, Tier.MEDIUM},
    Tier.COMPLETE: {Tier.SMALL, Tier.MEDIUM, Tier.COMPLETE},
}


def in_tier(indicator: Indicator, tier: Tier) -> bool:
    return indicator.minimum_tier in TIER_SCOPE[tier]


def newest_first(snapshots: list[CycleSnapshot]) -> list[CycleSnapshot]:
    """Earlier cycles ordered most recent first, whatever order the caller used."""
    return sorted(snapshots, key=lambda s: (s.cycle.assessed_on, s.cycle.sequence), reverse=True)


def evaluate_cycle(data: CycleInput) -> CycleDiagnostic:
    """Run the full diagnostic for one subject and cycle.

    Raises ConfigurationError for catalogue problems and
    InsufficientDataError when a pillar ends up without any scored indicator.
    """
    catalogue = {ind.code: ind for ind in data.indicators}
    scope = {code: ind for code, ind in catalogue.items() if in_tier(ind, data.tier)}
    skipped_by_tier = sorted(set(catalogue) - set(scope))

    # --- Stage 1: Normalization ---
    s1 = get_engine("s1_normalizer")
    composite_codes = {rule.composite_code for rule in data.composites}
    for code in composite_codes:
        if code not in catalogue:
            raise ConfigurationError(code, "composite rule targets an unknown indicator")

    scores: dict[str, IndicatorScore] = {}
    measured: set[str] = set()
    for value in data.values:
        indicator = catalogue.get(value.indicator_code)
        if indicator is None:
            raise ConfigurationError(value.indicator_code, "value references an unknown indicator")
        if value.indicator_code not in scope or value.indicator_code in composite_codes:
            continue
        score = s1.normalize_value(indicator, value)
        if score is not None:
            scores[indicator.code] = score
            measured.add(indicator.code)

    for code in sorted(composite_codes & set(scope)):
        score = compose(scope[code], data.composites, scores)
        if score is not None:
            scores[code] = score
            measured.add(code)

    unmeasured = sorted(set(scope) - measured)
    indicator_scores = [scores[code] for code in scope if code in scores]
    logger.info(
        "Subject %s cycle %d: %d/%d indicators scored (tier %s, %d out of tier)",
        data.subject_id, data.cycle.sequence, len(indicator_scores), len(scope),
        data.tier.value, len(skipped_by_tier),
    )

    # --- Stage 2: Aggregation ---
    s2 = get_engine("s2_pillar_aggregator")
    pillar_scores = s2.aggregate_all(indicator_scores, data.weights)

    # --- Stage 3: Rules (fails fast on an undefined pillar) ---
    history = newest_first(data.previous_cycles)
    previous = history[0] if history else None
    s3 = get_engine("s3_rule_engine")
    outcome = s3.evaluate(
        pillar_scores,
        previous.pillar_scores if previous is not None else None,
        indicators=list(scope.values()),
        assessed_on=data.cycle.assessed_on,
    )

    # --- Stage 4: Evolution ---
    s4 = get_engine("s4_evolution_tracker")
    evolution = s4.compare_all(pillar_scores, previous, data.cycle)
    regression_alerts = s4.regression_alerts(pillar_scores, history)

    # --- Stage 6: Issues and prescriptions ---
    s6 = get_engine("s6_prescriber")
    plan = s6.predict(
        indicator_scores=indicator_scores,
        rule_outcome=outcome,
        mappings=data.training_mappings,
        trainings=data.trainings,
    )
    if plan.skipped_pillars:
        logger.info(
            "Subject %s: prescriptions withheld for pillars %s",
            data.subject_id, [p.value for p in plan.skipped_pillars],
        )

    return CycleDiagnostic(
        subject_id=data.subject_id,
        cycle=data.cycle,
        indicator_scores=indicator_scores,
        pillar_scores=pillar_scores,
        rule_outcome=outcome,
        evolution=evolution,
        evolution_summary=summarize(evolution),
        regression_alerts=regression_alerts,
        issues=plan.issues,
        prescriptions=plan.prescriptions,
        skipped_by_tier=skipped_by_tier,
        unmeasured=unmeasured,
    )
