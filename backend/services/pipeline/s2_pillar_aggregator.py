"""Stage 2: Pillar Aggregator - indicator scores to RA / OE / AO pillar scores.

Weighted mean of the defined indicator scores of each pillar. A pillar with
no scored indicator stays undefined so that downstream rules can tell
"insufficient data" apart from a genuinely poor score.
"""

import logging
from typing import Any

import numpy as np

from models.schemas.indicator import PILLAR_ORDER, IndicatorScore, Pillar
from models.schemas.pillar_score import PillarScore, Severity
from services.pipeline.base import BaseEngineService

logger = logging.getLogger(__name__)

CRITICAL_BELOW = 0.34
GOOD_FROM = 0.67


def severity_for(score: float) -> Severity:
    """Severity band of a 0-1 score: <0.34 critical, <0.67 moderate, else good."""
    if score < CRITICAL_BELOW:
        return Severity.CRITICAL
    if score < GOOD_FROM:
        return Severity.MODERATE
    return Severity.GOOD


class PillarAggregatorService(BaseEngineService):
    engine_name = "s2_pillar_aggregator"

    def load(self) -> None:
        # no configuration: thresholds are fixed
        logger.info("S2 Pillar Aggregator ready")

    def predict(self, **kwargs: Any) -> dict[Pillar, PillarScore]:
        self.ensure_loaded()
        return self.aggregate_all(
            kwargs["indicator_scores"],
            kwargs.get("weights"),
        )

    def aggregate(
        self,
        pillar: Pillar,
        indicator_scores: list[IndicatorScore],
        weights: dict[str, float] | None = None,
    ) -> PillarScore:
        """Aggregate the scores of one pillar.

        weights maps indicator code to a cycle-specific weight; indicators
        not listed keep their default weight.
        """
        scored = [s for s in indicator_scores if s is not None and s.pillar == pillar]
        if not scored:
            logger.debug("Pillar %s has no scored indicators", pillar.value)
            return PillarScore(pillar=pillar)

        weights = weights or {}
        values = np.array([s.score for s in scored], dtype=float)
        w = np.array([weights.get(s.indicator_code, s.weight) for s in scored], dtype=float)
        if np.any(w < 0):
            raise ValueError(f"Negative weight in pillar {pillar.value}")

        total_weight = float(w.sum())
        if total_weight > 0:
            score = float(np.dot(values, w) / total_weight)
        else:
            score = float(values.mean())
        score = max(0.0, min(1.0, score))

        return PillarScore(
            pillar=pillar,
            score=score,
            severity=severity_for(score),
            indicator_count=len(scored),
            total_weight=total_weight,
        )

    def aggregate_all(
        self,
        indicator_scores: list[IndicatorScore],
        weights: dict[str, float] | None = None,
    ) -> dict[Pillar, PillarScore]:
        """All three pillars in fixed RA, OE, AO order."""
        return {p: self.aggregate(p, indicator_scores, weights) for p in PILLAR_ORDER}
