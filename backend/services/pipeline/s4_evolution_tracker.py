"""Stage 4: Evolution Tracker - pillar trajectory between consecutive cycles.

A change smaller than MIN_DETECTABLE_CHANGE in either direction is
stagnation: the floor keeps measurement noise from reading as progress or
decline. The first cycle of a subject has no trajectory at all (state None),
and is never counted as stagnant.
"""

import logging
from typing import Any, Iterable, Mapping, Sequence

from config import settings
from models.schemas.evolution import (
    Cycle,
    CycleSnapshot,
    EvolutionRecord,
    EvolutionState,
    EvolutionSummary,
    RegressionAlert,
)
from models.schemas.indicator import PILLAR_NAMES, PILLAR_ORDER, Pillar
from models.schemas.pillar_score import PillarScore
from services.errors import InsufficientDataError
from services.pipeline.base import BaseEngineService

logger = logging.getLogger(__name__)

# Minimum detectable change between two cycles (score units, 0-1 scale)
MIN_DETECTABLE_CHANGE = 0.02


def classify(delta: float) -> EvolutionState:
    # float noise: 0.52 - 0.50 must sit on the boundary, not above it
    delta = round(delta, 6)
    if delta > MIN_DETECTABLE_CHANGE:
        return EvolutionState.EVOLUTION
    if delta < -MIN_DETECTABLE_CHANGE:
        return EvolutionState.REGRESSION
    return EvolutionState.STAGNATION


class EvolutionTrackerService(BaseEngineService):
    engine_name = "s4_evolution_tracker"

    def __init__(self) -> None:
        self._max_gap_days: int | None = None
        self._alert_cycles = 2

    def load(self) -> None:
        self._max_gap_days = settings.max_cycle_gap_days
        self._alert_cycles = settings.regression_alert_cycles
        logger.info(
            "S4 Evolution Tracker ready (max cycle gap: %s days, regression alert after %d cycles)",
            self._max_gap_days, self._alert_cycles,
        )

    def predict(self, **kwargs: Any) -> list[EvolutionRecord]:
        self.ensure_loaded()
        return self.compare_all(
            kwargs["current"],
            kwargs.get("previous"),
            kwargs.get("current_cycle"),
        )

    def compare_cycles(self, current: PillarScore, previous: PillarScore | None) -> EvolutionRecord:
        """Classify one pillar's trajectory against the previous cycle."""
        if current.score is None:
            raise InsufficientDataError(current.pillar.value)

        if previous is None or previous.score is None:
            return EvolutionRecord(pillar=current.pillar, current_score=current.score)

        delta = current.score - previous.score
        record = EvolutionRecord(
            pillar=current.pillar,
            current_score=current.score,
            previous_score=previous.score,
            delta=delta,
            state=classify(delta),
        )
        assert record.state is None or record.previous_score is not None
        return record

    def compare_all(
        self,
        current: Mapping[Pillar, PillarScore],
        previous: CycleSnapshot | None,
        current_cycle: Cycle | None = None,
    ) -> list[EvolutionRecord]:
        """One record per pillar, in RA, OE, AO order."""
        if previous is not None and not self._comparable(previous.cycle, current_cycle):
            previous = None

        records: list[EvolutionRecord] = []
        for pillar in PILLAR_ORDER:
            prev_score = None
            if previous is not None and previous.pillar_scores.get(pillar) is not None:
                prev_score = PillarScore(pillar=pillar, score=previous.pillar_scores[pillar])
            records.append(self.compare_cycles(current[pillar], prev_score))
        return records

    def _comparable(self, previous: Cycle, current: Cycle | None) -> bool:
        if current is None or self._max_gap_days is None:
            return True
        gap = (current.assessed_on - previous.assessed_on).days
        if gap > self._max_gap_days:
            logger.info(
                "Cycle comparison suppressed: %d days between cycle %d and %d exceeds %d",
                gap, previous.sequence, current.sequence, self._max_gap_days,
            )
            return False
        return True

    def regression_alerts(
        self,
        current: Mapping[Pillar, PillarScore],
        history: Sequence[CycleSnapshot],
    ) -> list[RegressionAlert]:
        """Flag pillars that regressed in consecutive cycles.

        history lists earlier cycles newest first. Counting stops at the
        first cycle pair that is not a regression.
        """
        alerts: list[RegressionAlert] = []
        for pillar in PILLAR_ORDER:
            later = current[pillar].score
            if later is None:
                continue
            streak = 0
            for snapshot in history:
                earlier = snapshot.pillar_scores.get(pillar)
                if earlier is None or classify(later - earlier) is not EvolutionState.REGRESSION:
                    break
                streak += 1
                later = earlier
            if streak >= self._alert_cycles:
                alerts.append(RegressionAlert(
                    pillar=pillar,
                    consecutive_cycles=streak,
                    message=(
                        f"Pillar {PILLAR_NAMES[pillar]} ({pillar.value}) regressed in {streak} "
                        "consecutive cycles. Urgent corrective action is recommended."
                    ),
                ))
        return alerts


def summarize(records: Iterable[EvolutionRecord]) -> EvolutionSummary:
    """Count states across records. Records without a state are not stagnation."""
    summary = EvolutionSummary()
    for record in records:
        if record.state is None:
            summary.not_comparable += 1
        elif record.state is EvolutionState.EVOLUTION:
            summary.evolution += 1
        elif record.state is EvolutionState.STAGNATION:
            summary.stagnation += 1
        elif record.state is EvolutionState.REGRESSION:
            summary.regression += 1
    return summary
