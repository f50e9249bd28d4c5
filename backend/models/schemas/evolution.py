"""Cycle-to-cycle evolution contracts."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict

from models.schemas.indicator import Pillar


class EvolutionState(str, Enum):
    EVOLUTION = "EVOLUTION"
    STAGNATION = "STAGNATION"
    REGRESSION = "REGRESSION"


class Cycle(BaseModel):
    """One evaluation round for a subject. Ordered by sequence and date."""
    model_config = ConfigDict(frozen=True)

    sequence: int = 1
    assessed_on: date


class CycleSnapshot(BaseModel):
    """Frozen pillar scores of an earlier, already confirmed cycle."""
    model_config = ConfigDict(frozen=True)

    cycle: Cycle
    pillar_scores: dict[Pillar, float | None] = {}


class EvolutionRecord(BaseModel):
    """Trajectory of one pillar between two consecutive cycles.

    state is None when no comparison is possible (first cycle, undefined
    previous score, or a suppressed cycle gap). That is not stagnation.
    """
    pillar: Pillar
    current_score: float
    previous_score: float | None = None
    delta: float | None = None
    state: EvolutionState | None = None


class EvolutionSummary(BaseModel):
    evolution: int = 0
    stagnation: int = 0
    regression: int = 0
    not_comparable: int = 0

    @property
    def compared(self) -> int:
        return self.evolution + self.stagnation + self.regression


class RegressionAlert(BaseModel):
    pillar: Pillar
    consecutive_cycles: int
    message: str = ""
