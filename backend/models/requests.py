from pydantic import BaseModel, Field, model_validator

from models.schemas.evolution import Cycle, CycleSnapshot
from models.schemas.indicator import CompositeRule, Indicator, IndicatorValue, Tier
from models.schemas.prescription import TrainingMapping
from models.schemas.relevance import LearnerProfile, RelevanceCandidate


class CycleInput(BaseModel):
    """Everything needed to diagnose one subject for one cycle."""
    subject_id: str = Field(..., min_length=1, description="Territory or organization being assessed")
    cycle: Cycle
    tier: Tier = Tier.COMPLETE
    indicators: list[Indicator] = Field(..., description="Indicator catalogue for this cycle")
    values: list[IndicatorValue] = []
    weights: dict[str, float] = Field({}, description="Cycle-specific weights by indicator code")
    composites: list[CompositeRule] = []
    previous_cycles: list[CycleSnapshot] = Field([], description="Earlier cycles, in any order")
    training_mappings: list[TrainingMapping] = []
    trainings: list[RelevanceCandidate] = Field([], description="Active trainings available for prescription")

    @model_validator(mode="after")
    def _previous_cycles_are_earlier(self) -> "CycleInput":
        current = (self.cycle.assessed_on, self.cycle.sequence)
        for snapshot in self.previous_cycles:
            if (snapshot.cycle.assessed_on, snapshot.cycle.sequence) >= current:
                raise ValueError(
                    f"previous cycle {snapshot.cycle.sequence} ({snapshot.cycle.assessed_on}) "
                    f"is not earlier than cycle {self.cycle.sequence} ({self.cycle.assessed_on})"
                )
        return self


class NormalizeRequest(BaseModel):
    indicator: Indicator
    value_raw: float | None = None
    min_ref_override: float | None = None
    max_ref_override: float | None = None


class RecommendationRequest(BaseModel):
    candidates: list[RelevanceCandidate] = []
    profile: LearnerProfile | None = None
    indicator_codes: list[str] | None = None
    limit: int | None = Field(None, ge=0, le=200)
