from pydantic import BaseModel

from models.schemas.evolution import Cycle, EvolutionRecord, EvolutionSummary, RegressionAlert
from models.schemas.indicator import IndicatorScore, Pillar
from models.schemas.pillar_score import PillarScore
from models.schemas.prescription import Issue, Prescription
from models.schemas.relevance import RelevanceResult
from models.schemas.rule_outcome import RuleOutcome


class CycleDiagnostic(BaseModel):
    subject_id: str
    cycle: Cycle
    indicator_scores: list[IndicatorScore] = []
    pillar_scores: dict[Pillar, PillarScore] = {}
    rule_outcome: RuleOutcome = RuleOutcome()
    evolution: list[EvolutionRecord] = []
    evolution_summary: EvolutionSummary = EvolutionSummary()
    regression_alerts: list[RegressionAlert] = []
    issues: list[Issue] = []
    prescriptions: list[Prescription] = []
    # Indicators left out of this cycle
    skipped_by_tier: list[str] = []
    unmeasured: list[str] = []

    def snapshot_scores(self) -> dict[Pillar, float | None]:
        """Pillar scores to freeze once the cycle is confirmed."""
        return {p: ps.score for p, ps in self.pillar_scores.items()}


class RecommendationResponse(BaseModel):
    results: list[RelevanceResult] = []
    mode: str = "profile"  # profile or indicators
