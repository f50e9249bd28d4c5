"""Inter-stage Pydantic contracts for the diagnostic pipeline."""

from models.schemas.indicator import Indicator, IndicatorScore, IndicatorValue, Pillar
from models.schemas.pillar_score import PillarScore, Severity
from models.schemas.rule_outcome import RuleOutcome
from models.schemas.evolution import CycleSnapshot, EvolutionRecord, EvolutionSummary
from models.schemas.relevance import RelevanceCandidate, RelevanceResult
from models.schemas.prescription import Issue, Prescription

__all__ = [
    "Indicator",
    "IndicatorValue",
    "IndicatorScore",
    "Pillar",
    "PillarScore",
    "Severity",
    "RuleOutcome",
    "CycleSnapshot",
    "EvolutionRecord",
    "EvolutionSummary",
    "RelevanceCandidate",
    "RelevanceResult",
    "Issue",
    "Prescription",
]
