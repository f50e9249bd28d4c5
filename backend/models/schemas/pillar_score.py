"""Pillar-level aggregate score with its severity band."""

from enum import Enum

from pydantic import BaseModel

from models.schemas.indicator import Pillar


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    MODERATE = "MODERATE"
    GOOD = "GOOD"


class PillarScore(BaseModel):
    """Weighted mean of a pillar's indicator scores.

    score/severity are None when no indicator of the pillar was scored
    (insufficient data), which is distinct from a genuine 0.0.
    """
    pillar: Pillar
    score: float | None = None  # 0.0-1.0
    severity: Severity | None = None
    indicator_count: int = 0
    total_weight: float = 0.0

    @property
    def is_defined(self) -> bool:
        return self.score is not None
