"""Indicator definitions, raw measurements and normalized indicator scores."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Pillar(str, Enum):
    RA = "RA"  # environmental relations
    OE = "OE"  # structural organization
    AO = "AO"  # operational actions


PILLAR_ORDER = (Pillar.RA, Pillar.OE, Pillar.AO)

PILLAR_NAMES = {
    Pillar.RA: "Environmental Relations",
    Pillar.OE: "Structural Organization",
    Pillar.AO: "Operational Actions",
}


class Direction(str, Enum):
    HIGH_IS_BETTER = "HIGH_IS_BETTER"
    LOW_IS_BETTER = "LOW_IS_BETTER"


class NormalizationMethod(str, Enum):
    MIN_MAX = "MIN_MAX"
    BANDS = "BANDS"
    BINARY = "BINARY"


class Tier(str, Enum):
    """Assessment depth. Each tier includes the indicators of the tiers below it."""
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    COMPLETE = "COMPLETE"


class CompositeTransform(str, Enum):
    NONE = "NONE"
    INVERT = "INVERT"
    LOG = "LOG"
    SQRT = "SQRT"


class Band(BaseModel):
    """Half-open numeric band [low, high). A None bound is unbounded."""
    model_config = ConfigDict(frozen=True)

    low: float | None = None
    high: float | None = None
    score: float = Field(..., ge=0.0, le=1.0)

    def contains(self, value: float) -> bool:
        if self.low is not None and value < self.low:
            return False
        if self.high is not None and value >= self.high:
            return False
        return True


class Indicator(BaseModel):
    """A named metric definition. Immutable for the duration of a cycle."""
    model_config = ConfigDict(frozen=True)

    code: str
    name: str = ""
    pillar: Pillar
    theme: str = ""
    direction: Direction = Direction.HIGH_IS_BETTER
    normalization: NormalizationMethod = NormalizationMethod.MIN_MAX
    min_ref: float | None = None
    max_ref: float | None = None
    unit: str = ""
    weight: float = Field(1.0, ge=0.0)

    # BINARY: value >= threshold scores 1.0
    binary_threshold: float | None = None
    # BANDS: first containing band wins, else the fallback score
    bands: list[Band] = []
    band_fallback: float | None = Field(None, ge=0.0, le=1.0)

    intersectoral_dependency: bool = False  # remediation needs other sectors (health, education...)
    minimum_tier: Tier = Tier.COMPLETE


class IndicatorValue(BaseModel):
    """One raw measurement of an indicator for one subject within one cycle."""
    model_config = ConfigDict(frozen=True)

    indicator_code: str
    value_raw: float | None = None  # None -> not measured
    source: str = ""
    reference_year: int | None = None
    confidence: int = Field(3, ge=1, le=5)
    min_ref_override: float | None = None
    max_ref_override: float | None = None


class CompositeRule(BaseModel):
    """One component of a composite indicator."""
    model_config = ConfigDict(frozen=True)

    composite_code: str
    component_code: str
    weight: float = Field(1.0, ge=0.0)
    transform: CompositeTransform = CompositeTransform.NONE


class IndicatorScore(BaseModel):
    """Normalized output for one indicator value."""
    indicator_code: str
    pillar: Pillar
    theme: str = ""
    name: str = ""
    score: float = Field(..., ge=0.0, le=1.0)
    min_ref_used: float | None = None
    max_ref_used: float | None = None  # BANDS: bounds of the matched band
    threshold_used: float | None = None  # BINARY only; None means any non-zero value passes
    weight: float = 1.0  # indicator default; cycle weights are applied at aggregation
    method: NormalizationMethod = NormalizationMethod.MIN_MAX
    explanation: str = ""
