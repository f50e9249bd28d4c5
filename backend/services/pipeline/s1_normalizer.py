"""Stage 1: Normalizer - raw indicator measurement to a 0-1 score.

Methods:
    MIN_MAX: linear rescale between reference bounds, inverted for
             LOW_IS_BETTER indicators.
    BINARY:  1.0 when the value meets a threshold, else 0.0.
    BANDS:   score of the first half-open band containing the value.

Also builds composite indicators from already-normalized components.
"""

import logging
import math
from typing import Any

from config import settings
from models.schemas.indicator import (
    CompositeRule,
    CompositeTransform,
    Direction,
    Indicator,
    IndicatorScore,
    IndicatorValue,
    NormalizationMethod,
)
from services.errors import ConfigurationError
from services.pipeline.base import BaseEngineService

logger = logging.getLogger(__name__)


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


class NormalizerService(BaseEngineService):
    engine_name = "s1_normalizer"

    def __init__(self) -> None:
        self._binary_default: float | None = None

    def load(self) -> None:
        self._binary_default = settings.binary_default_threshold
        logger.info(
            "S1 Normalizer ready (binary default threshold: %s)",
            "non-zero" if self._binary_default is None else self._binary_default,
        )

    def predict(self, **kwargs: Any) -> IndicatorScore | None:
        self.ensure_loaded()
        return self.normalize(
            kwargs["indicator"],
            kwargs.get("raw_value"),
            kwargs.get("min_ref_override"),
            kwargs.get("max_ref_override"),
        )

    def normalize(
        self,
        indicator: Indicator,
        raw_value: float | None,
        min_ref_override: float | None = None,
        max_ref_override: float | None = None,
    ) -> IndicatorScore | None:
        """Normalize one measurement. Returns None when the value is unmeasured."""
        if raw_value is None:
            return None

        method = indicator.normalization
        threshold: float | None = None
        if method is NormalizationMethod.MIN_MAX:
            score, lo, hi, explanation = _min_max(
                indicator, raw_value, min_ref_override, max_ref_override
            )
        elif method is NormalizationMethod.BINARY:
            score, threshold, explanation = self._binary(indicator, raw_value)
            lo, hi = indicator.min_ref, indicator.max_ref
        elif method is NormalizationMethod.BANDS:
            score, lo, hi, explanation = _bands(indicator, raw_value)
        else:
            raise ConfigurationError(indicator.code, f"unsupported normalization {method!r}")

        score = clamp01(score)
        assert 0.0 <= score <= 1.0, f"score out of range for {indicator.code}: {score}"

        return IndicatorScore(
            indicator_code=indicator.code,
            pillar=indicator.pillar,
            theme=indicator.theme,
            name=indicator.name,
            score=score,
            min_ref_used=lo,
            max_ref_used=hi,
            threshold_used=threshold,
            weight=indicator.weight,
            method=method,
            explanation=explanation,
        )

    def normalize_value(self, indicator: Indicator, value: IndicatorValue) -> IndicatorScore | None:
        """Normalize an IndicatorValue, honouring its per-cycle reference overrides."""
        return self.normalize(
            indicator,
            value.value_raw,
            value.min_ref_override,
            value.max_ref_override,
        )

    def _binary(self, indicator: Indicator, raw: float) -> tuple[float, float | None, str]:
        threshold = indicator.binary_threshold
        if threshold is None:
            threshold = self._binary_default
        if threshold is None:
            passed = raw != 0
            return (1.0 if passed else 0.0), None, f"BINARY: {raw:g} is {'non-zero' if passed else 'zero'}"
        passed = raw >= threshold
        op = ">=" if passed else "<"
        return (1.0 if passed else 0.0), threshold, f"BINARY: {raw:g} {op} threshold {threshold:g}"


def _min_max(
    indicator: Indicator,
    raw: float,
    min_override: float | None,
    max_override: float | None,
) -> tuple[float, float, float, str]:
    lo = min_override if min_override is not None else indicator.min_ref
    hi = max_override if max_override is not None else indicator.max_ref
    if lo is None or hi is None:
        raise ConfigurationError(indicator.code, "MIN_MAX requires both min_ref and max_ref")
    if hi == lo:
        raise ConfigurationError(indicator.code, f"degenerate reference range ({lo:g} == {hi:g})")

    if indicator.direction is Direction.HIGH_IS_BETTER:
        raw_score = (raw - lo) / (hi - lo)
        formula = f"({raw:g} - {lo:g}) / ({hi:g} - {lo:g})"
    else:
        raw_score = (hi - raw) / (hi - lo)
        formula = f"({hi:g} - {raw:g}) / ({hi:g} - {lo:g})"

    score = clamp01(raw_score)
    explanation = f"MIN_MAX {indicator.direction.value}: {formula} = {score:.3f}"
    if score != raw_score:
        explanation += " (clamped)"
    return score, lo, hi, explanation


def _bands(indicator: Indicator, raw: float) -> tuple[float, float | None, float | None, str]:
    """Score of the matching band; the bounds returned are those of the band used."""
    if not indicator.bands:
        raise ConfigurationError(indicator.code, "BANDS requires a band table")

    for band in indicator.bands:
        if band.contains(raw):
            low = "-inf" if band.low is None else f"{band.low:g}"
            high = "+inf" if band.high is None else f"{band.high:g}"
            return band.score, band.low, band.high, f"BANDS: {raw:g} in [{low}, {high}) -> {band.score:.3f}"

    if indicator.band_fallback is not None:
        return indicator.band_fallback, None, None, f"BANDS: {raw:g} outside all bands, fallback {indicator.band_fallback:.3f}"

    raise ConfigurationError(indicator.code, f"value {raw:g} matches no band and no fallback is defined")


# ---------------------------------------------------------------------------
# Composite indicators
# ---------------------------------------------------------------------------

def _transform(score: float, transform: CompositeTransform) -> float:
    if transform is CompositeTransform.NONE:
        return score
    if transform is CompositeTransform.INVERT:
        return 1.0 - score
    if transform is CompositeTransform.LOG:
        return math.log1p(score) / math.log1p(1.0)
    if transform is CompositeTransform.SQRT:
        return math.sqrt(score)
    raise ValueError(f"Unknown transform: {transform}")


def compose(
    composite: Indicator,
    rules: list[CompositeRule],
    component_scores: dict[str, IndicatorScore],
) -> IndicatorScore | None:
    """Weighted mean of transformed component scores.

    Components without a score are skipped; None when none remain.
    """
    parts: list[tuple[str, float, float]] = []
    for rule in rules:
        if rule.composite_code != composite.code:
            continue
        component = component_scores.get(rule.component_code)
        if component is None:
            continue
        parts.append((rule.component_code, _transform(component.score, rule.transform), rule.weight))

    if not parts:
        logger.debug("Composite %s has no scored components", composite.code)
        return None

    total_weight = sum(w for _, _, w in parts)
    if total_weight > 0:
        value = sum(s * w for _, s, w in parts) / total_weight
    else:
        value = sum(s for _, s, _ in parts) / len(parts)
    value = clamp01(value)

    explanation = "COMPOSITE: " + ", ".join(f"{code}={s:.3f}x{w:g}" for code, s, w in parts)
    return IndicatorScore(
        indicator_code=composite.code,
        pillar=composite.pillar,
        theme=composite.theme,
        name=composite.name,
        score=value,
        min_ref_used=0.0,
        max_ref_used=1.0,
        weight=composite.weight,
        method=composite.normalization,
        explanation=explanation,
    )
