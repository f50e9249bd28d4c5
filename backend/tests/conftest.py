"""Shared test configuration and factories."""

from datetime import date

import pytest

from models.schemas.evolution import Cycle, CycleSnapshot
from models.schemas.indicator import Indicator, IndicatorScore, Pillar
from models.schemas.pillar_score import PillarScore
from services.pipeline.engine_registry import clear as clear_registry
from services.pipeline.s2_pillar_aggregator import severity_for


@pytest.fixture(autouse=True)
def _reset_registry():
    """Stage singletons re-read settings in every test."""
    clear_registry()
    yield
    clear_registry()


@pytest.fixture
def make_indicator():
    def _make(code: str = "IND", pillar: Pillar = Pillar.RA, **kwargs) -> Indicator:
        kwargs.setdefault("name", f"Indicator {code}")
        kwargs.setdefault("theme", "governance")
        kwargs.setdefault("min_ref", 0.0)
        kwargs.setdefault("max_ref", 100.0)
        return Indicator(code=code, pillar=pillar, **kwargs)
    return _make


@pytest.fixture
def make_score():
    def _make(code: str, pillar: Pillar, score: float, theme: str = "governance", weight: float = 1.0) -> IndicatorScore:
        return IndicatorScore(
            indicator_code=code,
            pillar=pillar,
            theme=theme,
            name=f"Indicator {code}",
            score=score,
            weight=weight,
        )
    return _make


@pytest.fixture
def make_pillars():
    """{Pillar: PillarScore} from three floats (None = undefined pillar)."""
    def _make(ra: float | None, oe: float | None, ao: float | None) -> dict[Pillar, PillarScore]:
        out = {}
        for pillar, score in zip((Pillar.RA, Pillar.OE, Pillar.AO), (ra, oe, ao)):
            if score is None:
                out[pillar] = PillarScore(pillar=pillar)
            else:
                out[pillar] = PillarScore(pillar=pillar, score=score, severity=severity_for(score), indicator_count=1)
        return out
    return _make


@pytest.fixture
def make_snapshot():
    def _make(sequence: int, assessed_on: date, ra: float | None, oe: float | None, ao: float | None) -> CycleSnapshot:
        return CycleSnapshot(
            cycle=Cycle(sequence=sequence, assessed_on=assessed_on),
            pillar_scores={Pillar.RA: ra, Pillar.OE: oe, Pillar.AO: ao},
        )
    return _make
