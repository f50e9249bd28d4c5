"""Tests for the pipeline orchestrator."""

from datetime import date

import pytest
from pydantic import ValidationError

from models.requests import CycleInput
from models.responses import CycleDiagnostic
from models.schemas.evolution import Cycle, EvolutionState
from models.schemas.indicator import (
    CompositeRule,
    CompositeTransform,
    Indicator,
    IndicatorValue,
    Pillar,
    Tier,
)
from models.schemas.pillar_score import Severity
from models.schemas.prescription import TrainingMapping
from models.schemas.relevance import RelevanceCandidate
from models.schemas.rule_outcome import AlertCode
from services.errors import ConfigurationError, InsufficientDataError
from services.pipeline.orchestrator import evaluate_cycle, in_tier, newest_first


def _indicator(code, pillar, theme="governance", tier=Tier.SMALL, **kwargs):
    return Indicator(
        code=code,
        name=code,
        pillar=pillar,
        theme=theme,
        min_ref=0,
        max_ref=100,
        minimum_tier=tier,
        **kwargs,
    )


INDICATORS = [
    _indicator("RA1", Pillar.RA, theme="environmental"),
    _indicator("OE1", Pillar.OE, theme="infrastructure"),
    _indicator("AO1", Pillar.AO, theme="marketing"),
    _indicator("AO_FULL", Pillar.AO, theme="marketing", tier=Tier.COMPLETE),
]


def _values(**raw):
    return [IndicatorValue(indicator_code=code, value_raw=value) for code, value in raw.items()]


def _input(values, **kwargs):
    kwargs.setdefault("cycle", Cycle(sequence=1, assessed_on=date(2024, 3, 1)))
    kwargs.setdefault("indicators", INDICATORS)
    return CycleInput(subject_id="dest-1", values=values, **kwargs)


class TestTierFilter:
    def test_scope(self):
        ind = _indicator("X", Pillar.RA, tier=Tier.MEDIUM)
        assert not in_tier(ind, Tier.SMALL)
        assert in_tier(ind, Tier.MEDIUM)
        assert in_tier(ind, Tier.COMPLETE)

    def test_out_of_tier_values_ignored(self):
        result = evaluate_cycle(_input(_values(RA1=80, OE1=80, AO1=80, AO_FULL=0), tier=Tier.SMALL))
        assert result.skipped_by_tier == ["AO_FULL"]
        assert result.pillar_scores[Pillar.AO].score == pytest.approx(0.8)
        assert "AO_FULL" not in [s.indicator_code for s in result.indicator_scores]


class TestFirstCycle:
    def test_full_diagnostic(self):
        data = _input(
            _values(RA1=80, OE1=50, AO1=90, AO_FULL=None),
            training_mappings=[TrainingMapping(indicator_code="OE1", training_id="t-infra", pillar=Pillar.OE)],
            trainings=[RelevanceCandidate(id="t-infra")],
        )
        result = evaluate_cycle(data)

        assert isinstance(result, CycleDiagnostic)
        assert result.pillar_scores[Pillar.OE].severity is Severity.MODERATE
        assert result.rule_outcome.review_interval_months == 12
        assert result.rule_outcome.next_review_on == date(2025, 3, 1)
        assert all(r.state is None for r in result.evolution)
        assert result.evolution_summary.not_comparable == 3
        assert result.evolution_summary.stagnation == 0
        assert result.unmeasured == ["AO_FULL"]
        assert [i.theme for i in result.issues] == ["infrastructure"]
        assert [p.training_id for p in result.prescriptions] == ["t-infra"]

    def test_unknown_indicator_raises(self):
        with pytest.raises(ConfigurationError) as exc:
            evaluate_cycle(_input(_values(RA1=80, OE1=80, AO1=80, NOPE=1)))
        assert exc.value.indicator_code == "NOPE"

    def test_pillar_without_scores_raises(self):
        with pytest.raises(InsufficientDataError):
            evaluate_cycle(_input(_values(RA1=80, OE1=80, AO1=None)))

    def test_ao_critical_withholds_prescriptions(self):
        data = _input(
            _values(RA1=80, OE1=50, AO1=10),
            training_mappings=[TrainingMapping(indicator_code="OE1", training_id="t-infra", pillar=Pillar.OE)],
            trainings=[RelevanceCandidate(id="t-infra")],
        )
        result = evaluate_cycle(data)
        assert result.rule_outcome.all_actions_blocked
        assert result.issues
        assert result.prescriptions == []


class TestHistory:
    def test_evolution_externality_and_regression(self, make_snapshot):
        data = _input(
            _values(RA1=30, OE1=70, AO1=80),
            cycle=Cycle(sequence=3, assessed_on=date(2024, 3, 1)),
            previous_cycles=[
                make_snapshot(2, date(2023, 3, 1), 0.5, 0.6, 0.8),
                make_snapshot(1, date(2022, 3, 1), 0.7, 0.6, 0.8),
            ],
        )
        result = evaluate_cycle(data)
        states = {r.pillar: r.state for r in result.evolution}
        assert states == {
            Pillar.RA: EvolutionState.REGRESSION,
            Pillar.OE: EvolutionState.EVOLUTION,
            Pillar.AO: EvolutionState.STAGNATION,
        }
        assert AlertCode.NEGATIVE_EXTERNALITY in result.rule_outcome.alerts
        assert AlertCode.RA_BLOCKS_OE in result.rule_outcome.alerts
        assert [a.pillar for a in result.regression_alerts] == [Pillar.RA]

    def test_snapshots_in_any_order(self, make_snapshot):
        data = _input(
            _values(RA1=50, OE1=50, AO1=50),
            cycle=Cycle(sequence=3, assessed_on=date(2024, 3, 1)),
            previous_cycles=[
                make_snapshot(1, date(2020, 3, 1), 0.2, 0.2, 0.2),
                make_snapshot(2, date(2022, 3, 1), 0.5, 0.5, 0.5),
            ],
        )
        result = evaluate_cycle(data)
        ra = result.evolution[0]
        assert ra.previous_score == pytest.approx(0.5)
        assert ra.state is EvolutionState.STAGNATION

    def test_newest_first(self, make_snapshot):
        older = make_snapshot(1, date(2020, 3, 1), 0.2, 0.2, 0.2)
        newer = make_snapshot(2, date(2022, 3, 1), 0.5, 0.5, 0.5)
        assert newest_first([older, newer]) == [newer, older]

    def test_snapshot_not_earlier_rejected(self, make_snapshot):
        with pytest.raises(ValidationError):
            _input(
                _values(RA1=50, OE1=50, AO1=50),
                cycle=Cycle(sequence=2, assessed_on=date(2024, 3, 1)),
                previous_cycles=[make_snapshot(3, date(2025, 3, 1), 0.5, 0.5, 0.5)],
            )

    def test_snapshot_scores(self):
        result = evaluate_cycle(_input(_values(RA1=80, OE1=80, AO1=80)))
        assert result.snapshot_scores() == {
            Pillar.RA: pytest.approx(0.8),
            Pillar.OE: pytest.approx(0.8),
            Pillar.AO: pytest.approx(0.8),
        }


class TestComposites:
    def test_composite_scored_from_components(self):
        indicators = INDICATORS + [
            _indicator("OE2", Pillar.OE, theme="infrastructure"),
            _indicator("OE_CMP", Pillar.OE, theme="infrastructure"),
        ]
        rules = [
            CompositeRule(composite_code="OE_CMP", component_code="OE1"),
            CompositeRule(composite_code="OE_CMP", component_code="OE2", transform=CompositeTransform.INVERT),
        ]
        result = evaluate_cycle(_input(
            _values(RA1=80, OE1=80, OE2=40, AO1=80),
            indicators=indicators,
            composites=rules,
        ))
        scores = {s.indicator_code: s.score for s in result.indicator_scores}
        assert scores["OE_CMP"] == pytest.approx((0.8 + 0.6) / 2)

    def test_composite_on_unknown_indicator_raises(self):
        rules = [CompositeRule(composite_code="GHOST", component_code="OE1")]
        with pytest.raises(ConfigurationError):
            evaluate_cycle(_input(_values(RA1=80, OE1=80, AO1=80), composites=rules))
