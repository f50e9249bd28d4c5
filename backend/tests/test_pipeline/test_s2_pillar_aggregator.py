"""Tests for Stage 2: Pillar Aggregator."""

import pytest

from models.schemas.indicator import Pillar
from models.schemas.pillar_score import Severity
from services.pipeline.s2_pillar_aggregator import PillarAggregatorService, severity_for


class TestSeverity:
    @pytest.mark.parametrize("score,expected", [
        (0.0, Severity.CRITICAL),
        (0.3399, Severity.CRITICAL),
        (0.34, Severity.MODERATE),
        (0.6699, Severity.MODERATE),
        (0.67, Severity.GOOD),
        (1.0, Severity.GOOD),
    ])
    def test_thresholds(self, score, expected):
        assert severity_for(score) is expected


class TestAggregate:
    def setup_method(self):
        self.svc = PillarAggregatorService()
        self.svc._loaded = True

    def test_weighted_mean(self, make_score):
        scores = [
            make_score("A", Pillar.RA, 0.2, weight=1),
            make_score("B", Pillar.RA, 0.8, weight=3),
        ]
        result = self.svc.aggregate(Pillar.RA, scores)
        assert result.score == pytest.approx(0.65)
        assert result.severity is Severity.MODERATE
        assert result.indicator_count == 2
        assert result.total_weight == pytest.approx(4.0)

    def test_cycle_weights_override_defaults(self, make_score):
        scores = [
            make_score("A", Pillar.RA, 0.2, weight=1),
            make_score("B", Pillar.RA, 0.8, weight=3),
        ]
        result = self.svc.aggregate(Pillar.RA, scores, weights={"B": 1})
        assert result.score == pytest.approx(0.5)

    def test_zero_weights_fall_back_to_plain_mean(self, make_score):
        scores = [
            make_score("A", Pillar.OE, 0.2, weight=0),
            make_score("B", Pillar.OE, 0.6, weight=0),
        ]
        result = self.svc.aggregate(Pillar.OE, scores)
        assert result.score == pytest.approx(0.4)

    def test_no_scored_indicators_is_undefined(self, make_score):
        result = self.svc.aggregate(Pillar.AO, [make_score("A", Pillar.RA, 0.9)])
        assert result.score is None
        assert result.severity is None
        assert not result.is_defined

    def test_other_pillars_ignored(self, make_score):
        scores = [
            make_score("A", Pillar.RA, 0.1),
            make_score("B", Pillar.OE, 0.9),
        ]
        assert self.svc.aggregate(Pillar.OE, scores).score == pytest.approx(0.9)

    def test_aggregate_all_fixed_order(self, make_score):
        scores = [make_score("B", Pillar.AO, 0.5), make_score("A", Pillar.RA, 0.5)]
        result = self.svc.predict(indicator_scores=scores)
        assert list(result) == [Pillar.RA, Pillar.OE, Pillar.AO]
        assert result[Pillar.OE].score is None

    def test_low_score_stays_defined(self, make_score):
        result = self.svc.aggregate(Pillar.RA, [make_score("A", Pillar.RA, 0.0)])
        assert result.score == 0.0
        assert result.severity is Severity.CRITICAL
