"""Tests for Stage 6: Prescriber."""

import pytest

from models.schemas.indicator import Pillar
from models.schemas.pillar_score import Severity
from models.schemas.prescription import PrescriptionPlan, TargetAgent, TrainingMapping
from models.schemas.relevance import RelevanceCandidate
from models.schemas.rule_outcome import ActionCode, Interpretation, RuleOutcome
from services.pipeline.s6_prescriber import (
    PrescriberService,
    detect_issues,
    interpret_theme,
    prescribe,
)

ALL_ALLOWED = RuleOutcome(allowed_actions={a: True for a in ActionCode})


def _trainings(*ids):
    return [RelevanceCandidate(id=i) for i in ids]


class TestDetectIssues:
    def test_theme_mean_below_good(self, make_score):
        scores = [
            make_score("A", Pillar.RA, 0.2, theme="environmental"),
            make_score("B", Pillar.RA, 0.4, theme="environmental"),
            make_score("C", Pillar.RA, 0.9, theme="economic"),
        ]
        issues = detect_issues(scores)
        assert len(issues) == 1
        issue = issues[0]
        assert issue.theme == "environmental"
        assert issue.score == pytest.approx(0.3)
        assert issue.severity is Severity.CRITICAL
        assert [e.code for e in issue.evidence] == ["A", "B"]
        assert "Environmental sustainability" in issue.title

    def test_good_theme_is_not_an_issue(self, make_score):
        assert detect_issues([make_score("A", Pillar.OE, 0.67)]) == []

    def test_pillar_order(self, make_score):
        scores = [
            make_score("A", Pillar.AO, 0.5, theme="marketing"),
            make_score("B", Pillar.RA, 0.5, theme="social"),
        ]
        assert [i.pillar for i in detect_issues(scores)] == [Pillar.RA, Pillar.AO]


class TestInterpretation:
    @pytest.mark.parametrize("pillar,theme,score,expected", [
        (Pillar.RA, "social", 0.5, Interpretation.STRUCTURAL),
        (Pillar.RA, "environmental", 0.2, Interpretation.STRUCTURAL),
        (Pillar.RA, "environmental", 0.5, Interpretation.MANAGEMENT),
        (Pillar.OE, "infrastructure", 0.2, Interpretation.STRUCTURAL),
        (Pillar.OE, "governance", 0.2, Interpretation.MANAGEMENT),
        (Pillar.AO, "supply", 0.2, Interpretation.MANAGEMENT),
        (Pillar.AO, "marketing", 0.2, Interpretation.DELIVERY),
    ])
    def test_heuristics(self, pillar, theme, score, expected):
        assert interpret_theme(pillar, theme, score) is expected


class TestPrescribe:
    def _issues(self, make_score):
        return detect_issues([
            make_score("RA1", Pillar.RA, 0.5, theme="environmental"),
            make_score("OE1", Pillar.OE, 0.1, theme="governance"),
        ])

    def test_critical_issues_first_with_running_priority(self, make_score):
        mappings = [
            TrainingMapping(indicator_code="RA1", training_id="t-ra", pillar=Pillar.RA),
            TrainingMapping(indicator_code="OE1", training_id="t-oe", pillar=Pillar.OE),
        ]
        prescriptions, skipped = prescribe(self._issues(make_score), mappings, _trainings("t-ra", "t-oe"), ALL_ALLOWED)
        assert [p.training_id for p in prescriptions] == ["t-oe", "t-ra"]
        assert [p.priority for p in prescriptions] == [1, 2]
        assert prescriptions[0].target_agent is TargetAgent.TECHNICIANS
        assert skipped == []

    def test_top_three_by_mapping_priority(self, make_score):
        issues = detect_issues([make_score("RA1", Pillar.RA, 0.5, theme="environmental")])
        mappings = [
            TrainingMapping(indicator_code="RA1", training_id=f"t{n}", pillar=Pillar.RA, priority=n)
            for n in (4, 2, 1, 3)
        ]
        prescriptions, _ = prescribe(issues, mappings, _trainings("t1", "t2", "t3", "t4"), ALL_ALLOWED)
        assert [p.training_id for p in prescriptions] == ["t1", "t2", "t3"]

    def test_blocked_pillar_skipped(self, make_score):
        outcome = RuleOutcome(allowed_actions={
            ActionCode.EDU_RA: True,
            ActionCode.EDU_OE: False,
            ActionCode.EDU_AO: False,
            ActionCode.MARKETING: False,
        })
        mappings = [
            TrainingMapping(indicator_code="RA1", training_id="t-ra", pillar=Pillar.RA),
            TrainingMapping(indicator_code="OE1", training_id="t-oe", pillar=Pillar.OE),
        ]
        prescriptions, skipped = prescribe(self._issues(make_score), mappings, _trainings("t-ra", "t-oe"), outcome)
        assert [p.training_id for p in prescriptions] == ["t-ra"]
        assert skipped == [Pillar.OE]

    def test_inactive_other_pillar_and_duplicate_trainings_ignored(self, make_score):
        issues = detect_issues([
            make_score("RA1", Pillar.RA, 0.5, theme="environmental"),
            make_score("RA2", Pillar.RA, 0.5, theme="social"),
        ])
        mappings = [
            TrainingMapping(indicator_code="RA1", training_id="shared", pillar=Pillar.RA),
            TrainingMapping(indicator_code="RA1", training_id="retired", pillar=Pillar.RA),
            TrainingMapping(indicator_code="RA1", training_id="wrong-pillar", pillar=Pillar.OE),
            TrainingMapping(indicator_code="RA2", training_id="shared", pillar=Pillar.RA),
        ]
        prescriptions, _ = prescribe(issues, mappings, _trainings("shared", "wrong-pillar"), ALL_ALLOWED)
        assert [p.training_id for p in prescriptions] == ["shared"]

    def test_justification_template(self, make_score):
        issues = detect_issues([make_score("RA1", Pillar.RA, 0.5, theme="environmental")])
        mappings = [TrainingMapping(
            indicator_code="RA1",
            training_id="t1",
            pillar=Pillar.RA,
            reason_template="{indicator} is {status} in {pillar}",
        )]
        prescriptions, _ = prescribe(issues, mappings, _trainings("t1"), ALL_ALLOWED)
        assert prescriptions[0].justification == "Indicator RA1 is Attention in Environmental Relations"

    def test_default_justification(self, make_score):
        issues = detect_issues([make_score("RA1", Pillar.RA, 0.2, theme="environmental")])
        mappings = [TrainingMapping(indicator_code="RA1", training_id="t1", pillar=Pillar.RA)]
        prescriptions, _ = prescribe(issues, mappings, _trainings("t1"), ALL_ALLOWED)
        assert "Critical" in prescriptions[0].justification
        assert prescriptions[0].target_agent is TargetAgent.MANAGERS


class TestPredict:
    def test_returns_plan(self, make_score):
        svc = PrescriberService()
        svc._loaded = True
        plan = svc.predict(
            indicator_scores=[make_score("AO1", Pillar.AO, 0.5, theme="marketing")],
            rule_outcome=ALL_ALLOWED,
            mappings=[TrainingMapping(indicator_code="AO1", training_id="t1", pillar=Pillar.AO)],
            trainings=_trainings("t1"),
        )
        assert isinstance(plan, PrescriptionPlan)
        assert len(plan.issues) == 1
        assert plan.prescriptions[0].target_agent is TargetAgent.TRADE
