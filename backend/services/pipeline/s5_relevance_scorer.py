"""Stage 5: Relevance Scorer - explainable ranking of learning content.

Independent of stages 1-4. Two modes:

    Profile mode:   additive points per matching criterion (pillar interest,
                    themes, audience, duration; tracks use audience, themes
                    in their objective and a certification goal).
    Indicator mode: share of the selected indicators each item is mapped to
                    address; tracks made of courses are scored by how many
                    of their courses made the course ranking.

Scores are capped at 100. Items below the minimum score (and, in indicator
mode, below the minimum coverage) are dropped. Ties keep input order.
"""

import logging
from typing import Any, Sequence

from config import settings
from models.schemas.relevance import (
    CandidateKind,
    LearnerProfile,
    RelevanceCandidate,
    RelevanceReason,
    RelevanceResult,
    RelevanceWeights,
)
from services.pipeline.base import BaseEngineService

logger = logging.getLogger(__name__)

MAX_SCORE = 100.0


class RelevanceScorerService(BaseEngineService):
    engine_name = "s5_relevance_scorer"

    def __init__(self, weights: RelevanceWeights | None = None) -> None:
        self.weights = weights or RelevanceWeights()
        self._min_score = 20.0
        self._min_coverage = 0.3
        self._default_limit = 20
        self._track_window = 10

    def load(self) -> None:
        self._min_score = settings.relevance_min_score
        self._min_coverage = settings.relevance_min_coverage
        self._default_limit = settings.relevance_default_limit
        self._track_window = settings.relevance_track_course_window
        logger.info(
            "S5 Relevance Scorer ready (min score %.0f, min coverage %.0f%%)",
            self._min_score, self._min_coverage * 100,
        )

    def predict(self, **kwargs: Any) -> list[RelevanceResult]:
        self.ensure_loaded()
        return self.recommend(
            kwargs.get("candidates", []),
            profile=kwargs.get("profile"),
            indicator_codes=kwargs.get("indicator_codes"),
            limit=kwargs.get("limit"),
        )

    # ------------------------------------------------------------------
    # Single candidate
    # ------------------------------------------------------------------

    def score(
        self,
        candidate: RelevanceCandidate,
        profile: LearnerProfile | None = None,
        indicator_codes: Sequence[str] | None = None,
    ) -> RelevanceResult:
        if profile is not None and indicator_codes is not None:
            raise ValueError("Score against a profile or an indicator set, not both")
        if indicator_codes is not None:
            return self.score_indicators(candidate, indicator_codes)
        return self.score_profile(candidate, profile or LearnerProfile())

    def score_profile(self, candidate: RelevanceCandidate, profile: LearnerProfile) -> RelevanceResult:
        if candidate.kind is CandidateKind.TRACK:
            reasons = self._track_reasons(candidate, profile)
        else:
            reasons = self._training_reasons(candidate, profile)
        return _result(candidate, reasons)

    def score_indicators(self, candidate: RelevanceCandidate, indicator_codes: Sequence[str]) -> RelevanceResult:
        selected = _unique(indicator_codes)
        if not selected:
            return RelevanceResult(candidate_id=candidate.id, kind=candidate.kind, coverage=0.0)

        mapped = set(candidate.indicator_codes)
        covered = [code for code in selected if code in mapped]
        share = round(MAX_SCORE / len(selected), 2)
        coverage = len(covered) / len(selected)
        score = round(min(MAX_SCORE, coverage * MAX_SCORE), 2)
        reasons = [RelevanceReason(reason=f"Addresses indicator {code}", weight=share) for code in covered]
        if reasons:
            # rounding remainder goes on the last reason so weights add up to the score
            reasons[-1].weight = round(score - share * (len(reasons) - 1), 2)

        result = _result(candidate, reasons)
        result.score = score
        result.coverage = coverage
        return result

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def recommend(
        self,
        candidates: Sequence[RelevanceCandidate],
        profile: LearnerProfile | None = None,
        indicator_codes: Sequence[str] | None = None,
        limit: int | None = None,
    ) -> list[RelevanceResult]:
        """Rank the candidate pool. An empty pool or empty input yields []."""
        if profile is not None and indicator_codes is not None:
            raise ValueError("Recommend from a profile or an indicator set, not both")
        limit = self._default_limit if limit is None else limit
        if not candidates or limit <= 0:
            return []

        if indicator_codes is not None:
            ranked = self._rank_by_indicators(candidates, indicator_codes)
        elif profile is not None:
            ranked = self._rank([(i, self.score_profile(c, profile)) for i, c in enumerate(candidates)])
        else:
            return []

        logger.debug("Relevance ranking: %d of %d candidates kept", len(ranked), len(candidates))
        return [r for _, r in ranked[:limit]]

    def _rank(self, indexed: list[tuple[int, RelevanceResult]]) -> list[tuple[int, RelevanceResult]]:
        """Drop results under the floor, then order by score, input position second."""
        kept = [(i, r) for i, r in indexed if r.score >= self._min_score]
        return sorted(kept, key=lambda pair: (-pair[1].score, pair[0]))

    def _rank_by_indicators(
        self,
        candidates: Sequence[RelevanceCandidate],
        indicator_codes: Sequence[str],
    ) -> list[tuple[int, RelevanceResult]]:
        if not _unique(indicator_codes):
            return []

        direct: list[tuple[int, RelevanceResult]] = []
        course_tracks: list[tuple[int, RelevanceCandidate]] = []
        for i, candidate in enumerate(candidates):
            if candidate.kind is CandidateKind.TRACK and _unique(candidate.course_ids):
                course_tracks.append((i, candidate))
                continue
            result = self.score_indicators(candidate, indicator_codes)
            if result.coverage is not None and result.coverage >= self._min_coverage:
                direct.append((i, result))

        ranked_direct = self._rank(direct)
        top_courses = [
            r.candidate_id for _, r in ranked_direct if r.kind is CandidateKind.COURSE
        ][: self._track_window]

        tracks: list[tuple[int, RelevanceResult]] = []
        for i, track in course_tracks:
            result = self._score_track_coverage(track, top_courses)
            if result.coverage is not None and result.coverage >= self._min_coverage:
                tracks.append((i, result))

        return self._rank(ranked_direct + tracks)

    def _score_track_coverage(self, track: RelevanceCandidate, top_courses: list[str]) -> RelevanceResult:
        course_ids = _unique(track.course_ids)
        recommended = set(top_courses)
        matching = [c for c in course_ids if c in recommended]
        coverage = len(matching) / len(course_ids) if course_ids else 0.0
        score = round(coverage * MAX_SCORE, 2)
        reasons = [RelevanceReason(
            reason=f"{round(coverage * 100)}% of its courses are recommended",
            weight=score,
        )] if matching else []
        return RelevanceResult(
            candidate_id=track.id,
            kind=track.kind,
            score=min(MAX_SCORE, score),
            reasons=reasons,
            coverage=coverage,
        )

    # ------------------------------------------------------------------
    # Profile criteria
    # ------------------------------------------------------------------

    def _training_reasons(self, candidate: RelevanceCandidate, profile: LearnerProfile) -> list[RelevanceReason]:
        w = self.weights
        reasons: list[RelevanceReason] = []

        if candidate.pillar is not None and candidate.pillar in profile.interest_pillars:
            reasons.append(RelevanceReason(
                reason=f"Pillar {candidate.pillar.value} is one of your interests",
                weight=w.pillar_interest,
            ))

        tags = [t.lower() for t in candidate.tags]
        matched = [t for t in _themes(profile) if any(t.lower() in tag for tag in tags)]
        if matched:
            reasons.append(RelevanceReason(
                reason=f"Aligned themes: {', '.join(matched)}",
                weight=min(len(matched) * w.theme_per_match, w.theme_cap),
            ))

        if _audience_match(candidate.target_audience, profile.occupation_area):
            reasons.append(RelevanceReason(reason="Target audience matches your occupation", weight=w.audience))

        if profile.available_hours_per_week and candidate.duration_minutes:
            if candidate.duration_minutes <= profile.available_hours_per_week * 60:
                reasons.append(RelevanceReason(reason="Duration fits your weekly availability", weight=w.duration_fit))

        return reasons

    def _track_reasons(self, track: RelevanceCandidate, profile: LearnerProfile) -> list[RelevanceReason]:
        w = self.weights
        reasons: list[RelevanceReason] = []

        if _audience_match(track.target_audience, profile.occupation_area):
            reasons.append(RelevanceReason(reason="Track designed for your profile", weight=w.track_audience))

        text = f"{track.description} {track.objective}".lower()
        matched = [t for t in _themes(profile) if t.lower() in text]
        if matched:
            reasons.append(RelevanceReason(
                reason=f"Objective aligned: {', '.join(matched)}",
                weight=min(len(matched) * w.track_theme_per_match, w.track_theme_cap),
            ))

        if any(goal.strip().lower() == "certification" for goal in profile.learning_goals):
            reasons.append(RelevanceReason(reason="Complete track leading to certification", weight=w.track_certification))

        return reasons


def _result(candidate: RelevanceCandidate, reasons: list[RelevanceReason]) -> RelevanceResult:
    total = sum(r.weight for r in reasons)
    return RelevanceResult(
        candidate_id=candidate.id,
        kind=candidate.kind,
        score=min(MAX_SCORE, total),
        reasons=reasons,
    )


def _unique(values: Sequence[str]) -> list[str]:
    seen: dict[str, None] = {}
    for v in values:
        if v:
            seen.setdefault(v, None)
    return list(seen)


def _themes(profile: LearnerProfile) -> list[str]:
    return [t.strip() for t in profile.interest_themes if t and t.strip()]


def _audience_match(audience: str, occupation: str) -> bool:
    if not audience or not occupation or not occupation.strip():
        return False
    return occupation.strip().lower() in audience.lower()
