"""Learning-content relevance contracts."""

from enum import Enum

from pydantic import BaseModel, Field

from models.schemas.indicator import Pillar


class CandidateKind(str, Enum):
    COURSE = "course"
    LIVE = "live"
    TRACK = "track"


class RelevanceCandidate(BaseModel):
    """A scoreable learning item (course, live session or curated track)."""
    id: str
    kind: CandidateKind = CandidateKind.COURSE
    title: str = ""
    pillar: Pillar | None = None
    tags: list[str] = []
    target_audience: str = ""
    duration_minutes: int | None = None
    description: str = ""
    objective: str = ""
    indicator_codes: list[str] = []  # indicators this item is mapped to address
    course_ids: list[str] = []  # tracks only


class LearnerProfile(BaseModel):
    occupation_area: str = ""
    interest_pillars: list[Pillar] = []
    interest_themes: list[str] = []
    available_hours_per_week: float | None = None
    learning_goals: list[str] = []


class RelevanceReason(BaseModel):
    reason: str
    weight: float


class RelevanceResult(BaseModel):
    candidate_id: str
    kind: CandidateKind = CandidateKind.COURSE
    score: float = Field(0.0, ge=0.0, le=100.0)
    reasons: list[RelevanceReason] = []
    coverage: float | None = None  # indicator mode only, 0-1


class RelevanceWeights(BaseModel):
    """Fixed point values of each matching criterion."""
    pillar_interest: float = 40.0
    theme_per_match: float = 15.0
    theme_cap: float = 30.0
    audience: float = 15.0
    duration_fit: float = 10.0

    track_audience: float = 30.0
    track_theme_per_match: float = 20.0
    track_theme_cap: float = 40.0
    track_certification: float = 20.0
