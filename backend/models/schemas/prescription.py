"""Issues detected in a cycle and the trainings prescribed for them."""

from enum import Enum

from pydantic import BaseModel

from models.schemas.indicator import Pillar
from models.schemas.pillar_score import Severity
from models.schemas.rule_outcome import Interpretation


class TargetAgent(str, Enum):
    MANAGERS = "MANAGERS"
    TECHNICIANS = "TECHNICIANS"
    TRADE = "TRADE"


class IssueEvidence(BaseModel):
    code: str
    name: str = ""
    score: float


class Issue(BaseModel):
    """A theme within a pillar whose mean score is below GOOD."""
    pillar: Pillar
    theme: str
    score: float
    severity: Severity
    interpretation: Interpretation
    title: str = ""
    evidence: list[IssueEvidence] = []


class TrainingMapping(BaseModel):
    """Links an indicator to a training that addresses it."""
    indicator_code: str
    training_id: str
    pillar: Pillar
    priority: int = 1  # lower = more urgent
    reason_template: str = ""


class Prescription(BaseModel):
    training_id: str
    pillar: Pillar
    theme: str
    severity: Severity
    interpretation: Interpretation
    target_agent: TargetAgent
    justification: str
    priority: int


class PrescriptionPlan(BaseModel):
    """Structured output of the Prescriber (Stage 6)."""
    issues: list[Issue] = []
    prescriptions: list[Prescription] = []
    skipped_pillars: list[Pillar] = []  # issues left unprescribed by blocking rules
