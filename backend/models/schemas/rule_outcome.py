"""Rule-engine output: alerts, block flags and review cadence for one cycle."""

from datetime import date
from enum import Enum

from pydantic import BaseModel

from models.schemas.indicator import Pillar


class AlertCode(str, Enum):
    RA_BLOCKS_OE = "RA_BLOCKS_OE"
    NEGATIVE_EXTERNALITY = "NEGATIVE_EXTERNALITY"
    AO_BLOCKS_SYSTEM = "AO_BLOCKS_SYSTEM"
    INTERSECTORAL_DEPENDENCY = "INTERSECTORAL_DEPENDENCY"


class ActionCode(str, Enum):
    EDU_RA = "EDU_RA"
    EDU_OE = "EDU_OE"
    EDU_AO = "EDU_AO"
    MARKETING = "MARKETING"


class Interpretation(str, Enum):
    """Territorial reading of where the bottleneck lies."""
    STRUCTURAL = "STRUCTURAL"
    MANAGEMENT = "MANAGEMENT"
    DELIVERY = "DELIVERY"


class RuleMessage(BaseModel):
    """User-facing explanation attached to a fired rule."""
    level: str  # critical, warning, info
    alert: AlertCode | None = None
    title: str
    message: str


class RuleOutcome(BaseModel):
    """Derived entirely from one cycle's pillar scores (and the previous RA/OE)."""
    alerts: list[AlertCode] = []
    structural_expansion_blocked: bool = False
    all_actions_blocked: bool = False
    marketing_blocked: bool = False
    cross_sector_dependencies: list[str] = []  # indicator codes

    review_interval_months: int = 12
    next_review_on: date | None = None

    allowed_actions: dict[ActionCode, bool] = {}
    blocked_actions: list[ActionCode] = []
    messages: list[RuleMessage] = []
    interpretation: Interpretation = Interpretation.MANAGEMENT
    critical_pillar: Pillar | None = None

    def is_allowed(self, action: ActionCode) -> bool:
        return self.allowed_actions.get(action, False)
