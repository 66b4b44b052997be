"""
RiskGate Record Schemas

Stored shapes shared by the engine and the persistence layer:
- AssessmentRecord: one stored assessment with its signals and outcome
- BehavioralPattern: an actor-scoped historical signature
- PatternLibrary: the clustered pattern set cached per actor
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from riskgate.schemas.inputs import ActionContext, AssessmentSignals


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Assessments
# =============================================================================

class TradeOutcome(BaseModel):
    """Realized result of a gated trade."""
    pnl: Optional[float] = Field(None, description="Realized P&L")
    duration_ms: Optional[float] = Field(None, description="Hold time in milliseconds")


class AssessmentRecord(BaseModel):
    """One stored assessment. Rows in the `assessments` table."""
    id: str
    actor_id: str
    created_at: datetime = Field(default_factory=utc_now)
    signals: AssessmentSignals = Field(default_factory=AssessmentSignals)
    context: Optional[ActionContext] = None
    risk_score: Optional[int] = None
    confidence: float = 0.0
    verdict: str = "pending"
    reason_tags: List[str] = Field(default_factory=list)
    cooldown_seconds: int = 0
    cooldown_completed: bool = False
    trade_executed: bool = False
    trade_outcome: Optional[TradeOutcome] = None
    overridden: bool = False
    override_reason: Optional[str] = None

    @property
    def self_report_stress(self) -> Optional[float]:
        return self.signals.stress_level

    def has_outcome(self) -> bool:
        return self.trade_executed and self.trade_outcome is not None

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# =============================================================================
# Behavioral Patterns
# =============================================================================

class PatternType(str, Enum):
    """Kind of signature a pattern summarizes."""
    MOUSE_STABILITY = "mouse_stability"
    KEYSTROKE_RHYTHM = "keystroke_rhythm"
    COGNITIVE_PERFORMANCE = "cognitive_performance"
    STRESS_ESCALATION = "stress_escalation"
    SEQUENTIAL_RISK = "sequential_risk"


class BehavioralPattern(BaseModel):
    """
    Actor-scoped historical signature paired with its realized risk outcome.

    Created by mining stored assessments, merged with similar patterns
    during clustering, never deleted.
    """
    id: str
    actor_id: str
    pattern_type: PatternType
    signature: Dict[str, float] = Field(..., description="Normalized named feature vector")
    risk_outcome: float = Field(..., description="Risk score realized at capture time")
    frequency: int = Field(1, ge=1, description="Observations merged into this pattern")
    last_seen: datetime = Field(default_factory=utc_now)
    accuracy: float = Field(..., ge=0.0, le=1.0, description="How predictive this pattern has been")


class PatternLibrary(BaseModel):
    """Clustered patterns for one actor, as cached between evaluations."""
    actor_id: str
    history_count: int = 0
    patterns: List[BehavioralPattern] = Field(default_factory=list)
    built_at: datetime = Field(default_factory=utc_now)
