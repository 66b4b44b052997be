"""
RiskGate Output Schemas

This module defines Pydantic V2 models for every value the engine
produces: per-modality subscores, the immutable composite RiskScoreResult,
pattern predictions, stress analyses, gate decisions, baseline
optimizations and the API response contract.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from riskgate.schemas.inputs import UserBaseline


# =============================================================================
# Enums
# =============================================================================

class Verdict(str, Enum):
    """Final decision rendered by the gate."""
    ALLOW = "allow"
    COOLDOWN = "cooldown"
    BLOCK = "block"
    SUPERVISOR_REVIEW = "supervisor_review"


class AssessmentStatus(str, Enum):
    """How an evaluation concluded."""
    SCORED = "scored"
    PENDING = "pending"
    COOLDOWN_ACTIVE = "cooldown_active"


class StressVerdict(str, Enum):
    """Recommendation attached to a stress analysis."""
    GO = "go"
    HOLD = "hold"
    BLOCK = "block"


# =============================================================================
# Scoring Results
# =============================================================================

class ModalityScore(BaseModel):
    """Bounded subscore produced by one modality scorer."""
    model_config = ConfigDict(frozen=True)

    score: float = Field(0.0, ge=0.0, le=100.0, description="Capped subscore")
    confidence: float = Field(0.0, ge=0.0, le=1.0, description="Scorer confidence")
    flags: Dict[str, bool] = Field(default_factory=dict, description="Anomaly flags")


class RiskFlags(BaseModel):
    """Per-modality anomaly flags carried on the composite result."""
    model_config = ConfigDict(frozen=True)

    reaction_time_elevated: bool = False
    accuracy_low: bool = False
    behavioral_anomalies: bool = False
    voice_stress_detected: bool = False
    facial_stress_detected: bool = False


class RiskScoreResult(BaseModel):
    """
    Composite risk assessment for one evaluation.

    Produced fresh per evaluation and never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    risk_score: int = Field(..., ge=0, le=100, description="Composite score (0-100)")
    base_risk_score: int = Field(..., ge=0, le=100, description="Score before pattern adjustment")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Aggregate confidence")
    contextual_risk: float = Field(0.0, ge=0.0, le=40.0, description="Additive contextual term")
    flags: RiskFlags = Field(default_factory=RiskFlags)
    components: Dict[str, ModalityScore] = Field(default_factory=dict)
    pattern_adjustment: Optional[float] = Field(None, ge=-20.0, le=20.0)
    novelty_score: Optional[float] = Field(None, ge=0.0, le=1.0)
    matching_pattern_count: int = 0
    recommended_weights: Dict[str, float] = Field(default_factory=dict)


class PatternPrediction(BaseModel):
    """Similarity-weighted adjustment derived from an actor's history."""
    model_config = ConfigDict(frozen=True)

    adjustment: float = Field(0.0, ge=-20.0, le=20.0)
    confidence: float = Field(0.3, ge=0.0, le=1.0)
    novelty_score: float = Field(0.5, ge=0.0, le=1.0)
    matching_pattern_ids: List[str] = Field(default_factory=list)
    recommended_weights: Dict[str, float] = Field(default_factory=dict)


class StressAnalysis(BaseModel):
    """Stress-level estimate consumed by the decision gate."""
    stress_level: float = Field(..., ge=0.0, le=10.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    verdict: StressVerdict = StressVerdict.HOLD
    indicators: List[str] = Field(default_factory=list)
    reasoning: str = ""
    source: str = Field("heuristic", description="heuristic or language_model")


# =============================================================================
# Gate Decision
# =============================================================================

class GateDecision(BaseModel):
    """Verdict plus cooldown and the reasons that produced it."""
    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    cooldown_seconds: int = Field(0, ge=0)
    reasons: List[str] = Field(default_factory=list)
    primary_concerns: List[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    rule: str = Field(..., description="Name of the rule that fired")
    reasoning: str = ""
    signal_availability: Dict[str, bool] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _blocking_verdicts_explain_themselves(self) -> "GateDecision":
        if self.verdict in (Verdict.BLOCK, Verdict.SUPERVISOR_REVIEW) and not self.reasons:
            raise ValueError(f"{self.verdict.value} verdict requires at least one reason")
        if self.verdict == Verdict.ALLOW and self.cooldown_seconds != 0:
            raise ValueError("allow verdict cannot carry a cooldown")
        return self


# =============================================================================
# Baseline Learning
# =============================================================================

class PerformanceMetrics(BaseModel):
    """Aggregate trading performance over outcome-bearing assessments."""
    total_trades: int = 0
    successful_trades: int = 0
    average_pnl: float = 0.0
    average_hold_time_minutes: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    win_rate: float = 0.0


class RecommendedAdjustments(BaseModel):
    """Threshold targets the learner recommends moving toward."""
    reaction_time_ms: float = 600.0
    accuracy: float = 0.85
    mouse_stability: float = 0.7
    keystroke_rhythm: float = 0.6
    optimal_stress_min: float = 2.0
    optimal_stress_max: float = 6.0


class BaselineOptimization(BaseModel):
    """Recommendation bundle used to decide whether to rewrite a baseline."""
    recommended: RecommendedAdjustments = Field(default_factory=RecommendedAdjustments)
    confidence: float = Field(..., ge=0.0, le=1.0)
    learning_progress: float = Field(..., ge=0.0, le=1.0)
    performance_improvement: float = Field(..., ge=0.0, le=50.0)
    data_points: int = 0
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)


class CalibrationResult(BaseModel):
    """Outcome of a recalibration run."""
    actor_id: str
    optimization: BaselineOptimization
    updated: bool = False
    baseline: Optional[UserBaseline] = None
    skipped_reason: Optional[str] = None


# =============================================================================
# Evaluation Result
# =============================================================================

class AssessmentResult(BaseModel):
    """Everything one evaluation produced, as returned by the orchestrator."""
    assessment_id: str
    actor_id: Optional[str] = None
    status: AssessmentStatus
    risk: Optional[RiskScoreResult] = None
    decision: Optional[GateDecision] = None
    stress: Optional[StressAnalysis] = None
    reason_tags: List[str] = Field(default_factory=list)
    cooldown_remaining_seconds: int = 0

    @property
    def verdict(self) -> Optional[Verdict]:
        return self.decision.verdict if self.decision else None


class EvaluateResponse(BaseModel):
    """Wire contract for POST /assessments/evaluate and /rescore."""
    assessment_id: str
    status: AssessmentStatus
    verdict: Optional[Verdict] = None
    risk_score: Optional[int] = Field(None, ge=0, le=100)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    cooldown_seconds: int = 0
    reasons: List[str] = Field(default_factory=list)
    primary_concerns: List[str] = Field(default_factory=list)
    reason_tags: List[str] = Field(default_factory=list)
    reasoning: Optional[str] = None

    @classmethod
    def from_result(cls, result: AssessmentResult) -> "EvaluateResponse":
        """Build the response, never exposing a numeric score for pending assessments."""
        confidence = result.risk.confidence if result.risk else 0.0
        if result.status == AssessmentStatus.PENDING:
            return cls(
                assessment_id=result.assessment_id,
                status=result.status,
                confidence=confidence,
                reasoning="Assessment pending: more signals are required",
            )

        decision = result.decision
        if result.status == AssessmentStatus.COOLDOWN_ACTIVE:
            cooldown = result.cooldown_remaining_seconds
        else:
            cooldown = decision.cooldown_seconds if decision else 0

        return cls(
            assessment_id=result.assessment_id,
            status=result.status,
            verdict=decision.verdict if decision else None,
            risk_score=result.risk.risk_score if result.risk else None,
            confidence=decision.confidence if decision else confidence,
            cooldown_seconds=cooldown,
            reasons=decision.reasons if decision else [],
            primary_concerns=decision.primary_concerns if decision else [],
            reason_tags=result.reason_tags,
            reasoning=decision.reasoning if decision else None,
        )
