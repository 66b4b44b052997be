"""
RiskGate Input Schemas

This module defines Pydantic V2 models for:
- Raw per-modality assessment signals (AssessmentSignals)
- The context of the action being gated (ActionContext)
- Per-actor personal norms (UserBaseline) and desk policy (Policy)
- HTTP request payloads for the assessment API
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Cognitive Test Models
# =============================================================================

class CognitiveTrial(BaseModel):
    """Single timed trial from the interference (Stroop-style) test."""
    stimulus: str = Field("", description="Word/colour stimulus shown to the actor")
    response: str = Field("", description="Response given by the actor")
    correct: bool = Field(..., description="Whether the response was correct")
    reaction_time_ms: float = Field(..., description="Reaction time in milliseconds")


# =============================================================================
# Optional Biometric Feature Bundles
# =============================================================================

class VoiceFeatures(BaseModel):
    """Voice prosody summary captured during a spoken check."""
    pitch: float = Field(..., description="Mean fundamental frequency in Hz")
    jitter: float = Field(..., description="Cycle-to-cycle pitch perturbation")
    shimmer: float = Field(..., description="Cycle-to-cycle amplitude perturbation")
    energy: float = Field(..., description="Normalized vocal energy (0-1)")


class LegacyFacialMetrics(BaseModel):
    """Facial-expression summary produced by the original camera check."""
    shape: Literal["legacy"] = "legacy"
    brow_furrow: float = Field(..., description="Brow furrow intensity (0-1)")
    blink_rate: float = Field(..., description="Blinks per minute")
    gaze_fixation: float = Field(..., description="Gaze fixation ratio (0-1)")


class EnhancedFacialMetrics(BaseModel):
    """Facial landmarks summary produced by the webcam detector."""
    shape: Literal["enhanced"] = "enhanced"
    is_present: bool = Field(..., description="Whether a face was detected at all")
    blink_rate: float = Field(..., description="Blinks per minute")
    eye_aspect_ratio: float = Field(..., description="Mean eye aspect ratio (0-1)")
    jaw_openness: float = Field(..., description="Mean jaw openness (0-1)")
    brow_furrow: float = Field(..., description="Brow furrow intensity (0-1)")
    gaze_stability: float = Field(..., description="Gaze stability (0-1, 1 = steady)")
    stress_score: Optional[float] = Field(
        None,
        description="Client-side facial stress estimate (0-100)"
    )
    is_high_stress: bool = Field(
        False,
        description="Client-side flag for a high-stress facial scan"
    )


FacialMetrics = Annotated[
    Union[LegacyFacialMetrics, EnhancedFacialMetrics],
    Field(discriminator="shape"),
]


# =============================================================================
# Assessment Signals
# =============================================================================

class AssessmentSignals(BaseModel):
    """
    Every signal collected for one assessment.

    All modalities are independently optional. Values are accepted as sent
    and sanitized by the signal processor before scoring.
    """
    cognitive_trials: Optional[List[CognitiveTrial]] = Field(
        None,
        description="Ordered cognitive test trials"
    )
    mouse_movements: Optional[List[float]] = Field(
        None,
        description="Ordered pointer-movement magnitudes"
    )
    keystroke_timings: Optional[List[float]] = Field(
        None,
        description="Ordered inter-key intervals in milliseconds"
    )
    click_latency_ms: Optional[float] = Field(
        None,
        description="Latency of the confirmation click in milliseconds"
    )
    stress_level: Optional[float] = Field(
        None,
        description="Self-reported stress (0-10)"
    )
    voice: Optional[VoiceFeatures] = Field(None, description="Voice prosody features")
    facial: Optional[FacialMetrics] = Field(None, description="Facial metrics (legacy or enhanced)")


# =============================================================================
# Action Context
# =============================================================================

class ActionContext(BaseModel):
    """Context of the trade being attempted. Immutable per evaluation."""
    model_config = ConfigDict(frozen=True)

    instrument: Optional[str] = Field(None, description="Instrument symbol")
    size: Optional[float] = Field(None, description="Order size / risk amount")
    side: Optional[Literal["buy", "sell"]] = Field(None, description="Order side")
    order_type: Optional[Literal["market", "limit"]] = Field(None, description="Order type")
    leverage: Optional[float] = Field(None, description="Requested leverage")
    recent_losses: Optional[int] = Field(None, description="Count of recent losing trades")
    current_pnl: Optional[float] = Field(None, description="Cumulative P&L for the session")
    time_of_day: Optional[datetime] = Field(None, description="Local time the order is placed")
    market_volatility: Optional[float] = Field(None, description="Market volatility scalar")


# =============================================================================
# Baseline & Policy
# =============================================================================

class UserBaseline(BaseModel):
    """Per-actor personal norms used for deviation scoring."""
    actor_id: str = Field(..., description="Actor identifier")
    reaction_time_ms: float = Field(600.0, description="Mean reaction time in ms")
    reaction_time_std_dev: float = Field(50.0, description="Reaction time std dev in ms")
    accuracy: float = Field(0.85, description="Mean cognitive test accuracy (0-1)")
    accuracy_std_dev: float = Field(0.1, description="Accuracy std dev")
    mouse_stability: float = Field(0.7, description="Mean pointer stability (0-1)")
    keystroke_rhythm: float = Field(0.6, description="Mean keystroke rhythm (0-1)")
    calibration_count: int = Field(0, ge=0, description="Number of calibrations applied")
    last_calibrated: Optional[datetime] = Field(None, description="Last calibration time")


class EnabledModalities(BaseModel):
    """Which signal modalities the policy lets contribute to a decision."""
    cognitive_test: bool = True
    behavioral_biometrics: bool = True
    self_report: bool = True
    voice_prosody: bool = True
    facial_expression: bool = True


class Policy(BaseModel):
    """Named threshold configuration. Read-only during an evaluation."""
    name: str = Field("default", description="Policy name")
    block_threshold: int = Field(75, ge=1, le=100, description="Risk score that blocks")
    cooldown_duration_seconds: int = Field(
        30,
        ge=0,
        description="Minimum cooldown attached to a non-allow verdict"
    )
    enabled_modalities: EnabledModalities = Field(default_factory=EnabledModalities)
    strictness_level: Literal["lenient", "standard", "strict"] = "standard"
    override_allowed: bool = True
    supervisor_notification: bool = True

    @property
    def warning_threshold(self) -> int:
        return max(50, self.block_threshold - 15)


# =============================================================================
# API Payloads
# =============================================================================

class EvaluatePayload(BaseModel):
    """Request body for POST /assessments/evaluate."""
    actor_id: str = Field(..., description="Trader identifier")
    signals: AssessmentSignals = Field(default_factory=AssessmentSignals)
    context: Optional[ActionContext] = Field(None, description="Trade being attempted")


class RescorePayload(BaseModel):
    """Late-arriving signals for a pending assessment."""
    facial: Optional[FacialMetrics] = None
    stress_level: Optional[float] = None


class TradeOutcomePayload(BaseModel):
    """Realized outcome of the trade an assessment gated."""
    executed: bool = Field(..., description="Whether the trade was executed")
    pnl: Optional[float] = Field(None, description="Realized P&L")
    duration_ms: Optional[float] = Field(None, description="Hold time in milliseconds")


class OverridePayload(BaseModel):
    """Supervisor/trader override of a non-allow verdict."""
    reason: str = Field(..., min_length=1, description="Justification for the override")
