"""
RiskGate Schemas

Public exports for input, output and record Pydantic models.
"""

# Input schemas - Signals and context
from riskgate.schemas.inputs import (
    ActionContext,
    AssessmentSignals,
    CognitiveTrial,
    EnhancedFacialMetrics,
    FacialMetrics,
    LegacyFacialMetrics,
    VoiceFeatures,
)

# Input schemas - Configuration
from riskgate.schemas.inputs import (
    EnabledModalities,
    Policy,
    UserBaseline,
)

# Input schemas - API payloads
from riskgate.schemas.inputs import (
    EvaluatePayload,
    OverridePayload,
    RescorePayload,
    TradeOutcomePayload,
)

# Output schemas
from riskgate.schemas.outputs import (
    AssessmentResult,
    AssessmentStatus,
    BaselineOptimization,
    CalibrationResult,
    EvaluateResponse,
    GateDecision,
    ModalityScore,
    PatternPrediction,
    PerformanceMetrics,
    RecommendedAdjustments,
    RiskFlags,
    RiskScoreResult,
    StressAnalysis,
    StressVerdict,
    Verdict,
)

# Record schemas
from riskgate.schemas.records import (
    AssessmentRecord,
    BehavioralPattern,
    PatternLibrary,
    PatternType,
    TradeOutcome,
)

__all__ = [
    # Input - Signals
    "CognitiveTrial",
    "VoiceFeatures",
    "LegacyFacialMetrics",
    "EnhancedFacialMetrics",
    "FacialMetrics",
    "AssessmentSignals",
    "ActionContext",
    # Input - Configuration
    "UserBaseline",
    "EnabledModalities",
    "Policy",
    # Input - API
    "EvaluatePayload",
    "RescorePayload",
    "TradeOutcomePayload",
    "OverridePayload",
    # Output
    "Verdict",
    "AssessmentStatus",
    "StressVerdict",
    "ModalityScore",
    "RiskFlags",
    "RiskScoreResult",
    "PatternPrediction",
    "StressAnalysis",
    "GateDecision",
    "PerformanceMetrics",
    "RecommendedAdjustments",
    "BaselineOptimization",
    "CalibrationResult",
    "AssessmentResult",
    "EvaluateResponse",
    # Records
    "TradeOutcome",
    "AssessmentRecord",
    "PatternType",
    "BehavioralPattern",
    "PatternLibrary",
]
