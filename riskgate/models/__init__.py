"""
RiskGate Models

Scoring, composition, pattern matching, gating and baseline learning.
"""

from riskgate.models.baseline_learner import AdaptiveBaselineLearner, CalibrationCancelledError
from riskgate.models.composer import RiskComposer
from riskgate.models.gate import DecisionGate, GateInputs
from riskgate.models.patterns import BehavioralPatternMatcher
from riskgate.models.scorers import (
    DEFAULT_WEIGHTS,
    BehavioralScorer,
    CognitiveScorer,
    FacialScorer,
    ModalityScorer,
    SelfReportScorer,
    VoiceScorer,
    default_scorers,
)
from riskgate.models.stress import HeuristicStressEstimator

__all__ = [
    "DEFAULT_WEIGHTS",
    "ModalityScorer",
    "CognitiveScorer",
    "BehavioralScorer",
    "SelfReportScorer",
    "VoiceScorer",
    "FacialScorer",
    "default_scorers",
    "RiskComposer",
    "BehavioralPatternMatcher",
    "HeuristicStressEstimator",
    "DecisionGate",
    "GateInputs",
    "AdaptiveBaselineLearner",
    "CalibrationCancelledError",
]
