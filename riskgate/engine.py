"""
RiskGate Engine

The pure evaluation pipeline:

    Signals -> Processor -> Scorers/Composer -> Patterns -> Stress -> Gate

No storage, no locks. The only collaborators are the optional pattern
matcher (reads cached history) and the optional language-model analyzer;
both degrade to a fallback on failure, so evaluate() never raises on a
collaborator fault.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from riskgate.models.composer import RiskComposer
from riskgate.models.gate import DecisionGate, GateInputs, InsufficientSignalsRule
from riskgate.models.patterns import BehavioralPatternMatcher
from riskgate.models.stress import HeuristicStressEstimator
from riskgate.processors.signals import SignalProcessor, SignalSummary
from riskgate.schemas.inputs import ActionContext, AssessmentSignals, Policy, UserBaseline
from riskgate.schemas.outputs import (
    AssessmentStatus,
    GateDecision,
    RiskScoreResult,
    StressAnalysis,
)
from riskgate.services.llm_scoring import LLMStressAnalyzer


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Below this composite confidence a scored verdict is withheld as pending
PENDING_CONFIDENCE = 0.25

HIGH_SELF_REPORT = 7.0
HIGH_CONTEXTUAL_RISK = 20.0
HIGH_PATTERN_ADJUSTMENT = 5.0


@dataclass(frozen=True)
class Evaluation:
    """Everything one pass through the pipeline produced."""
    summary: SignalSummary
    risk: RiskScoreResult
    stress: StressAnalysis
    decision: GateDecision
    status: AssessmentStatus
    reason_tags: List[str] = field(default_factory=list)

    @property
    def is_pending(self) -> bool:
        return self.status == AssessmentStatus.PENDING


class RiskEngine:
    """
    Deterministic (signals, context, baseline, policy) -> (score, verdict).

    Example:
        engine = RiskEngine()
        evaluation = engine.evaluate(signals, context)
        evaluation.decision.verdict
    """

    def __init__(
        self,
        processor: Optional[SignalProcessor] = None,
        composer: Optional[RiskComposer] = None,
        gate: Optional[DecisionGate] = None,
        stress_estimator: Optional[HeuristicStressEstimator] = None,
        pattern_matcher: Optional[BehavioralPatternMatcher] = None,
        llm: Optional[LLMStressAnalyzer] = None
    ) -> None:
        self.processor = processor or SignalProcessor()
        self.composer = composer or RiskComposer()
        self.gate = gate or DecisionGate()
        self.stress_estimator = stress_estimator or HeuristicStressEstimator()
        self.pattern_matcher = pattern_matcher
        self.llm = llm

    def evaluate(
        self,
        signals: AssessmentSignals,
        context: Optional[ActionContext] = None,
        baseline: Optional[UserBaseline] = None,
        policy: Optional[Policy] = None,
        actor_id: Optional[str] = None,
        observed_at: Optional[datetime] = None
    ) -> Evaluation:
        policy = policy or Policy()
        signals = self.processor.apply_policy(signals, policy.enabled_modalities)
        summary = self.processor.summarize(signals)

        risk = self.composer.compose(summary, context, baseline)
        risk = self._apply_patterns(risk, summary, context, actor_id, observed_at)
        stress = self._analyze_stress(summary, context, baseline)

        decision = self.gate.decide(GateInputs(
            risk=risk,
            summary=summary,
            stress=stress,
            policy=policy,
            context=context,
        ))

        pending = (
            decision.rule != InsufficientSignalsRule.name
            and risk.confidence < PENDING_CONFIDENCE
        )
        status = AssessmentStatus.PENDING if pending else AssessmentStatus.SCORED

        return Evaluation(
            summary=summary,
            risk=risk,
            stress=stress,
            decision=decision,
            status=status,
            reason_tags=self.reason_tags(risk, summary),
        )

    # -------------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------------

    def _apply_patterns(
        self,
        risk: RiskScoreResult,
        summary: SignalSummary,
        context: Optional[ActionContext],
        actor_id: Optional[str],
        observed_at: Optional[datetime]
    ) -> RiskScoreResult:
        if self.pattern_matcher is None or not actor_id:
            return risk
        try:
            prediction = self.pattern_matcher.predict(actor_id, summary, context, observed_at)
        except Exception as e:
            logger.warning(f"Pattern analysis failed for {actor_id}, using base score: {e}")
            return risk
        return self.composer.apply_pattern(risk, prediction)

    def _analyze_stress(
        self,
        summary: SignalSummary,
        context: Optional[ActionContext],
        baseline: Optional[UserBaseline]
    ) -> StressAnalysis:
        if self.llm is not None:
            try:
                return self.llm.analyze(summary, context, baseline)
            except Exception as e:
                logger.warning(f"Language-model stress analysis failed, using heuristic: {e}")
        return self.stress_estimator.estimate(summary, context)

    # -------------------------------------------------------------------------
    # Reason Tags
    # -------------------------------------------------------------------------

    @staticmethod
    def reason_tags(risk: RiskScoreResult, summary: SignalSummary) -> List[str]:
        flags = risk.flags
        tags: List[str] = []
        if flags.reaction_time_elevated:
            tags.append("Reaction time elevated")
        if flags.accuracy_low:
            tags.append("Accuracy below baseline")
        if summary.stress_level is not None and summary.stress_level >= HIGH_SELF_REPORT:
            tags.append("Self-report high stress")
        if flags.behavioral_anomalies:
            tags.append("Behavioral anomalies detected")
        if flags.voice_stress_detected:
            tags.append("Voice stress indicators")
        if flags.facial_stress_detected:
            tags.append("Facial stress indicators")
        if risk.contextual_risk >= HIGH_CONTEXTUAL_RISK:
            tags.append("High-risk trading context")
        if risk.pattern_adjustment is not None and risk.pattern_adjustment >= HIGH_PATTERN_ADJUSTMENT:
            tags.append("Matches historical high-risk pattern")
        return tags
