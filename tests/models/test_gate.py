"""
Decision Gate Unit Tests

Strict rule order (insufficient -> blocking -> warning -> allow),
cooldown formulas, reason lists and determinism.
"""

from datetime import datetime

import pytest

from riskgate.models.gate import DecisionGate, GateInputs, MAX_PRIMARY_CONCERNS
from riskgate.schemas.inputs import (
    ActionContext,
    AssessmentSignals,
    CognitiveTrial,
    EnhancedFacialMetrics,
    Policy,
)
from riskgate.schemas.outputs import (
    RiskFlags,
    RiskScoreResult,
    StressAnalysis,
    StressVerdict,
    Verdict,
)


# =============================================================================
# Input Generators (Inline)
# =============================================================================

def trials(count: int = 10):
    return [CognitiveTrial(correct=True, reaction_time_ms=500.0) for _ in range(count)]


def sufficient_signals(**overrides) -> AssessmentSignals:
    values = {"cognitive_trials": trials(), "stress_level": 3.0}
    values.update(overrides)
    return AssessmentSignals(**values)


def risk(score: int, confidence: float = 0.6, **flags) -> RiskScoreResult:
    return RiskScoreResult(
        risk_score=score,
        base_risk_score=score,
        confidence=confidence,
        flags=RiskFlags(**flags),
    )


def stress(level: float = 2.0) -> StressAnalysis:
    return StressAnalysis(stress_level=level, confidence=0.7, verdict=StressVerdict.GO)


def inputs(processor, score=10, confidence=0.6, stress_level=2.0, signals=None,
           policy=None, context=None, **flags) -> GateInputs:
    return GateInputs(
        risk=risk(score, confidence, **flags),
        summary=processor.summarize(signals or sufficient_signals()),
        stress=stress(stress_level),
        policy=policy or Policy(),
        context=context,
    )


# =============================================================================
# Rule 1: Insufficient Signals
# =============================================================================

class TestInsufficientSignals:
    """Too little evidence is a conservative block, independent of score."""

    def test_no_signals_blocks(self, gate, processor):
        decision = gate.decide(inputs(processor, score=0, signals=AssessmentSignals()))

        assert decision.verdict == Verdict.BLOCK
        assert decision.rule == "insufficient_signals"
        assert decision.cooldown_seconds == 600
        assert decision.confidence == 0.3
        assert len(decision.reasons) == 2

    def test_short_cognitive_test_blocks(self, gate, processor):
        signals = sufficient_signals(cognitive_trials=trials(4), mouse_movements=[1.0, 2.0])

        decision = gate.decide(inputs(processor, signals=signals))

        assert decision.verdict == Verdict.BLOCK
        assert decision.rule == "insufficient_signals"
        assert decision.reasons == ["Cognitive test incomplete (4 of 5 valid trials)"]

    def test_single_source_blocks_even_with_low_score(self, gate, processor):
        signals = AssessmentSignals(cognitive_trials=trials())
        decision = gate.decide(inputs(processor, score=0, signals=signals))
        assert decision.rule == "insufficient_signals"

    def test_five_trials_and_two_sources_pass(self, gate, processor):
        signals = sufficient_signals(cognitive_trials=trials(5))
        decision = gate.decide(inputs(processor, signals=signals))
        assert decision.verdict == Verdict.ALLOW


# =============================================================================
# Rule 2: Blocking Conditions
# =============================================================================

class TestBlockingConditions:
    """Any single blocking factor blocks; severe cases escalate."""

    def test_score_at_threshold_blocks(self, gate, processor):
        """Cooldown round(5 + 5 * 0.8) = 9 minutes."""
        decision = gate.decide(inputs(processor, score=80))

        assert decision.verdict == Verdict.BLOCK
        assert decision.rule == "blocking_conditions"
        assert decision.cooldown_seconds == 540
        assert "block threshold" in decision.reasons[0]

    def test_high_score_escalates(self, gate, processor):
        decision = gate.decide(inputs(processor, score=90))

        assert decision.verdict == Verdict.SUPERVISOR_REVIEW
        assert decision.cooldown_seconds == 900

    def test_extreme_stress_escalates(self, gate, processor):
        decision = gate.decide(inputs(processor, score=10, stress_level=9.5))
        assert decision.verdict == Verdict.SUPERVISOR_REVIEW

    def test_critical_stress_blocks(self, gate, processor):
        decision = gate.decide(inputs(processor, score=20, stress_level=8.2))

        assert decision.verdict == Verdict.BLOCK
        assert decision.cooldown_seconds == 360
        assert decision.reasons[0].startswith("Critical stress level")

    def test_low_confidence_blocks(self, gate, processor):
        decision = gate.decide(inputs(processor, score=10, confidence=0.3))

        assert decision.verdict == Verdict.BLOCK
        assert any("confidence too low" in r for r in decision.reasons)

    @pytest.mark.parametrize("context", [
        ActionContext(leverage=20.0),
        ActionContext(recent_losses=5),
        ActionContext(current_pnl=-6000.0),
    ])
    def test_context_limits_block(self, gate, processor, context):
        decision = gate.decide(inputs(processor, context=context))
        assert decision.verdict == Verdict.BLOCK

    def test_three_red_flags_block(self, gate, processor):
        decision = gate.decide(inputs(
            processor,
            reaction_time_elevated=True,
            accuracy_low=True,
            behavioral_anomalies=True,
        ))

        assert decision.verdict == Verdict.BLOCK
        assert any(r.startswith("Multiple red flags (3)") for r in decision.reasons)

    def test_high_stress_facial_scan_blocks(self, gate, processor):
        facial = EnhancedFacialMetrics(
            is_present=True,
            blink_rate=15.0,
            eye_aspect_ratio=0.3,
            jaw_openness=0.1,
            brow_furrow=0.1,
            gaze_stability=0.9,
            stress_score=85.0,
            is_high_stress=True,
        )
        signals = AssessmentSignals(cognitive_trials=trials(), facial=facial)

        decision = gate.decide(inputs(processor, signals=signals))

        assert decision.verdict == Verdict.BLOCK
        assert "Facial scan flagged high stress" in decision.reasons

    def test_primary_concerns_bounded(self, gate, processor):
        decision = gate.decide(inputs(
            processor,
            score=80,
            confidence=0.3,
            stress_level=8.5,
            context=ActionContext(leverage=20.0, recent_losses=6, current_pnl=-6000.0),
            reaction_time_elevated=True,
            accuracy_low=True,
            behavioral_anomalies=True,
            facial_stress_detected=True,
        ))

        assert len(decision.reasons) > MAX_PRIMARY_CONCERNS
        assert decision.primary_concerns == decision.reasons[:MAX_PRIMARY_CONCERNS]


# =============================================================================
# Rule 3: Warning Conditions
# =============================================================================

class TestWarningConditions:
    """Warning band or two concerns enforce a graded cooldown."""

    def test_warning_band(self, gate, processor):
        """Score 62 with warning 60 / block 75: round(1 + 4 * 2/15) = 2 minutes."""
        decision = gate.decide(inputs(processor, score=62))

        assert decision.verdict == Verdict.COOLDOWN
        assert decision.rule == "warning_conditions"
        assert decision.cooldown_seconds == 120
        assert decision.reasons[0].startswith("Risk score 62 elevated")

    def test_two_concerns(self, gate, processor):
        decision = gate.decide(inputs(
            processor,
            reaction_time_elevated=True,
            accuracy_low=True,
        ))

        assert decision.verdict == Verdict.COOLDOWN
        assert decision.cooldown_seconds == 60
        assert decision.reasons == ["Reaction time elevated", "Accuracy below baseline"]

    def test_policy_cooldown_floor(self, gate, processor):
        policy = Policy(cooldown_duration_seconds=600)
        decision = gate.decide(inputs(processor, score=62, policy=policy))
        assert decision.cooldown_seconds == 600

    def test_degenerate_thresholds_use_full_duration(self, gate, processor):
        """block 50 gives warning max(50, 35) = 50, so the ratio is 1."""
        policy = Policy(block_threshold=50)
        decision = gate.decide(inputs(
            processor,
            score=40,
            policy=policy,
            reaction_time_elevated=True,
            accuracy_low=True,
        ))

        assert decision.verdict == Verdict.COOLDOWN
        assert decision.cooldown_seconds == 300


# =============================================================================
# Rule 4: Allow
# =============================================================================

class TestAllow:

    def test_clean_assessment_allows(self, gate, processor):
        decision = gate.decide(inputs(processor))

        assert decision.verdict == Verdict.ALLOW
        assert decision.cooldown_seconds == 0
        assert decision.reasons == []
        assert decision.signal_availability["cognitive"]
        assert decision.signal_availability["self_report"]
        assert not decision.signal_availability["voice"]

    def test_single_concern_still_allows(self, gate, processor):
        decision = gate.decide(inputs(processor, behavioral_anomalies=True))

        assert decision.verdict == Verdict.ALLOW
        assert decision.reasons == ["Behavioral anomalies detected"]


class TestGateProperties:

    def test_deterministic(self, gate, processor):
        gate_inputs = inputs(
            processor,
            score=70,
            context=ActionContext(time_of_day=datetime(2026, 1, 5, 23, 0)),
        )
        assert gate.decide(gate_inputs) == gate.decide(gate_inputs)

    def test_empty_cascade_raises(self, processor):
        with pytest.raises(RuntimeError):
            DecisionGate(rules=[]).decide(inputs(processor))
