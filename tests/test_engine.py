"""
Risk Engine Tests

Full pipeline runs with in-process collaborators: pending withholding,
reason tags, policy modality filtering and collaborator fallbacks.
"""

from unittest.mock import MagicMock

import pytest

from riskgate.engine import RiskEngine
from riskgate.schemas.inputs import (
    ActionContext,
    AssessmentSignals,
    CognitiveTrial,
    EnabledModalities,
    Policy,
)
from riskgate.schemas.outputs import (
    AssessmentStatus,
    PatternPrediction,
    StressAnalysis,
    StressVerdict,
    Verdict,
)


# =============================================================================
# Signal Generators (Inline)
# =============================================================================

def trials(reaction_time_ms: float, correct: int, count: int = 10):
    return [
        CognitiveTrial(correct=i < correct, reaction_time_ms=reaction_time_ms)
        for i in range(count)
    ]


def calm_signals() -> AssessmentSignals:
    return AssessmentSignals(cognitive_trials=trials(450.0, correct=10), stress_level=2.0)


def impaired_signals() -> AssessmentSignals:
    return AssessmentSignals(cognitive_trials=trials(800.0, correct=0), stress_level=9.0)


# =============================================================================
# Pipeline
# =============================================================================

class TestEvaluate:

    def test_no_signals_blocks_as_insufficient(self, engine):
        evaluation = engine.evaluate(AssessmentSignals())

        assert evaluation.status == AssessmentStatus.SCORED
        assert evaluation.decision.verdict == Verdict.BLOCK
        assert evaluation.decision.rule == "insufficient_signals"
        assert evaluation.decision.cooldown_seconds == 600
        assert evaluation.risk.risk_score == 0

    def test_low_confidence_is_pending(self, engine):
        """Every modality scores zero, so no modality contributes confidence."""
        evaluation = engine.evaluate(calm_signals())

        assert evaluation.is_pending
        assert evaluation.risk.confidence == 0.0

    def test_impaired_trader_scored_and_blocked(self, engine):
        evaluation = engine.evaluate(impaired_signals())

        assert evaluation.status == AssessmentStatus.SCORED
        assert evaluation.risk.risk_score == 39
        assert evaluation.decision.verdict == Verdict.BLOCK
        assert evaluation.reason_tags == [
            "Reaction time elevated",
            "Accuracy below baseline",
            "Self-report high stress",
        ]

    def test_risky_context_tagged(self, engine):
        evaluation = engine.evaluate(
            impaired_signals(),
            ActionContext(leverage=12.0, recent_losses=3),
        )

        assert evaluation.risk.contextual_risk == 35.0
        assert "High-risk trading context" in evaluation.reason_tags

    def test_policy_disables_modality(self, engine):
        policy = Policy(enabled_modalities=EnabledModalities(self_report=False))

        evaluation = engine.evaluate(impaired_signals(), policy=policy)

        assert evaluation.summary.stress_level is None
        assert evaluation.risk.components["self_report"].score == 0.0
        assert evaluation.risk.risk_score == 15

    def test_deterministic(self, engine):
        first = engine.evaluate(impaired_signals(), ActionContext(leverage=6.0))
        second = engine.evaluate(impaired_signals(), ActionContext(leverage=6.0))

        assert first.risk == second.risk
        assert first.decision == second.decision


# =============================================================================
# Collaborator Fallbacks
# =============================================================================

class TestStressCollaborator:

    def test_language_model_result_used(self):
        llm = MagicMock()
        llm.analyze.return_value = StressAnalysis(
            stress_level=9.5,
            confidence=0.9,
            verdict=StressVerdict.BLOCK,
            source="language_model",
        )
        engine = RiskEngine(llm=llm)

        evaluation = engine.evaluate(impaired_signals())

        assert evaluation.stress.source == "language_model"
        assert evaluation.decision.verdict == Verdict.SUPERVISOR_REVIEW

    def test_language_model_failure_falls_back(self):
        llm = MagicMock()
        llm.analyze.side_effect = RuntimeError("model unavailable")
        engine = RiskEngine(llm=llm)

        evaluation = engine.evaluate(impaired_signals())

        assert evaluation.stress.source == "heuristic"
        assert evaluation.decision.verdict == Verdict.BLOCK


class TestPatternCollaborator:

    def test_prediction_applied(self):
        matcher = MagicMock()
        matcher.predict.return_value = PatternPrediction(
            adjustment=10.0,
            confidence=0.6,
            novelty_score=0.1,
            matching_pattern_ids=["p1"],
        )
        engine = RiskEngine(pattern_matcher=matcher)

        evaluation = engine.evaluate(impaired_signals(), actor_id="trader-1")

        assert evaluation.risk.base_risk_score == 39
        assert evaluation.risk.risk_score == 49
        assert evaluation.risk.matching_pattern_count == 1
        assert "Matches historical high-risk pattern" in evaluation.reason_tags

    def test_failure_keeps_base_score(self):
        matcher = MagicMock()
        matcher.predict.side_effect = ConnectionError("history unavailable")
        engine = RiskEngine(pattern_matcher=matcher)

        evaluation = engine.evaluate(impaired_signals(), actor_id="trader-1")

        assert evaluation.risk.risk_score == 39
        assert evaluation.risk.pattern_adjustment is None

    def test_skipped_without_actor(self):
        matcher = MagicMock()
        engine = RiskEngine(pattern_matcher=matcher)

        engine.evaluate(impaired_signals())

        matcher.predict.assert_not_called()


@pytest.mark.parametrize("stress", [0.0, 3.0, 6.0, 9.0])
def test_score_always_bounded(engine, stress):
    signals = impaired_signals().model_copy(update={"stress_level": stress})
    evaluation = engine.evaluate(signals, ActionContext(leverage=20.0, recent_losses=9))
    assert 0 <= evaluation.risk.risk_score <= 100
