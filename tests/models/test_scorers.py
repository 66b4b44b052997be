"""
Modality Scorer Unit Tests

Tiered points, caps, confidences and flags for each of the five scorers
(deterministic, no I/O).
"""

import pytest

from riskgate.models.scorers import (
    BehavioralScorer,
    CognitiveScorer,
    FacialScorer,
    ModalityScorer,
    SelfReportScorer,
    VoiceScorer,
    default_scorers,
)
from riskgate.schemas.inputs import (
    AssessmentSignals,
    CognitiveTrial,
    EnhancedFacialMetrics,
    LegacyFacialMetrics,
    UserBaseline,
    VoiceFeatures,
)


# =============================================================================
# Signal Generators (Inline)
# =============================================================================

def trials(reaction_times, correct_count=None):
    correct_count = len(reaction_times) if correct_count is None else correct_count
    return [
        CognitiveTrial(correct=i < correct_count, reaction_time_ms=rt)
        for i, rt in enumerate(reaction_times)
    ]


def baseline() -> UserBaseline:
    return UserBaseline(
        actor_id="trader-1",
        reaction_time_ms=600.0,
        reaction_time_std_dev=50.0,
        accuracy=0.85,
        mouse_stability=0.7,
        keystroke_rhythm=0.6,
    )


# =============================================================================
# Cognitive
# =============================================================================

class TestCognitiveScorer:
    """Z-score against a baseline, absolute thresholds without one."""

    def test_no_trials_scores_zero_with_zero_confidence(self, processor):
        component = CognitiveScorer().score(processor.summarize(AssessmentSignals()), None)
        assert component.score == 0.0
        assert component.confidence == 0.0

    def test_absolute_slow_reactions(self, processor):
        summary = processor.summarize(AssessmentSignals(cognitive_trials=trials([900.0] * 10)))

        component = CognitiveScorer().score(summary, None)

        assert component.score == 25
        assert component.confidence == 0.9
        assert component.flags == {"reaction_time_elevated": True, "accuracy_low": False}

    def test_absolute_moderate_tiers(self, processor):
        """700 ms (+10) with 80% accuracy (+8)."""
        summary = processor.summarize(
            AssessmentSignals(cognitive_trials=trials([700.0] * 10, correct_count=8))
        )
        assert CognitiveScorer().score(summary, None).score == 18

    def test_baseline_z_score_and_accuracy_drop(self, processor):
        """z = 3 (+30) and accuracy drop 0.25 (+25)."""
        summary = processor.summarize(
            AssessmentSignals(cognitive_trials=trials([750.0] * 10, correct_count=6))
        )

        component = CognitiveScorer().score(summary, baseline())

        assert component.score == 55
        assert component.flags["reaction_time_elevated"]
        assert component.flags["accuracy_low"]

    def test_high_variance_penalty_and_cap(self, processor):
        """Variance 40000 ms^2 adds 10, and the total is capped at 60."""
        summary = processor.summarize(
            AssessmentSignals(cognitive_trials=trials([550.0, 950.0] * 5, correct_count=6))
        )
        assert CognitiveScorer().score(summary, baseline()).score == 60

    def test_within_baseline_scores_zero(self, processor):
        summary = processor.summarize(AssessmentSignals(cognitive_trials=trials([610.0] * 10)))

        component = CognitiveScorer().score(summary, baseline())

        assert component.score == 0
        assert component.confidence == 0.9


# =============================================================================
# Behavioral
# =============================================================================

class TestBehavioralScorer:
    """Pointer, keystroke and click-latency points."""

    def test_absent_modality(self, processor):
        component = BehavioralScorer().score(processor.summarize(AssessmentSignals()), None)
        assert component.confidence == 0.0

    def test_absolute_floors_and_impulsive_click(self, processor):
        """Stability 0.2 (+12), rhythm 0.5 (no points), click 30 ms (+12)."""
        summary = processor.summarize(AssessmentSignals(
            mouse_movements=[0.0, 80.0, 0.0, 80.0],
            keystroke_timings=[100.0, 300.0],
            click_latency_ms=30.0,
        ))

        component = BehavioralScorer().score(summary, None)

        assert component.score == 24
        assert component.confidence == 0.7
        assert component.flags["behavioral_anomalies"]

    def test_baseline_deviation_capped(self, processor):
        """Pointer decline 0.5 (+15), rhythm drift 0.4 (+15), slow click (+8) -> cap 35."""
        summary = processor.summarize(AssessmentSignals(
            mouse_movements=[0.0, 80.0, 0.0, 80.0],
            keystroke_timings=[200.0, 200.0],
            click_latency_ms=400.0,
        ))
        assert BehavioralScorer().score(summary, baseline()).score == 35

    def test_improvement_over_baseline_not_penalized(self, processor):
        summary = processor.summarize(AssessmentSignals(
            mouse_movements=[10.0, 10.0, 10.0],
            keystroke_timings=[100.0, 300.0],
        ))

        component = BehavioralScorer().score(summary, baseline())

        assert component.score == 0
        assert component.confidence == 0.7
        assert not component.flags["behavioral_anomalies"]

    def test_click_latency_alone_is_scored(self, processor):
        summary = processor.summarize(AssessmentSignals(click_latency_ms=350.0))
        assert BehavioralScorer().score(summary, None).score == 8


# =============================================================================
# Self-Report & Voice
# =============================================================================

class TestSelfReportScorer:

    @pytest.mark.parametrize("stress,expected", [
        (10.0, 40), (8.0, 40), (7.9, 25), (6.0, 25), (4.0, 10), (3.9, 0), (0.0, 0),
    ])
    def test_tiers(self, processor, stress, expected):
        summary = processor.summarize(AssessmentSignals(stress_level=stress))

        component = SelfReportScorer().score(summary, None)

        assert component.score == expected
        assert component.confidence == 0.8


class TestVoiceScorer:

    def test_all_indicators_capped(self, processor):
        voice = VoiceFeatures(pitch=260.0, jitter=0.03, shimmer=0.1, energy=0.2)

        component = VoiceScorer().score(processor.summarize(AssessmentSignals(voice=voice)), None)

        assert component.score == 25
        assert component.confidence == 0.6
        assert component.flags["voice_stress_detected"]

    def test_calm_voice(self, processor):
        voice = VoiceFeatures(pitch=150.0, jitter=0.01, shimmer=0.03, energy=0.6)

        component = VoiceScorer().score(processor.summarize(AssessmentSignals(voice=voice)), None)

        assert component.score == 0
        assert not component.flags["voice_stress_detected"]


# =============================================================================
# Facial
# =============================================================================

class TestFacialScorer:
    """Legacy cap 25 / confidence 0.6, enhanced cap 30 / confidence 0.8."""

    def test_legacy_capped(self, processor):
        facial = LegacyFacialMetrics(brow_furrow=0.8, blink_rate=30.0, gaze_fixation=0.1)

        component = FacialScorer().score(processor.summarize(AssessmentSignals(facial=facial)), None)

        assert component.score == 25
        assert component.confidence == 0.6

    def test_enhanced_capped(self, processor):
        facial = EnhancedFacialMetrics(
            is_present=True,
            blink_rate=35.0,
            eye_aspect_ratio=0.1,
            jaw_openness=0.5,
            brow_furrow=0.8,
            gaze_stability=0.2,
        )

        component = FacialScorer().score(processor.summarize(AssessmentSignals(facial=facial)), None)

        assert component.score == 30
        assert component.confidence == 0.8
        assert component.flags["facial_stress_detected"]

    def test_enhanced_fixed_stare(self, processor):
        facial = EnhancedFacialMetrics(
            is_present=True,
            blink_rate=5.0,
            eye_aspect_ratio=0.3,
            jaw_openness=0.1,
            brow_furrow=0.1,
            gaze_stability=0.9,
        )
        component = FacialScorer().score(processor.summarize(AssessmentSignals(facial=facial)), None)
        assert component.score == 8

    def test_face_not_present_scores_zero(self, processor):
        facial = EnhancedFacialMetrics(
            is_present=False,
            blink_rate=40.0,
            eye_aspect_ratio=0.1,
            jaw_openness=0.9,
            brow_furrow=0.9,
            gaze_stability=0.1,
        )

        component = FacialScorer().score(processor.summarize(AssessmentSignals(facial=facial)), None)

        assert component.score == 0.0
        assert component.confidence == 0.0


class TestScorerProtocol:

    def test_default_scorers_satisfy_protocol(self):
        scorers = default_scorers()
        assert [s.name for s in scorers] == ["cognitive", "behavioral", "self_report", "voice", "facial"]
        for scorer in scorers:
            assert isinstance(scorer, ModalityScorer)
