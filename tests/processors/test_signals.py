"""
Signal Processor Unit Tests

Tests for SignalProcessor sanitation and feature extraction: invalid
trials are filtered, malformed numbers never raise, and disabled
modalities disappear before scoring.
"""

import math

import pytest

from riskgate.processors.signals import SignalProcessor
from riskgate.schemas.inputs import (
    AssessmentSignals,
    CognitiveTrial,
    EnabledModalities,
    LegacyFacialMetrics,
    VoiceFeatures,
)


# =============================================================================
# Signal Generators (Inline)
# =============================================================================

def trial(reaction_time_ms: float, correct: bool = True) -> CognitiveTrial:
    return CognitiveTrial(
        stimulus="RED",
        response="red" if correct else "blue",
        correct=correct,
        reaction_time_ms=reaction_time_ms,
    )


def full_signals() -> AssessmentSignals:
    return AssessmentSignals(
        cognitive_trials=[trial(500.0) for _ in range(10)],
        mouse_movements=[10.0, 20.0, 10.0, 20.0],
        keystroke_timings=[200.0, 200.0, 200.0],
        click_latency_ms=150.0,
        stress_level=3.0,
        voice=VoiceFeatures(pitch=150.0, jitter=0.01, shimmer=0.03, energy=0.6),
        facial=LegacyFacialMetrics(brow_furrow=0.1, blink_rate=15.0, gaze_fixation=0.9),
    )


# =============================================================================
# Cognitive Trials
# =============================================================================

class TestCognitiveSanitation:
    """Trials outside (0, 10000) ms or non-finite are dropped."""

    def test_out_of_range_and_non_finite_trials_dropped(self, processor):
        """Only strictly in-range finite reaction times survive."""
        signals = AssessmentSignals(cognitive_trials=[
            trial(500.0),
            trial(float("nan")),
            trial(0.0),
            trial(-5.0),
            trial(10000.0),
            trial(12000.0),
            trial(float("inf")),
            trial(700.0, correct=False),
        ])

        summary = processor.summarize(signals)

        assert len(summary.valid_trials) == 2
        assert summary.mean_reaction_time == pytest.approx(600.0)
        assert summary.accuracy == pytest.approx(0.5)
        assert summary.reaction_time_variance == pytest.approx(10000.0)

    def test_all_invalid_trials_leave_cognitive_absent(self, processor):
        """An all-invalid modality degrades to absent instead of failing."""
        signals = AssessmentSignals(cognitive_trials=[trial(-1.0), trial(float("nan"))])

        summary = processor.summarize(signals)

        assert not summary.has_cognitive
        assert summary.mean_reaction_time is None
        assert summary.accuracy is None


# =============================================================================
# Behavioral Features
# =============================================================================

class TestBehavioralFeatures:
    """Pointer stability and keystroke rhythm derivation."""

    def test_mouse_stability_from_successive_deltas(self, processor):
        """Mean delta of 10 maps to stability 0.9."""
        assert processor.mouse_stability([10.0, 20.0, 10.0, 20.0]) == pytest.approx(0.9)

    def test_mouse_stability_floors_at_zero(self, processor):
        assert processor.mouse_stability([0.0, 200.0, 0.0]) == 0.0

    def test_single_movement_is_stable(self, processor):
        assert processor.mouse_stability([42.0]) == 1.0

    def test_keystroke_rhythm_is_one_minus_cv(self, processor):
        """Intervals 100/300 have mean 200, std 100, so rhythm 0.5."""
        assert processor.keystroke_rhythm([100.0, 300.0]) == pytest.approx(0.5)
        assert processor.keystroke_rhythm([200.0, 200.0, 200.0]) == pytest.approx(1.0)

    def test_non_positive_key_intervals_dropped(self, processor):
        signals = AssessmentSignals(keystroke_timings=[-5.0, 0.0, 200.0, 200.0])

        summary = processor.summarize(signals)

        assert summary.keystroke_rhythm == pytest.approx(1.0)
        assert summary.typing_speed == pytest.approx(1.0)

    def test_non_finite_pointer_values_leave_behavioral_absent(self, processor):
        signals = AssessmentSignals(mouse_movements=[float("nan"), float("inf")])

        summary = processor.summarize(signals)

        assert summary.mouse_stability is None
        assert summary.movement_count == 0
        assert not summary.has_behavioral

    def test_typing_speed_relative_to_reference_interval(self, processor):
        assert processor.typing_speed([400.0, 400.0]) == pytest.approx(0.5)
        assert processor.typing_speed([100.0, 100.0]) == 1.0


# =============================================================================
# Scalars
# =============================================================================

class TestScalarSanitation:
    """Self-report, click latency and voice sanitation."""

    @pytest.mark.parametrize("raw,expected", [
        (15.0, 10.0),
        (-3.0, 0.0),
        (6.5, 6.5),
    ])
    def test_stress_clamped(self, raw, expected):
        assert SignalProcessor.clamp_stress(raw) == expected

    def test_non_finite_stress_dropped(self):
        assert SignalProcessor.clamp_stress(float("nan")) is None
        assert SignalProcessor.clamp_stress(None) is None

    @pytest.mark.parametrize("latency", [0.0, -1.0, float("inf"), float("nan")])
    def test_invalid_click_latency_dropped(self, processor, latency):
        summary = processor.summarize(AssessmentSignals(click_latency_ms=latency))
        assert summary.click_latency_ms is None

    def test_non_finite_voice_dropped(self, processor):
        voice = VoiceFeatures(pitch=float("nan"), jitter=0.01, shimmer=0.02, energy=0.5)
        summary = processor.summarize(AssessmentSignals(voice=voice))
        assert summary.voice is None


# =============================================================================
# Summary & Policy
# =============================================================================

class TestSummaryAndPolicy:
    """Source counting and policy-disabled modalities."""

    def test_empty_signals(self, processor):
        summary = processor.summarize(AssessmentSignals())

        assert summary.is_empty
        assert summary.source_count == 0
        assert summary.valid_trials == []

    def test_full_signals_count_four_sources(self, processor):
        """Voice is scored but not counted toward evidence sufficiency."""
        summary = processor.summarize(full_signals())

        assert summary.has_cognitive
        assert summary.has_behavioral
        assert summary.has_self_report
        assert summary.has_facial
        assert summary.source_count == 4
        assert not summary.is_empty

    def test_disabled_modalities_are_absent(self, processor):
        enabled = EnabledModalities(
            cognitive_test=False,
            behavioral_biometrics=False,
            voice_prosody=False,
        )

        filtered = processor.apply_policy(full_signals(), enabled)
        summary = processor.summarize(filtered)

        assert not summary.has_cognitive
        assert not summary.has_behavioral
        assert summary.click_latency_ms is None
        assert summary.voice is None
        assert summary.has_self_report
        assert summary.has_facial
        assert summary.source_count == 2

    def test_all_enabled_returns_signals_unchanged(self, processor):
        signals = full_signals()
        assert processor.apply_policy(signals, EnabledModalities()) is signals

    def test_summary_values_are_finite(self, processor):
        summary = processor.summarize(full_signals())
        for value in (
            summary.mean_reaction_time,
            summary.accuracy,
            summary.reaction_time_variance,
            summary.mouse_stability,
            summary.keystroke_rhythm,
        ):
            assert math.isfinite(value)
