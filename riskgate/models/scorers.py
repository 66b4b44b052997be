"""
RiskGate Modality Scorers

One scorer per signal modality. Each turns the sanitized SignalSummary
(plus the optional UserBaseline) into a bounded ModalityScore: a capped
subscore, a confidence and boolean anomaly flags.

All scorers are STATELESS and DETERMINISTIC. A modality with no usable
data always scores zero with zero confidence.
"""

from typing import Dict, List, Optional, Protocol, runtime_checkable

from riskgate.processors.signals import SignalSummary
from riskgate.schemas.inputs import UserBaseline
from riskgate.schemas.outputs import ModalityScore


# =============================================================================
# Weights
# =============================================================================

DEFAULT_WEIGHTS: Dict[str, float] = {
    "cognitive": 0.5,
    "behavioral": 0.4,
    "self_report": 0.6,
    "voice": 0.3,
    "facial": 0.3,
}

EMPTY = ModalityScore(score=0.0, confidence=0.0)


@runtime_checkable
class ModalityScorer(Protocol):
    """Interface every registered scorer satisfies."""

    name: str
    weight: float

    def score(self, summary: SignalSummary, baseline: Optional[UserBaseline]) -> ModalityScore:
        ...


# =============================================================================
# Cognitive
# =============================================================================

class CognitiveScorer:
    """
    Interference-test scorer.

    With a baseline, reaction time is compared by z-score and accuracy by
    its drop below the personal mean. Without one, absolute thresholds
    apply. Highly variable reaction times add a flat penalty.
    """

    name = "cognitive"
    weight = DEFAULT_WEIGHTS["cognitive"]

    CAP: float = 60.0
    CONFIDENCE: float = 0.9
    FALLBACK_STD_DEV_MS: float = 50.0
    HIGH_VARIANCE_MS2: float = 10000.0

    def score(self, summary: SignalSummary, baseline: Optional[UserBaseline]) -> ModalityScore:
        if not summary.has_cognitive:
            return EMPTY

        mean_rt = summary.mean_reaction_time
        accuracy = summary.accuracy
        points = 0.0
        rt_elevated = False
        accuracy_low = False

        if baseline is not None:
            std_dev = baseline.reaction_time_std_dev or self.FALLBACK_STD_DEV_MS
            z_score = (mean_rt - baseline.reaction_time_ms) / std_dev
            if z_score > 2:
                points += 30
                rt_elevated = True
            elif z_score > 1:
                points += 15
                rt_elevated = True

            accuracy_drop = baseline.accuracy - accuracy
            if accuracy_drop > 0.15:
                points += 25
                accuracy_low = True
            elif accuracy_drop > 0.08:
                points += 12
                accuracy_low = True
        else:
            if mean_rt > 800:
                points += 25
                rt_elevated = True
            elif mean_rt > 600:
                points += 10
                rt_elevated = True

            if accuracy < 0.7:
                points += 20
                accuracy_low = True
            elif accuracy < 0.85:
                points += 8
                accuracy_low = True

        if summary.reaction_time_variance > self.HIGH_VARIANCE_MS2:
            points += 10

        return ModalityScore(
            score=min(self.CAP, points),
            confidence=self.CONFIDENCE,
            flags={
                "reaction_time_elevated": rt_elevated,
                "accuracy_low": accuracy_low,
            },
        )


# =============================================================================
# Behavioral
# =============================================================================

class BehavioralScorer:
    """Pointer stability, keystroke rhythm and click latency."""

    name = "behavioral"
    weight = DEFAULT_WEIGHTS["behavioral"]

    CAP: float = 35.0
    CONFIDENCE: float = 0.7

    def score(self, summary: SignalSummary, baseline: Optional[UserBaseline]) -> ModalityScore:
        if not summary.has_behavioral and summary.click_latency_ms is None:
            return EMPTY

        points = 0.0

        if summary.mouse_stability is not None:
            if baseline is not None:
                # Only a decline from the personal norm counts
                decline = baseline.mouse_stability - summary.mouse_stability
                points += self._deviation_points(decline)
            elif summary.mouse_stability < 0.5:
                points += 12

        if summary.keystroke_rhythm is not None:
            if baseline is not None:
                drift = abs(baseline.keystroke_rhythm - summary.keystroke_rhythm)
                points += self._deviation_points(drift)
            elif summary.keystroke_rhythm < 0.3:
                points += 10

        latency = summary.click_latency_ms
        if latency is not None:
            if latency > 300:
                points += 8
            elif latency < 50:
                # Impulsive confirmation
                points += 12

        return ModalityScore(
            score=min(self.CAP, points),
            confidence=self.CONFIDENCE,
            flags={"behavioral_anomalies": points > 0},
        )

    @staticmethod
    def _deviation_points(diff: float) -> float:
        if diff > 0.3:
            return 15
        if diff > 0.15:
            return 8
        return 0


# =============================================================================
# Self-Report
# =============================================================================

class SelfReportScorer:
    name = "self_report"
    weight = DEFAULT_WEIGHTS["self_report"]

    CONFIDENCE: float = 0.8

    def score(self, summary: SignalSummary, baseline: Optional[UserBaseline]) -> ModalityScore:
        stress = summary.stress_level
        if stress is None:
            return EMPTY

        if stress >= 8:
            points = 40.0
        elif stress >= 6:
            points = 25.0
        elif stress >= 4:
            points = 10.0
        else:
            points = 0.0

        return ModalityScore(score=points, confidence=self.CONFIDENCE)


# =============================================================================
# Voice
# =============================================================================

class VoiceScorer:
    """Voice prosody: raised pitch, unstable voice, or low energy."""

    name = "voice"
    weight = DEFAULT_WEIGHTS["voice"]

    CAP: float = 25.0
    CONFIDENCE: float = 0.6

    def score(self, summary: SignalSummary, baseline: Optional[UserBaseline]) -> ModalityScore:
        voice = summary.voice
        if voice is None:
            return EMPTY

        points = 0.0
        if voice.pitch > 250:
            points += 15
        elif voice.pitch > 200:
            points += 8
        if voice.jitter > 0.02:
            points += 10
        if voice.shimmer > 0.08:
            points += 10
        if voice.energy < 0.3:
            points += 8

        return ModalityScore(
            score=min(self.CAP, points),
            confidence=self.CONFIDENCE,
            flags={"voice_stress_detected": points > 0},
        )


# =============================================================================
# Facial
# =============================================================================

class FacialScorer:
    """
    Facial-expression scorer over the canonical FacialFeatures record.

    Legacy records score blink rate, brow furrow and gaze fixation (cap 25).
    Enhanced records additionally penalize a low eye aspect ratio and an
    open jaw, and read blink rate in both directions (cap 30).
    """

    name = "facial"
    weight = DEFAULT_WEIGHTS["facial"]

    LEGACY_CAP: float = 25.0
    LEGACY_CONFIDENCE: float = 0.6
    ENHANCED_CAP: float = 30.0
    ENHANCED_CONFIDENCE: float = 0.8

    def score(self, summary: SignalSummary, baseline: Optional[UserBaseline]) -> ModalityScore:
        facial = summary.facial
        if facial is None or not facial.present:
            return EMPTY

        if facial.is_enhanced:
            points = self._enhanced_points(facial)
            cap, confidence = self.ENHANCED_CAP, self.ENHANCED_CONFIDENCE
        else:
            points = self._legacy_points(facial)
            cap, confidence = self.LEGACY_CAP, self.LEGACY_CONFIDENCE

        return ModalityScore(
            score=min(cap, points),
            confidence=confidence,
            flags={"facial_stress_detected": points > 0},
        )

    @staticmethod
    def _legacy_points(facial) -> float:
        points = 0.0
        if facial.brow_furrow > 0.7:
            points += 12
        elif facial.brow_furrow > 0.4:
            points += 6
        if facial.blink_rate > 25:
            points += 10
        elif facial.blink_rate > 18:
            points += 5
        if facial.gaze < 0.2:
            points += 8
        return points

    @staticmethod
    def _enhanced_points(facial) -> float:
        points = 0.0
        if facial.blink_rate > 30:
            points += 15
        elif facial.blink_rate > 22:
            points += 10
        elif facial.blink_rate < 8:
            # Fixed stare
            points += 8

        if facial.brow_furrow > 0.7:
            points += 12
        elif facial.brow_furrow > 0.4:
            points += 6

        if facial.gaze < 0.3:
            points += 10
        elif facial.gaze < 0.6:
            points += 5

        if facial.eye_aspect_ratio is not None and facial.eye_aspect_ratio < 0.15:
            points += 8
        if facial.jaw_openness is not None and facial.jaw_openness > 0.3:
            points += 6
        return points


def default_scorers() -> List[ModalityScorer]:
    """The five built-in scorers in composition order."""
    return [
        CognitiveScorer(),
        BehavioralScorer(),
        SelfReportScorer(),
        VoiceScorer(),
        FacialScorer(),
    ]
