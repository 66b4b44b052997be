"""
RiskGate Signal Processor

Stateless sanitation and feature extraction for raw assessment signals.
Filters malformed values, derives pointer stability and keystroke rhythm,
and summarizes the cognitive test. Never raises on bad input: a modality
whose values are all invalid simply comes out empty.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from riskgate.processors.facial import FacialAdapter, FacialFeatures
from riskgate.schemas.inputs import (
    AssessmentSignals,
    CognitiveTrial,
    EnabledModalities,
    VoiceFeatures,
)


# =============================================================================
# Constants
# =============================================================================

# Valid reaction-time window (exclusive bounds, ms)
MIN_REACTION_TIME_MS = 0.0
MAX_REACTION_TIME_MS = 10000.0

# Mean successive pointer delta that maps to zero stability
POINTER_DELTA_SCALE = 100.0

# Inter-key interval that maps to a typing speed of 1.0
REFERENCE_KEY_INTERVAL_MS = 200.0

SELF_REPORT_MIN = 0.0
SELF_REPORT_MAX = 10.0


# =============================================================================
# Signal Summary
# =============================================================================

@dataclass(frozen=True)
class SignalSummary:
    """Sanitized, derived view of one AssessmentSignals payload."""

    valid_trials: List[CognitiveTrial]
    """Cognitive trials with a finite reaction time inside (0, 10000) ms."""

    mean_reaction_time: Optional[float] = None
    accuracy: Optional[float] = None
    reaction_time_variance: Optional[float] = None
    """Population variance of valid reaction times (ms^2)."""

    mouse_stability: Optional[float] = None
    movement_count: int = 0
    keystroke_rhythm: Optional[float] = None
    typing_speed: Optional[float] = None
    click_latency_ms: Optional[float] = None
    stress_level: Optional[float] = None
    voice: Optional[VoiceFeatures] = None
    facial: Optional[FacialFeatures] = None

    @property
    def has_cognitive(self) -> bool:
        return len(self.valid_trials) > 0

    @property
    def has_behavioral(self) -> bool:
        return self.mouse_stability is not None or self.keystroke_rhythm is not None

    @property
    def has_self_report(self) -> bool:
        return self.stress_level is not None

    @property
    def has_facial(self) -> bool:
        return self.facial is not None and self.facial.present

    @property
    def source_count(self) -> int:
        """Sources counted toward evidence sufficiency."""
        return sum([
            self.has_cognitive,
            self.has_self_report,
            self.has_facial,
            self.has_behavioral,
        ])

    @property
    def is_empty(self) -> bool:
        return self.source_count == 0 and self.voice is None


# =============================================================================
# Signal Processor
# =============================================================================

class SignalProcessor:
    """
    Turns raw AssessmentSignals into a SignalSummary.

    Sanitation rules:
        - Reaction times must be finite and strictly inside (0, 10000) ms
        - Pointer magnitudes and key intervals must be finite
        - Key intervals must be positive
        - Self-report is clamped to [0, 10]; non-finite values are dropped
        - Click latency counts only when finite and positive
    """

    def __init__(self, facial_adapter: Optional[FacialAdapter] = None) -> None:
        self.facial_adapter = facial_adapter or FacialAdapter()

    def summarize(self, signals: AssessmentSignals) -> SignalSummary:
        trials = self.valid_trials(signals.cognitive_trials)
        reaction_times = [t.reaction_time_ms for t in trials]

        mean_rt = accuracy = rt_variance = None
        if trials:
            mean_rt = self._mean(reaction_times)
            accuracy = sum(1 for t in trials if t.correct) / len(trials)
            rt_variance = self._variance(reaction_times)

        movements = self._finite(signals.mouse_movements)
        timings = [t for t in self._finite(signals.keystroke_timings) if t > 0]

        return SignalSummary(
            valid_trials=trials,
            mean_reaction_time=mean_rt,
            accuracy=accuracy,
            reaction_time_variance=rt_variance,
            mouse_stability=self.mouse_stability(movements) if movements else None,
            movement_count=len(movements),
            keystroke_rhythm=self.keystroke_rhythm(timings) if timings else None,
            typing_speed=self.typing_speed(timings) if timings else None,
            click_latency_ms=self._positive(signals.click_latency_ms),
            stress_level=self.clamp_stress(signals.stress_level),
            voice=self._finite_voice(signals.voice),
            facial=self.facial_adapter.normalize(signals.facial),
        )

    def apply_policy(
        self,
        signals: AssessmentSignals,
        enabled: EnabledModalities
    ) -> AssessmentSignals:
        """Drop modalities the policy has disabled so they count as absent."""
        updates = {}
        if not enabled.cognitive_test:
            updates["cognitive_trials"] = None
        if not enabled.behavioral_biometrics:
            updates.update(mouse_movements=None, keystroke_timings=None, click_latency_ms=None)
        if not enabled.self_report:
            updates["stress_level"] = None
        if not enabled.voice_prosody:
            updates["voice"] = None
        if not enabled.facial_expression:
            updates["facial"] = None
        if not updates:
            return signals
        return signals.model_copy(update=updates)

    # -------------------------------------------------------------------------
    # Feature Extraction
    # -------------------------------------------------------------------------

    @staticmethod
    def valid_trials(trials: Optional[Iterable[CognitiveTrial]]) -> List[CognitiveTrial]:
        if not trials:
            return []
        return [
            t for t in trials
            if math.isfinite(t.reaction_time_ms)
            and MIN_REACTION_TIME_MS < t.reaction_time_ms < MAX_REACTION_TIME_MS
        ]

    def mouse_stability(self, movements: List[float]) -> float:
        """1 - normalized mean absolute successive difference."""
        if len(movements) < 2:
            return 1.0
        deltas = [abs(b - a) for a, b in zip(movements, movements[1:])]
        return max(0.0, 1.0 - self._mean(deltas) / POINTER_DELTA_SCALE)

    def keystroke_rhythm(self, timings: List[float]) -> float:
        """1 - coefficient of variation of inter-key intervals."""
        if len(timings) < 2:
            return 1.0
        mean = self._mean(timings)
        if mean <= 0:
            return 0.0
        return max(0.0, 1.0 - self._std(timings) / mean)

    def typing_speed(self, timings: List[float]) -> float:
        mean = self._mean(timings)
        if mean <= 0:
            return 0.0
        return min(1.0, REFERENCE_KEY_INTERVAL_MS / mean)

    @staticmethod
    def clamp_stress(value: Optional[float]) -> Optional[float]:
        if value is None or not math.isfinite(value):
            return None
        return min(max(value, SELF_REPORT_MIN), SELF_REPORT_MAX)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _finite(values: Optional[Iterable[float]]) -> List[float]:
        if not values:
            return []
        return [float(v) for v in values if math.isfinite(v)]

    @staticmethod
    def _positive(value: Optional[float]) -> Optional[float]:
        if value is None or not math.isfinite(value) or value <= 0:
            return None
        return value

    @staticmethod
    def _finite_voice(voice: Optional[VoiceFeatures]) -> Optional[VoiceFeatures]:
        if voice is None:
            return None
        values = (voice.pitch, voice.jitter, voice.shimmer, voice.energy)
        if not all(math.isfinite(v) for v in values):
            return None
        return voice

    @staticmethod
    def _mean(values: List[float]) -> float:
        if not values:
            return 0.0
        return sum(values) / len(values)

    def _variance(self, values: List[float]) -> float:
        if len(values) < 2:
            return 0.0
        mean = self._mean(values)
        return sum((x - mean) ** 2 for x in values) / len(values)

    def _std(self, values: List[float]) -> float:
        return math.sqrt(self._variance(values))
