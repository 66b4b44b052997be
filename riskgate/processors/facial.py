"""
RiskGate Facial Adapter

Normalizes the two accepted facial-metric shapes (legacy camera check and
enhanced webcam landmarks) into one canonical FacialFeatures record so the
facial scorer never has to inspect which client produced the data.
"""

import math
from dataclasses import dataclass
from typing import Optional, Union

from riskgate.schemas.inputs import EnhancedFacialMetrics, LegacyFacialMetrics


# =============================================================================
# Constants
# =============================================================================

BLINK_RATE_MAX = 60.0

# Neutral values substituted for non-finite readings
NEUTRAL_BLINK_RATE = 15.0
NEUTRAL_EYE_ASPECT_RATIO = 0.3


# =============================================================================
# Canonical Record
# =============================================================================

@dataclass(frozen=True)
class FacialFeatures:
    """Canonical facial feature record consumed by the facial scorer."""
    shape: str
    present: bool
    blink_rate: float
    brow_furrow: float
    gaze: float
    eye_aspect_ratio: Optional[float] = None
    jaw_openness: Optional[float] = None
    stress_score: Optional[float] = None
    is_high_stress: bool = False

    @property
    def is_enhanced(self) -> bool:
        return self.shape == "enhanced"


# =============================================================================
# Adapter
# =============================================================================

class FacialAdapter:
    """Maps legacy/enhanced facial metrics onto FacialFeatures."""

    def normalize(
        self,
        metrics: Optional[Union[LegacyFacialMetrics, EnhancedFacialMetrics]]
    ) -> Optional[FacialFeatures]:
        if metrics is None:
            return None

        if isinstance(metrics, LegacyFacialMetrics):
            return FacialFeatures(
                shape="legacy",
                present=True,
                blink_rate=self._finite(metrics.blink_rate, NEUTRAL_BLINK_RATE),
                brow_furrow=self._finite(metrics.brow_furrow, 0.0),
                # Fixation is scored low-is-bad, so the neutral reading is 1.0
                gaze=self._finite(metrics.gaze_fixation, 1.0),
            )

        return FacialFeatures(
            shape="enhanced",
            present=metrics.is_present,
            blink_rate=self._finite(metrics.blink_rate, NEUTRAL_BLINK_RATE),
            brow_furrow=self._finite(metrics.brow_furrow, 0.0),
            gaze=self._finite(metrics.gaze_stability, 1.0),
            eye_aspect_ratio=self._finite(metrics.eye_aspect_ratio, NEUTRAL_EYE_ASPECT_RATIO),
            jaw_openness=self._finite(metrics.jaw_openness, 0.0),
            stress_score=(
                metrics.stress_score
                if metrics.stress_score is not None and math.isfinite(metrics.stress_score)
                else None
            ),
            is_high_stress=metrics.is_high_stress,
        )

    def clamp(
        self,
        metrics: Union[LegacyFacialMetrics, EnhancedFacialMetrics]
    ) -> Union[LegacyFacialMetrics, EnhancedFacialMetrics]:
        """Clamp late-arriving metrics: blink rate to [0, 60], ratios to [0, 1]."""
        if isinstance(metrics, LegacyFacialMetrics):
            return metrics.model_copy(update={
                "blink_rate": self._clamp(metrics.blink_rate, BLINK_RATE_MAX, NEUTRAL_BLINK_RATE),
                "brow_furrow": self._clamp(metrics.brow_furrow, 1.0, 0.0),
                "gaze_fixation": self._clamp(metrics.gaze_fixation, 1.0, 1.0),
            })
        return metrics.model_copy(update={
            "blink_rate": self._clamp(metrics.blink_rate, BLINK_RATE_MAX, NEUTRAL_BLINK_RATE),
            "eye_aspect_ratio": self._clamp(metrics.eye_aspect_ratio, 1.0, NEUTRAL_EYE_ASPECT_RATIO),
            "jaw_openness": self._clamp(metrics.jaw_openness, 1.0, 0.0),
            "brow_furrow": self._clamp(metrics.brow_furrow, 1.0, 0.0),
            "gaze_stability": self._clamp(metrics.gaze_stability, 1.0, 1.0),
        })

    @staticmethod
    def _finite(value: float, default: float) -> float:
        return value if math.isfinite(value) else default

    def _clamp(self, value: float, upper: float, default: float) -> float:
        return min(max(self._finite(value, default), 0.0), upper)
