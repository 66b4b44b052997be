"""
RiskGate Signature Extractor

Builds the normalized named-feature vectors ("signatures") the behavioral
pattern matcher compares. Every feature lands in [0, 1] except the
sequential risk delta, which is signed in [-1, 1].
"""

from datetime import datetime
from typing import Dict, Optional

from riskgate.processors.signals import SignalProcessor, SignalSummary
from riskgate.schemas.inputs import ActionContext
from riskgate.schemas.records import AssessmentRecord, PatternType


Signature = Dict[str, float]


# =============================================================================
# Constants
# =============================================================================

REACTION_TIME_SCALE_MS = 1000.0
VARIANCE_SCALE = 50000.0
MOVEMENT_COUNT_SCALE = 100.0

SEQUENTIAL_MIN_DELTA = 10
SEQUENTIAL_WINDOW_HOURS = 24.0


class SignatureExtractor:
    """Extracts per-modality signatures from signals and stored assessments."""

    def __init__(self, processor: Optional[SignalProcessor] = None) -> None:
        self.processor = processor or SignalProcessor()

    def extract(
        self,
        summary: SignalSummary,
        context: Optional[ActionContext],
        observed_at: datetime
    ) -> Dict[PatternType, Signature]:
        """One signature per available modality."""
        signatures: Dict[PatternType, Signature] = {}
        risk_context = self.normalize_context_risk(context)

        if summary.mouse_stability is not None:
            signatures[PatternType.MOUSE_STABILITY] = {
                "stability": summary.mouse_stability,
                "movement_count": min(1.0, summary.movement_count / MOVEMENT_COUNT_SCALE),
                "risk_context": risk_context,
            }

        if summary.keystroke_rhythm is not None:
            signatures[PatternType.KEYSTROKE_RHYTHM] = {
                "rhythm": summary.keystroke_rhythm,
                "typing_speed": summary.typing_speed or 0.0,
                "risk_context": risk_context,
            }

        if summary.has_cognitive:
            signatures[PatternType.COGNITIVE_PERFORMANCE] = {
                "reaction_time": min(1.0, summary.mean_reaction_time / REACTION_TIME_SCALE_MS),
                "accuracy": summary.accuracy,
                "consistency": max(0.0, 1.0 - summary.reaction_time_variance / VARIANCE_SCALE),
            }

        if summary.stress_level is not None:
            hour = context.time_of_day.hour if context and context.time_of_day else observed_at.hour
            signatures[PatternType.STRESS_ESCALATION] = {
                "stress_level": summary.stress_level / 10.0,
                "risk_context": risk_context,
                "time_of_day": self.normalize_time_of_day(hour),
            }

        return signatures

    def extract_record(self, record: AssessmentRecord) -> Dict[PatternType, Signature]:
        summary = self.processor.summarize(record.signals)
        return self.extract(summary, record.context, record.created_at)

    def sequential(
        self,
        current: AssessmentRecord,
        previous: AssessmentRecord
    ) -> Optional[Signature]:
        """Risk-delta signature between consecutive assessments within 24 hours."""
        risk_delta = (current.risk_score or 0) - (previous.risk_score or 0)
        hours = (current.created_at - previous.created_at).total_seconds() / 3600.0

        if abs(risk_delta) <= SEQUENTIAL_MIN_DELTA or not 0 <= hours < SEQUENTIAL_WINDOW_HOURS:
            return None

        return {
            "risk_delta": risk_delta / 100.0,
            "time_delta": min(hours, SEQUENTIAL_WINDOW_HOURS) / SEQUENTIAL_WINDOW_HOURS,
            "escalation": 1.0 if risk_delta > 0 else 0.0,
        }

    # -------------------------------------------------------------------------
    # Normalizers
    # -------------------------------------------------------------------------

    @staticmethod
    def normalize_context_risk(context: Optional[ActionContext]) -> float:
        if context is None:
            return 0.0
        risk = 0.0
        if context.leverage is not None and context.leverage > 5:
            risk += 0.3
        if context.recent_losses is not None and context.recent_losses > 2:
            risk += 0.4
        if context.current_pnl is not None and context.current_pnl < -1000:
            risk += 0.3
        return min(1.0, risk)

    @staticmethod
    def normalize_time_of_day(hour: int) -> float:
        """Late night/early morning carries the most risk."""
        if hour < 6 or hour > 22:
            return 0.8
        if hour < 9 or hour > 18:
            return 0.4
        return 0.1
