"""
RiskGate Heuristic Stress Estimator

Deterministic 0-10 stress estimate consumed by the decision gate whenever
no language-model analysis is available.
"""

from typing import List, Optional

from riskgate.processors.signals import SignalSummary
from riskgate.schemas.inputs import ActionContext
from riskgate.schemas.outputs import StressAnalysis, StressVerdict


class HeuristicStressEstimator:
    """
    Additive stress model over the signal summary and trade context.

    Factors:
        pointer stability < 0.4        +2.0
        keystroke rhythm < 0.4         +1.0
        accuracy < 0.7                 +(0.7 - accuracy) * 5
        consistency < 0.5              +(0.5 - consistency) * 3
        reaction speed < 0.5           +(0.5 - speed) * 2
        self-report > 6                +(report - 5) * 0.8
        blink rate > 25                +1.0
        brow furrow > 0.5              +1.5
        gaze stability < 0.7           +1.0
        leverage > 10                  +0.5
        order size > 1000              +0.8
    """

    STRESS_MAX: float = 10.0
    BASE_CONFIDENCE: float = 0.4
    PER_SOURCE_CONFIDENCE: float = 0.15
    MULTI_SOURCE_BONUS: float = 0.05
    MIN_CONFIDENCE: float = 0.35

    BLOCK_STRESS: float = 7.0
    HOLD_STRESS: float = 4.5

    def estimate(
        self,
        summary: SignalSummary,
        context: Optional[ActionContext] = None
    ) -> StressAnalysis:
        stress = 0.0
        indicators: List[str] = []

        # Behavioral
        if summary.mouse_stability is not None and summary.mouse_stability < 0.4:
            stress += 2.0
            indicators.append("Unsteady pointer movement")
        if summary.keystroke_rhythm is not None and summary.keystroke_rhythm < 0.4:
            stress += 1.0
            indicators.append("Irregular typing rhythm")

        # Cognitive
        if summary.has_cognitive:
            if summary.accuracy < 0.7:
                stress += (0.7 - summary.accuracy) * 5
                indicators.append(f"Low test accuracy ({summary.accuracy:.0%})")

            consistency = max(0.0, 1.0 - summary.reaction_time_variance / 50000.0)
            if consistency < 0.5:
                stress += (0.5 - consistency) * 3
                indicators.append("Inconsistent reaction times")

            speed = max(0.0, 1.0 - summary.mean_reaction_time / 1000.0)
            if speed < 0.5:
                stress += (0.5 - speed) * 2
                indicators.append(f"Slow reactions ({summary.mean_reaction_time:.0f}ms)")

        # Self-report
        if summary.stress_level is not None and summary.stress_level > 6:
            stress += (summary.stress_level - 5) * 0.8
            indicators.append(f"Self-reported stress {summary.stress_level:.0f}/10")

        # Facial
        if summary.has_facial:
            facial = summary.facial
            if facial.blink_rate > 25:
                stress += 1.0
                indicators.append("Elevated blink rate")
            if facial.brow_furrow > 0.5:
                stress += 1.5
                indicators.append("Furrowed brow")
            if facial.gaze < 0.7:
                stress += 1.0
                indicators.append("Unstable gaze")

        # Context
        if context is not None:
            if context.leverage is not None and context.leverage > 10:
                stress += 0.5
                indicators.append(f"High leverage ({context.leverage:g}x)")
            if context.size is not None and context.size > 1000:
                stress += 0.8
                indicators.append("Large order size")

        stress = min(max(stress, 0.0), self.STRESS_MAX)
        confidence = self._confidence(summary)
        verdict = self._verdict(stress, summary.accuracy, len(indicators))

        return StressAnalysis(
            stress_level=stress,
            confidence=confidence,
            verdict=verdict,
            indicators=indicators,
            reasoning=self._reasoning(stress, verdict, indicators),
            source="heuristic",
        )

    def _confidence(self, summary: SignalSummary) -> float:
        sources = sum([
            summary.has_behavioral,
            summary.has_cognitive,
            summary.has_self_report,
            summary.has_facial,
        ])
        confidence = self.BASE_CONFIDENCE + self.PER_SOURCE_CONFIDENCE * sources
        if sources >= 2:
            confidence += self.MULTI_SOURCE_BONUS
        return min(max(confidence, self.MIN_CONFIDENCE), 1.0)

    def _verdict(self, stress: float, accuracy: Optional[float], indicator_count: int) -> StressVerdict:
        if stress >= self.BLOCK_STRESS or (accuracy is not None and accuracy < 0.5):
            return StressVerdict.BLOCK
        if (
            stress >= self.HOLD_STRESS
            or indicator_count >= 3
            or (accuracy is not None and accuracy < 0.7)
        ):
            return StressVerdict.HOLD
        return StressVerdict.GO

    @staticmethod
    def _reasoning(stress: float, verdict: StressVerdict, indicators: List[str]) -> str:
        if not indicators:
            return f"No stress indicators detected (estimated stress {stress:.1f}/10)"
        return (
            f"Estimated stress {stress:.1f}/10 ({verdict.value}): "
            + "; ".join(indicators)
        )
