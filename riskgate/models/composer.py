"""
RiskGate Risk Composer

Combines per-modality subscores into one bounded composite score.

Composition is cap-then-weight: each scorer caps its own subscore, then
the composer multiplies by the modality weight. A modality contributes
only when its subscore is non-zero. Contextual risk is additive and
unweighted.
"""

import math
from typing import Dict, Iterable, List, Optional

from riskgate.models.scorers import ModalityScorer, default_scorers
from riskgate.processors.signals import SignalSummary
from riskgate.schemas.inputs import ActionContext, UserBaseline
from riskgate.schemas.outputs import (
    ModalityScore,
    PatternPrediction,
    RiskFlags,
    RiskScoreResult,
)


# =============================================================================
# Constants
# =============================================================================

CONTEXTUAL_RISK_CAP = 40.0
SCORE_MIN = 0.0
SCORE_MAX = 100.0

# Blend of base and pattern confidence once a prediction is applied
BASE_CONFIDENCE_SHARE = 0.7
PATTERN_CONFIDENCE_SHARE = 0.3


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, lower: float, upper: float) -> float:
    return min(max(value, lower), upper)


class RiskComposer:
    """
    Weighted composition over a registry of modality scorers.

    Example:
        composer = RiskComposer()
        result = composer.compose(summary, context, baseline)
        result.risk_score  # 0-100
    """

    def __init__(self, scorers: Optional[Iterable[ModalityScorer]] = None) -> None:
        self.scorers: List[ModalityScorer] = list(scorers) if scorers is not None else default_scorers()

    def register(self, scorer: ModalityScorer) -> None:
        """Add an extra scorer (e.g. an experimental predictor)."""
        if any(s.name == scorer.name for s in self.scorers):
            raise ValueError(f"Scorer already registered: {scorer.name}")
        self.scorers.append(scorer)

    @property
    def weights(self) -> Dict[str, float]:
        return {s.name: s.weight for s in self.scorers}

    # -------------------------------------------------------------------------
    # Composition
    # -------------------------------------------------------------------------

    def compose(
        self,
        summary: SignalSummary,
        context: Optional[ActionContext] = None,
        baseline: Optional[UserBaseline] = None
    ) -> RiskScoreResult:
        components: Dict[str, ModalityScore] = {}
        total = 0.0
        weighted_confidence = 0.0
        included = 0

        for scorer in self.scorers:
            component = scorer.score(summary, baseline)
            components[scorer.name] = component
            if component.score > 0:
                total += component.score * scorer.weight
                weighted_confidence += component.confidence * scorer.weight
                included += 1

        contextual = self.contextual_risk(context)
        total += contextual

        confidence = weighted_confidence / included if included else 0.0
        score = round_half_up(clamp(total, SCORE_MIN, SCORE_MAX))

        return RiskScoreResult(
            risk_score=score,
            base_risk_score=score,
            confidence=clamp(confidence, 0.0, 1.0),
            contextual_risk=contextual,
            flags=self._merge_flags(components),
            components=components,
        )

    def apply_pattern(
        self,
        result: RiskScoreResult,
        prediction: PatternPrediction
    ) -> RiskScoreResult:
        """Shift the base score by the pattern adjustment and blend confidences."""
        adjusted = clamp(result.base_risk_score + prediction.adjustment, SCORE_MIN, SCORE_MAX)
        confidence = (
            result.confidence * BASE_CONFIDENCE_SHARE
            + prediction.confidence * PATTERN_CONFIDENCE_SHARE
        )
        return result.model_copy(update={
            "risk_score": round_half_up(adjusted),
            "confidence": clamp(confidence, 0.0, 1.0),
            "pattern_adjustment": prediction.adjustment,
            "novelty_score": prediction.novelty_score,
            "matching_pattern_count": len(prediction.matching_pattern_ids),
            "recommended_weights": dict(prediction.recommended_weights),
        })

    # -------------------------------------------------------------------------
    # Contextual Risk
    # -------------------------------------------------------------------------

    @staticmethod
    def contextual_risk(context: Optional[ActionContext]) -> float:
        """
        Additive risk from the trade context, capped at 40.

        Tiers:
            leverage         >10 -> 20, >5 -> 10
            recent losses    >=5 -> 25, >=3 -> 15, >=1 -> 8
            session P&L      <-2000 -> 15, <-1000 -> 10, <-500 -> 8
            time of day      before 06:00 or after 22:59 -> 5
            volatility       >1.0 -> 15, >0.8 -> 8
        """
        if context is None:
            return 0.0

        risk = 0.0

        leverage = context.leverage
        if leverage is not None:
            if leverage > 10:
                risk += 20
            elif leverage > 5:
                risk += 10

        losses = context.recent_losses
        if losses is not None:
            if losses >= 5:
                risk += 25
            elif losses >= 3:
                risk += 15
            elif losses >= 1:
                risk += 8

        pnl = context.current_pnl
        if pnl is not None and math.isfinite(pnl):
            if pnl < -2000:
                risk += 15
            elif pnl < -1000:
                risk += 10
            elif pnl < -500:
                risk += 8

        if context.time_of_day is not None:
            hour = context.time_of_day.hour
            if hour < 6 or hour > 22:
                risk += 5

        volatility = context.market_volatility
        if volatility is not None and math.isfinite(volatility):
            if volatility > 1.0:
                risk += 15
            elif volatility > 0.8:
                risk += 8

        return min(CONTEXTUAL_RISK_CAP, risk)

    @staticmethod
    def _merge_flags(components: Dict[str, ModalityScore]) -> RiskFlags:
        raised = {}
        for component in components.values():
            for name, value in component.flags.items():
                raised[name] = raised.get(name, False) or value
        known = {k: v for k, v in raised.items() if k in RiskFlags.model_fields}
        return RiskFlags(**known)
