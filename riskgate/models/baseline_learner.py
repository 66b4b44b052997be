"""
RiskGate Adaptive Baseline Learner

Correlates an actor's historical self-reported stress and biometrics with
realized trade outcomes, and produces confidence-gated recommendations for
retuning that actor's personal baseline.

Runs on demand (never per evaluation). Cancellable between stages via a
threading.Event.
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from riskgate.processors.signals import SignalProcessor
from riskgate.schemas.inputs import UserBaseline
from riskgate.schemas.outputs import (
    BaselineOptimization,
    PerformanceMetrics,
    RecommendedAdjustments,
)
from riskgate.schemas.records import AssessmentRecord, utc_now

logger = logging.getLogger(__name__)


class CalibrationCancelledError(Exception):
    """Raised inside the learner when its cancel event is set."""
    pass


class HistoryReader(Protocol):
    def fetch_history(self, actor_id: str, limit: int) -> List[AssessmentRecord]:
        ...


@dataclass(frozen=True)
class StressBucket:
    """Outcome statistics for one self-reported stress level."""
    stress_level: int
    trade_count: int
    average_pnl: float
    win_rate: float
    average_risk_score: float

    @property
    def performance_score(self) -> float:
        return (self.win_rate / 100) * 0.6 + max(0.0, self.average_pnl / 1000) * 0.4


# =============================================================================
# Learner
# =============================================================================

class AdaptiveBaselineLearner:
    """
    Offline baseline optimizer.

    Gates:
        - fewer than MIN_RECORDS outcome-bearing assessments -> default
          recommendation with confidence 0.3
        - should_update() only when confidence > 0.7 AND improvement > 5%

    Updates nudge each threshold toward its optimum by a small fraction of
    the gap (10% for reaction time, 5% for the rest).
    """

    HISTORY_LIMIT: int = 200
    MIN_RECORDS: int = 10
    FULL_LEARNING_POINTS: float = 100.0
    FULL_VOLUME_POINTS: float = 50.0
    MIN_BUCKET_TRADES: int = 2
    MIN_RELIABLE_BUCKET_TRADES: int = 3
    TOP_BUCKET_SHARE: float = 0.3
    TOP_PERFORMER_SHARE: float = 0.25

    UPDATE_CONFIDENCE: float = 0.7
    UPDATE_IMPROVEMENT: float = 5.0

    REACTION_TIME_RATE: float = 0.1
    THRESHOLD_RATE: float = 0.05

    def __init__(
        self,
        history: HistoryReader,
        processor: Optional[SignalProcessor] = None
    ) -> None:
        self.history = history
        self.processor = processor or SignalProcessor()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def analyze(
        self,
        actor_id: str,
        cancel: Optional[threading.Event] = None
    ) -> BaselineOptimization:
        try:
            history = self.history.fetch_history(actor_id, self.HISTORY_LIMIT)
        except Exception as e:
            logger.error(f"History fetch failed for {actor_id}: {e}")
            return self.default_optimization()

        records = [r for r in history if r.has_outcome()]
        if len(records) < self.MIN_RECORDS:
            logger.info(
                f"Not enough outcomes to learn for {actor_id} "
                f"({len(records)}/{self.MIN_RECORDS})"
            )
            return self.default_optimization(data_points=len(records))

        self._check(cancel)
        performance = self.performance_metrics(records)

        self._check(cancel)
        buckets = self.stress_buckets(records)
        stress_min, stress_max = self.optimal_stress_range(buckets)

        self._check(cancel)
        optimal = self.optimal_biometrics(records)

        # Unobserved biometrics keep the schema defaults; a measured 0.0 is kept
        recommended = RecommendedAdjustments(
            optimal_stress_min=stress_min,
            optimal_stress_max=stress_max,
            **{key: value for key, value in optimal.items() if value is not None},
        )

        return BaselineOptimization(
            recommended=recommended,
            confidence=self.confidence(performance, buckets, len(records)),
            learning_progress=min(len(records) / self.FULL_LEARNING_POINTS, 1.0),
            performance_improvement=self.estimate_improvement(performance, buckets),
            data_points=len(records),
            performance=performance,
        )

    def should_update(self, optimization: BaselineOptimization) -> bool:
        return (
            optimization.confidence > self.UPDATE_CONFIDENCE
            and optimization.performance_improvement > self.UPDATE_IMPROVEMENT
        )

    def updated_baseline(
        self,
        current: UserBaseline,
        optimization: BaselineOptimization
    ) -> UserBaseline:
        """Conservative step toward the recommended thresholds."""
        target = optimization.recommended
        return current.model_copy(update={
            "reaction_time_ms": self._nudge(
                current.reaction_time_ms, target.reaction_time_ms, self.REACTION_TIME_RATE
            ),
            "accuracy": self._nudge(current.accuracy, target.accuracy, self.THRESHOLD_RATE),
            "mouse_stability": self._nudge(
                current.mouse_stability, target.mouse_stability, self.THRESHOLD_RATE
            ),
            "keystroke_rhythm": self._nudge(
                current.keystroke_rhythm, target.keystroke_rhythm, self.THRESHOLD_RATE
            ),
            "calibration_count": current.calibration_count + 1,
            "last_calibrated": utc_now(),
        })

    def default_optimization(self, data_points: int = 0) -> BaselineOptimization:
        return BaselineOptimization(
            recommended=RecommendedAdjustments(),
            confidence=0.3,
            learning_progress=0.1,
            performance_improvement=0.0,
            data_points=data_points,
        )

    # -------------------------------------------------------------------------
    # Performance
    # -------------------------------------------------------------------------

    def performance_metrics(self, records: List[AssessmentRecord]) -> PerformanceMetrics:
        outcomes = [r.trade_outcome for r in records]
        pnls = [o.pnl or 0.0 for o in outcomes]
        wins = sum(1 for pnl in pnls if pnl > 0)
        average_pnl = sum(pnls) / len(pnls)

        hold_times = [o.duration_ms for o in outcomes if o.duration_ms and o.duration_ms > 0]
        average_hold = sum(hold_times) / len(hold_times) / 60000 if hold_times else 0.0

        running = peak = drawdown = 0.0
        for pnl in pnls:
            running += pnl
            peak = max(peak, running)
            drawdown = max(drawdown, peak - running)

        std_dev = self._std(pnls)
        return PerformanceMetrics(
            total_trades=len(pnls),
            successful_trades=wins,
            average_pnl=average_pnl,
            average_hold_time_minutes=average_hold,
            max_drawdown=drawdown,
            sharpe_ratio=average_pnl / std_dev if std_dev > 0 else 0.0,
            win_rate=wins / len(pnls) * 100,
        )

    def stress_buckets(self, records: List[AssessmentRecord]) -> List[StressBucket]:
        groups: Dict[int, List[AssessmentRecord]] = {}
        for record in records:
            stress = self.processor.clamp_stress(record.self_report_stress)
            if stress is None:
                continue
            groups.setdefault(int(round(stress)), []).append(record)

        buckets = []
        for level in sorted(groups):
            group = groups[level]
            if len(group) < self.MIN_BUCKET_TRADES:
                continue
            pnls = [r.trade_outcome.pnl or 0.0 for r in group]
            buckets.append(StressBucket(
                stress_level=level,
                trade_count=len(group),
                average_pnl=sum(pnls) / len(pnls),
                win_rate=sum(1 for p in pnls if p > 0) / len(pnls) * 100,
                average_risk_score=sum(r.risk_score or 0 for r in group) / len(group),
            ))
        return buckets

    def optimal_stress_range(self, buckets: List[StressBucket]):
        """Stress range of the top 30% of reliable buckets, padded by one level."""
        if not buckets:
            return 2.0, 6.0

        top_count = math.ceil(len(buckets) * self.TOP_BUCKET_SHARE)
        reliable = sorted(
            (b for b in buckets if b.trade_count >= self.MIN_RELIABLE_BUCKET_TRADES),
            key=lambda b: b.performance_score,
            reverse=True,
        )[:top_count]

        if not reliable:
            return 2.0, 6.0

        levels = [b.stress_level for b in reliable]
        return float(max(0, min(levels) - 1)), float(min(10, max(levels) + 1))

    def optimal_biometrics(self, records: List[AssessmentRecord]) -> Dict[str, Optional[float]]:
        """Median biometrics over the top quartile of profitable trades."""
        candidates = [r for r in records if r.trade_outcome.pnl]
        top_count = math.ceil(len(candidates) * self.TOP_PERFORMER_SHARE)
        top = sorted(
            (r for r in candidates if r.trade_outcome.pnl > 0),
            key=lambda r: r.trade_outcome.pnl,
            reverse=True,
        )[:top_count]

        values: Dict[str, List[float]] = {
            "reaction_time_ms": [],
            "accuracy": [],
            "mouse_stability": [],
            "keystroke_rhythm": [],
        }
        for record in top:
            summary = self.processor.summarize(record.signals)
            if summary.has_cognitive:
                values["reaction_time_ms"].append(summary.mean_reaction_time)
                values["accuracy"].append(summary.accuracy)
            if summary.mouse_stability is not None:
                values["mouse_stability"].append(summary.mouse_stability)
            if summary.keystroke_rhythm is not None:
                values["keystroke_rhythm"].append(summary.keystroke_rhythm)

        return {key: self._median(items) for key, items in values.items()}

    # -------------------------------------------------------------------------
    # Confidence & Improvement
    # -------------------------------------------------------------------------

    def confidence(
        self,
        performance: PerformanceMetrics,
        buckets: List[StressBucket],
        data_points: int
    ) -> float:
        """
        Three weighted components:
            data volume        up to 0.4
            performance        up to 0.3 (1 - drawdown / |total P&L|)
            correlation        up to 0.3 (clarity of P&L across stress buckets)
        """
        confidence = min(data_points / self.FULL_VOLUME_POINTS, 1.0) * 0.4

        if performance.total_trades > 10:
            total_pnl = abs(performance.average_pnl * performance.total_trades)
            if total_pnl > 0:
                stability = max(0.0, 1.0 - performance.max_drawdown / total_pnl)
                confidence += stability * 0.3

        if len(buckets) > 3:
            variance = self._variance([b.average_pnl for b in buckets])
            clarity = min(1.0, 1000 / variance) if variance > 0 else 0.0
            confidence += clarity * 0.3

        return min(1.0, confidence)

    def estimate_improvement(
        self,
        performance: PerformanceMetrics,
        buckets: List[StressBucket]
    ) -> float:
        improvement = 0.0

        if buckets:
            best = max(b.average_pnl for b in buckets)
            average = sum(b.average_pnl for b in buckets) / len(buckets)
            if average != 0:
                improvement += abs((best - average) / average) * 0.5

        if 0 < performance.win_rate < 60:
            improvement += (60 - performance.win_rate) / 100 * 0.3

        return min(50.0, improvement * 100)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _check(cancel: Optional[threading.Event]) -> None:
        if cancel is not None and cancel.is_set():
            raise CalibrationCancelledError("Baseline calibration cancelled")

    @staticmethod
    def _nudge(current: float, optimal: float, rate: float) -> float:
        return current + (optimal - current) * rate

    @staticmethod
    def _median(values: List[float]) -> Optional[float]:
        if not values:
            return None
        ordered = sorted(values)
        mid = len(ordered) // 2
        if len(ordered) % 2 == 0:
            return (ordered[mid - 1] + ordered[mid]) / 2
        return ordered[mid]

    @staticmethod
    def _variance(values: List[float]) -> float:
        if not values:
            return 0.0
        mean = sum(values) / len(values)
        return sum((v - mean) ** 2 for v in values) / len(values)

    def _std(self, values: List[float]) -> float:
        return math.sqrt(self._variance(values))
