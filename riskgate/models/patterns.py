"""
RiskGate Behavioral Pattern Matcher

Mines an actor's stored assessments into typed signatures, clusters
similar signatures, and turns matches against the current evaluation into
a bounded score adjustment plus a novelty score.

The pattern library is cached per actor in an injected TTL store. A cache
miss triggers a full recompute from the history reader, bounded by
HISTORY_LIMIT.
"""

import logging
import math
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from riskgate.models.scorers import DEFAULT_WEIGHTS
from riskgate.processors.signals import SignalSummary
from riskgate.processors.signatures import Signature, SignatureExtractor
from riskgate.schemas.inputs import ActionContext
from riskgate.schemas.outputs import PatternPrediction
from riskgate.schemas.records import (
    AssessmentRecord,
    BehavioralPattern,
    PatternLibrary,
    PatternType,
    utc_now,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Collaborator Interfaces
# =============================================================================

class HistoryReader(Protocol):
    def fetch_history(self, actor_id: str, limit: int) -> List[AssessmentRecord]:
        ...


class PatternCache(Protocol):
    def get(self, key: str) -> Optional[PatternLibrary]:
        ...

    def set(self, key: str, value: PatternLibrary) -> None:
        ...


# =============================================================================
# Matcher
# =============================================================================

class BehavioralPatternMatcher:
    """
    Per-actor historical pattern matching.

    Mining:
        Each qualifying assessment (one with a stored risk score) yields one
        signature per modality it carries, plus a sequential risk-delta
        signature for consecutive assessments less than 24 hours apart.

    Clustering:
        Same-type signatures with similarity > 0.8 are merged greedily
        until a full pass merges nothing, so the result is a fixed point.

    Prediction:
        weight     = similarity * accuracy * log(frequency + 1)
        adjustment = (risk_outcome - 50) * 0.4
        Final adjustment is the weight-normalized mean, clamped to +/-20.
    """

    MIN_HISTORY: int = 5
    HISTORY_LIMIT: int = 100
    CLUSTER_SIMILARITY: float = 0.8
    MATCH_SIMILARITY: float = 0.7
    EXPECTED_RISK: float = 50.0
    ADJUSTMENT_SCALE: float = 0.4
    MAX_ADJUSTMENT: float = 20.0
    CONFIDENCE_WEIGHT_SCALE: float = 5.0
    EXPECTED_ACCURACY: float = 0.8

    # Prior predictiveness of each signature type
    TYPE_ACCURACY: Dict[PatternType, float] = {
        PatternType.MOUSE_STABILITY: 0.8,
        PatternType.KEYSTROKE_RHYTHM: 0.75,
        PatternType.COGNITIVE_PERFORMANCE: 0.9,
        PatternType.STRESS_ESCALATION: 0.85,
        PatternType.SEQUENTIAL_RISK: 0.8,
    }

    TYPE_WEIGHT_KEY: Dict[PatternType, str] = {
        PatternType.COGNITIVE_PERFORMANCE: "cognitive",
        PatternType.MOUSE_STABILITY: "behavioral",
        PatternType.KEYSTROKE_RHYTHM: "behavioral",
        PatternType.STRESS_ESCALATION: "self_report",
    }

    def __init__(
        self,
        history: HistoryReader,
        cache: PatternCache,
        extractor: Optional[SignatureExtractor] = None
    ) -> None:
        self.history = history
        self.cache = cache
        self.extractor = extractor or SignatureExtractor()

    # -------------------------------------------------------------------------
    # Prediction
    # -------------------------------------------------------------------------

    def predict(
        self,
        actor_id: str,
        summary: SignalSummary,
        context: Optional[ActionContext] = None,
        observed_at: Optional[datetime] = None
    ) -> PatternPrediction:
        library = self.library(actor_id)
        if library.history_count < self.MIN_HISTORY:
            return PatternPrediction()

        current = self.extractor.extract(summary, context, observed_at or utc_now())

        matches: List[BehavioralPattern] = []
        weighted_adjustment = 0.0
        total_weight = 0.0
        similarities: List[float] = []

        for pattern in library.patterns:
            signature = current.get(pattern.pattern_type)
            if signature is None:
                continue
            similarity = self.similarity(signature, pattern.signature)
            similarities.append(similarity)

            if similarity > self.MATCH_SIMILARITY:
                weight = similarity * pattern.accuracy * math.log(pattern.frequency + 1)
                weighted_adjustment += self.pattern_adjustment(pattern) * weight
                total_weight += weight
                matches.append(pattern)

        adjustment = weighted_adjustment / total_weight if total_weight > 0 else 0.0
        adjustment = min(max(adjustment, -self.MAX_ADJUSTMENT), self.MAX_ADJUSTMENT)

        if similarities:
            novelty = 1.0 - sum(similarities) / len(similarities)
        else:
            novelty = 1.0

        prediction = PatternPrediction(
            adjustment=adjustment,
            confidence=min(total_weight / self.CONFIDENCE_WEIGHT_SCALE, 1.0),
            novelty_score=min(max(novelty, 0.0), 1.0),
            matching_pattern_ids=[p.id for p in matches],
            recommended_weights=self.recommended_weights(matches),
        )

        logger.debug(
            f"Pattern prediction for {actor_id}: adjustment={prediction.adjustment:.2f}, "
            f"matches={len(matches)}, novelty={prediction.novelty_score:.2f}"
        )
        return prediction

    def pattern_adjustment(self, pattern: BehavioralPattern) -> float:
        return (pattern.risk_outcome - self.EXPECTED_RISK) * self.ADJUSTMENT_SCALE

    def recommended_weights(self, matches: List[BehavioralPattern]) -> Dict[str, float]:
        """Default weights scaled by how predictive matched pattern types have been."""
        weights = dict(DEFAULT_WEIGHTS)
        accuracies: Dict[str, List[float]] = {}
        for pattern in matches:
            key = self.TYPE_WEIGHT_KEY.get(pattern.pattern_type)
            if key is not None:
                accuracies.setdefault(key, []).append(pattern.accuracy)

        for key, values in accuracies.items():
            weights[key] *= (sum(values) / len(values)) / self.EXPECTED_ACCURACY
        return weights

    # -------------------------------------------------------------------------
    # Library
    # -------------------------------------------------------------------------

    def library(self, actor_id: str) -> PatternLibrary:
        """Cached pattern library, rebuilt from history on a miss."""
        cached = self.cache.get(actor_id)
        if cached is not None:
            logger.debug(f"Pattern cache hit for {actor_id}")
            return cached

        logger.debug(f"Pattern cache miss for {actor_id}")
        records = [
            r for r in self.history.fetch_history(actor_id, self.HISTORY_LIMIT)
            if r.risk_score is not None
        ]

        patterns: List[BehavioralPattern] = []
        if len(records) >= self.MIN_HISTORY:
            patterns = self.cluster(self.mine(actor_id, records))

        library = PatternLibrary(
            actor_id=actor_id,
            history_count=len(records),
            patterns=patterns,
        )
        self.cache.set(actor_id, library)
        return library

    def mine(self, actor_id: str, records: List[AssessmentRecord]) -> List[BehavioralPattern]:
        """Extract raw (unclustered) patterns from scored assessments."""
        chronological = sorted(records, key=lambda r: r.created_at)
        patterns: List[BehavioralPattern] = []

        for record in chronological:
            for pattern_type, signature in self.extractor.extract_record(record).items():
                patterns.append(self._pattern(actor_id, record, pattern_type, signature))

        for previous, current in zip(chronological, chronological[1:]):
            signature = self.extractor.sequential(current, previous)
            if signature is not None:
                patterns.append(
                    self._pattern(actor_id, current, PatternType.SEQUENTIAL_RISK, signature)
                )

        return patterns

    def _pattern(
        self,
        actor_id: str,
        record: AssessmentRecord,
        pattern_type: PatternType,
        signature: Signature
    ) -> BehavioralPattern:
        return BehavioralPattern(
            id=f"{record.id}_{pattern_type.value}",
            actor_id=actor_id,
            pattern_type=pattern_type,
            signature=signature,
            risk_outcome=float(record.risk_score or 0),
            frequency=1,
            last_seen=record.created_at,
            accuracy=self.TYPE_ACCURACY[pattern_type],
        )

    # -------------------------------------------------------------------------
    # Clustering
    # -------------------------------------------------------------------------

    def cluster(self, patterns: List[BehavioralPattern]) -> List[BehavioralPattern]:
        current = list(patterns)
        merged_any = True

        while merged_any:
            merged_any = False
            remaining = list(current)
            clustered: List[BehavioralPattern] = []

            while remaining:
                anchor = remaining.pop(0)
                group = [anchor]
                rest = []
                for candidate in remaining:
                    if (
                        candidate.pattern_type == anchor.pattern_type
                        and self.similarity(anchor.signature, candidate.signature) > self.CLUSTER_SIMILARITY
                    ):
                        group.append(candidate)
                    else:
                        rest.append(candidate)
                remaining = rest

                if len(group) > 1:
                    clustered.append(self.merge(group))
                    merged_any = True
                else:
                    clustered.append(anchor)

            current = clustered

        return current

    @staticmethod
    def merge(group: List[BehavioralPattern]) -> BehavioralPattern:
        """Frequency-weighted feature-wise mean. Keeps the anchor's id."""
        anchor = group[0]
        total = sum(p.frequency for p in group)

        keys = []
        for pattern in group:
            for key in pattern.signature:
                if key not in keys:
                    keys.append(key)

        signature: Signature = {}
        for key in keys:
            holders = [p for p in group if key in p.signature]
            weight = sum(p.frequency for p in holders)
            signature[key] = sum(p.signature[key] * p.frequency for p in holders) / weight

        return anchor.model_copy(update={
            "signature": signature,
            "risk_outcome": sum(p.risk_outcome * p.frequency for p in group) / total,
            "frequency": total,
            "accuracy": sum(p.accuracy * p.frequency for p in group) / total,
            "last_seen": max(p.last_seen for p in group),
        })

    @staticmethod
    def similarity(a: Signature, b: Signature) -> float:
        """1 - mean absolute per-feature difference over the union of keys."""
        keys = set(a) | set(b)
        if not keys:
            return 0.0
        total = sum(max(0.0, 1.0 - abs(a.get(k, 0.0) - b.get(k, 0.0))) for k in keys)
        return total / len(keys)
