"""
RiskGate Orchestrator

Wires the pure RiskEngine to its storage collaborators:

    Lock -> Cooldown check -> Baseline/Policy -> Engine -> Store -> Cooldown -> Audit

Per-actor evaluations are serialized through the Redis actor lock so that
the cooldown check and the scoring that follows it cannot race.
"""

import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from persistence.assessment_store import AssessmentStore
from persistence.audit_logger import AuditLogger
from persistence.baseline_store import BaselineStore
from persistence.cooldown_repository import ActorBusyError, CooldownRecord, CooldownRepository
from persistence.policy_store import PolicyStore
from riskgate.cache import TTLStore
from riskgate.engine import Evaluation, RiskEngine
from riskgate.models.baseline_learner import AdaptiveBaselineLearner, CalibrationCancelledError
from riskgate.models.patterns import BehavioralPatternMatcher
from riskgate.schemas.inputs import ActionContext, AssessmentSignals, FacialMetrics
from riskgate.schemas.outputs import (
    AssessmentResult,
    AssessmentStatus,
    CalibrationResult,
    GateDecision,
    Verdict,
)
from riskgate.schemas.records import AssessmentRecord, TradeOutcome
from riskgate.services.llm_scoring import LLMStressAnalyzer


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

ACTIVE_COOLDOWN_RULE = "active_cooldown"
ACTIVE_COOLDOWN_REASON = "Cooldown period still active from previous assessment"


# =============================================================================
# Exceptions
# =============================================================================

class AssessmentNotFoundError(Exception):
    """Raised when an assessment id does not resolve to a stored assessment."""
    pass


class OverrideNotAllowedError(Exception):
    """Raised when the active policy forbids overriding a verdict."""
    pass


__all__ = [
    "ActorBusyError",
    "AssessmentNotFoundError",
    "CalibrationCancelledError",
    "OverrideNotAllowedError",
    "RiskGateOrchestrator",
]


class RiskGateOrchestrator:
    """
    Stateful entry points around the engine.

    Every collaborator is optional; the defaults connect to Redis and
    Supabase from environment variables.
    """

    def __init__(
        self,
        cooldowns: Optional[CooldownRepository] = None,
        assessments: Optional[AssessmentStore] = None,
        baselines: Optional[BaselineStore] = None,
        policies: Optional[PolicyStore] = None,
        audit: Optional[AuditLogger] = None,
        pattern_cache: Optional[Any] = None,
        llm: Optional[LLMStressAnalyzer] = None,
        clock: Callable[[], float] = time.time
    ) -> None:
        self.cooldowns = cooldowns or CooldownRepository()
        self.assessments = assessments or AssessmentStore()
        self.baselines = baselines or BaselineStore()
        self.policies = policies or PolicyStore()
        self.audit = audit or AuditLogger()
        self.pattern_cache = pattern_cache if pattern_cache is not None else TTLStore()
        self.clock = clock

        self.engine = RiskEngine(
            pattern_matcher=BehavioralPatternMatcher(self.assessments, self.pattern_cache),
            llm=llm,
        )
        self.learner = AdaptiveBaselineLearner(self.assessments, self.engine.processor)

        logger.info(
            f"RiskGateOrchestrator initialized "
            f"(language model: {'enabled' if llm is not None else 'disabled'})"
        )

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate(
        self,
        actor_id: str,
        signals: AssessmentSignals,
        context: Optional[ActionContext] = None
    ) -> AssessmentResult:
        """
        Score one attempted trade for an actor.

        Raises:
            ActorBusyError: another evaluation holds the actor lock
        """
        with self.cooldowns.actor_lock(actor_id):
            now = self.clock()
            active = self.cooldowns.get_active_cooldown(actor_id, now)
            if active is not None:
                return self._cooldown_result(actor_id, active, now)

            assessment_id = str(uuid.uuid4())
            evaluation = self._run(actor_id, signals, context, now)
            record = self._to_record(
                AssessmentRecord(
                    id=assessment_id,
                    actor_id=actor_id,
                    created_at=self._timestamp(now),
                    signals=signals,
                    context=context,
                ),
                evaluation,
            )
            if not self.assessments.create(record):
                logger.warning(f"Assessment {assessment_id} was not persisted")
            self._start_cooldown(record, evaluation, now)

        self._audit("evaluate", record, evaluation)
        return self._result(record, evaluation)

    def rescore(
        self,
        assessment_id: str,
        facial_metrics: Optional[FacialMetrics] = None,
        stress_level: Optional[float] = None
    ) -> AssessmentResult:
        """
        Merge late-arriving signals into a stored assessment and re-run it.

        An active cooldown started by this same assessment does not
        short-circuit; one started by any other assessment does.
        """
        stored = self._get_record(assessment_id)
        update = {}
        if facial_metrics is not None:
            update["facial"] = self.engine.processor.facial_adapter.clamp(facial_metrics)
        if stress_level is not None:
            update["stress_level"] = self.engine.processor.clamp_stress(stress_level)
        signals = stored.signals.model_copy(update=update)

        with self.cooldowns.actor_lock(stored.actor_id):
            now = self.clock()
            active = self.cooldowns.get_active_cooldown(stored.actor_id, now)
            if active is not None and active.assessment_id != assessment_id:
                return self._cooldown_result(stored.actor_id, active, now)

            evaluation = self._run(stored.actor_id, signals, stored.context, now)
            record = self._to_record(stored.model_copy(update={"signals": signals}), evaluation)
            if not self.assessments.update(record):
                logger.warning(f"Re-scored assessment {assessment_id} was not persisted")
            if active is None:
                self._start_cooldown(record, evaluation, now)

        self._audit("rescore", record, evaluation)
        return self._result(record, evaluation)

    def _run(
        self,
        actor_id: str,
        signals: AssessmentSignals,
        context: Optional[ActionContext],
        now: float
    ) -> Evaluation:
        baseline = self.baselines.get(actor_id)
        policy = self.policies.get_active()
        evaluation = self.engine.evaluate(
            signals,
            context,
            baseline=baseline,
            policy=policy,
            actor_id=actor_id,
            observed_at=self._timestamp(now),
        )
        if evaluation.is_pending:
            logger.info(
                f"Assessment pending for {actor_id} "
                f"(confidence {evaluation.risk.confidence:.2f})"
            )
        else:
            logger.info(
                f"Verdict for {actor_id}: {evaluation.decision.verdict.value} "
                f"(score {evaluation.risk.risk_score}, rule {evaluation.decision.rule})"
            )
        return evaluation

    # -------------------------------------------------------------------------
    # Cooldown Lifecycle
    # -------------------------------------------------------------------------

    def record_cooldown_completion(self, assessment_id: str) -> bool:
        """
        Mark an assessment's cooldown as served.

        Returns False while the full cooldown duration has not yet elapsed.
        Elapsed time runs from the start of the assessment's own cooldown,
        which a re-score may have started after the assessment was created.
        """
        record = self._get_record(assessment_id)
        now = self.clock()

        active = self.cooldowns.get_active_cooldown(record.actor_id, now)
        if active is not None and active.assessment_id == assessment_id:
            logger.info(
                f"Cooldown for {assessment_id} not complete "
                f"({active.remaining_seconds(now)}s remaining)"
            )
            return False

        elapsed = now - record.created_at.timestamp()
        if elapsed < record.cooldown_seconds:
            logger.info(
                f"Cooldown for {assessment_id} not complete "
                f"({int(elapsed)}/{record.cooldown_seconds}s)"
            )
            return False

        # Another assessment's cooldown holds the slot; nothing of ours to clear
        if active is None and not self.cooldowns.complete_cooldown(record.actor_id, assessment_id, now):
            logger.warning(f"Cooldown record for {assessment_id} could not be cleared")
            return False

        updated = record.model_copy(update={"cooldown_completed": True})
        self.assessments.update(updated)
        self.audit.log_event(
            "cooldown_completed",
            record.actor_id,
            assessment_id=assessment_id,
            risk_score=record.risk_score,
            verdict=record.verdict,
        )
        return True

    def record_trade_outcome(
        self,
        assessment_id: str,
        executed: bool,
        pnl: Optional[float] = None,
        duration_ms: Optional[float] = None
    ) -> AssessmentRecord:
        record = self._get_record(assessment_id)
        outcome = TradeOutcome(pnl=pnl, duration_ms=duration_ms) if executed else None
        updated = record.model_copy(update={
            "trade_executed": executed,
            "trade_outcome": outcome,
        })
        if not self.assessments.update(updated):
            logger.warning(f"Trade outcome for {assessment_id} was not persisted")

        self.audit.log_event(
            "trade_outcome",
            record.actor_id,
            assessment_id=assessment_id,
            risk_score=record.risk_score,
            verdict=record.verdict,
            details={"executed": executed, "pnl": pnl, "duration_ms": duration_ms},
        )
        return updated

    def record_override(self, assessment_id: str, reason: str) -> AssessmentRecord:
        """
        Record a justified override of a verdict.

        Raises:
            AssessmentNotFoundError: unknown assessment
            OverrideNotAllowedError: the active policy forbids overrides
        """
        record = self._get_record(assessment_id)
        policy = self.policies.get_active()
        if not policy.override_allowed:
            logger.warning(f"Override rejected for {assessment_id}: policy '{policy.name}'")
            raise OverrideNotAllowedError(f"Policy '{policy.name}' does not allow overrides")

        updated = record.model_copy(update={"overridden": True, "override_reason": reason})
        if not self.assessments.update(updated):
            logger.warning(f"Override for {assessment_id} was not persisted")

        self.audit.log_event(
            "override",
            record.actor_id,
            assessment_id=assessment_id,
            risk_score=record.risk_score,
            verdict=record.verdict,
            reasons=[reason],
            details={"supervisor_notification": policy.supervisor_notification},
        )
        return updated

    # -------------------------------------------------------------------------
    # Baseline Recalibration
    # -------------------------------------------------------------------------

    def recalibrate_baseline(
        self,
        actor_id: str,
        cancel: Optional[threading.Event] = None
    ) -> CalibrationResult:
        with self.baselines.learning_lock(actor_id) as acquired:
            if not acquired:
                return CalibrationResult(
                    actor_id=actor_id,
                    optimization=self.learner.default_optimization(),
                    skipped_reason="Another recalibration is running for this actor",
                )

            try:
                optimization = self.learner.analyze(actor_id, cancel)
            except CalibrationCancelledError:
                logger.info(f"Baseline recalibration cancelled for {actor_id}")
                return CalibrationResult(
                    actor_id=actor_id,
                    optimization=self.learner.default_optimization(),
                    skipped_reason="Cancelled",
                )

            if not self.learner.should_update(optimization):
                return CalibrationResult(
                    actor_id=actor_id,
                    optimization=optimization,
                    skipped_reason="Confidence or improvement below update thresholds",
                )

            current = self.baselines.get(actor_id)
            if current is None:
                return CalibrationResult(
                    actor_id=actor_id,
                    optimization=optimization,
                    skipped_reason="No existing baseline to update",
                )

            if cancel is not None and cancel.is_set():
                logger.info(f"Baseline recalibration cancelled before write for {actor_id}")
                return CalibrationResult(
                    actor_id=actor_id,
                    optimization=optimization,
                    skipped_reason="Cancelled",
                )

            updated = self.learner.updated_baseline(current, optimization)
            if not self.baselines.save(updated):
                return CalibrationResult(
                    actor_id=actor_id,
                    optimization=optimization,
                    skipped_reason="Baseline write failed",
                )

        logger.info(
            f"Baseline updated for {actor_id} "
            f"(confidence {optimization.confidence:.2f}, "
            f"improvement {optimization.performance_improvement:.1f}%)"
        )
        self.audit.log_event(
            "baseline_update",
            actor_id,
            details={
                "confidence": optimization.confidence,
                "performance_improvement": optimization.performance_improvement,
                "data_points": optimization.data_points,
                "calibration_count": updated.calibration_count,
            },
        )
        return CalibrationResult(
            actor_id=actor_id,
            optimization=optimization,
            updated=True,
            baseline=updated,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get_record(self, assessment_id: str) -> AssessmentRecord:
        record = self.assessments.get(assessment_id)
        if record is None:
            raise AssessmentNotFoundError(f"Assessment {assessment_id} not found")
        return record

    @staticmethod
    def _timestamp(now: float) -> datetime:
        return datetime.fromtimestamp(now, timezone.utc)

    @staticmethod
    def _to_record(record: AssessmentRecord, evaluation: Evaluation) -> AssessmentRecord:
        if evaluation.is_pending:
            return record.model_copy(update={
                "risk_score": None,
                "confidence": evaluation.risk.confidence,
                "verdict": AssessmentStatus.PENDING.value,
                "reason_tags": evaluation.reason_tags,
                "cooldown_seconds": 0,
            })
        return record.model_copy(update={
            "risk_score": evaluation.risk.risk_score,
            "confidence": evaluation.risk.confidence,
            "verdict": evaluation.decision.verdict.value,
            "reason_tags": evaluation.reason_tags,
            "cooldown_seconds": evaluation.decision.cooldown_seconds,
        })

    def _start_cooldown(
        self,
        record: AssessmentRecord,
        evaluation: Evaluation,
        now: float
    ) -> None:
        decision = evaluation.decision
        if evaluation.is_pending or decision.verdict == Verdict.ALLOW:
            return
        if decision.cooldown_seconds <= 0:
            return
        self.cooldowns.start_cooldown(record.actor_id, CooldownRecord(
            assessment_id=record.id,
            started_at=now,
            duration_seconds=decision.cooldown_seconds,
            verdict=decision.verdict.value,
            risk_score=evaluation.risk.risk_score,
            confidence=decision.confidence,
        ))

    def _cooldown_result(
        self,
        actor_id: str,
        active: CooldownRecord,
        now: float
    ) -> AssessmentResult:
        remaining = active.remaining_seconds(now)
        logger.info(f"Active cooldown for {actor_id}: {remaining}s remaining")
        return AssessmentResult(
            assessment_id=active.assessment_id,
            actor_id=actor_id,
            status=AssessmentStatus.COOLDOWN_ACTIVE,
            decision=GateDecision(
                verdict=Verdict.COOLDOWN,
                cooldown_seconds=remaining,
                reasons=[ACTIVE_COOLDOWN_REASON],
                confidence=active.confidence,
                rule=ACTIVE_COOLDOWN_RULE,
                reasoning=f"Previous {active.verdict} verdict is still cooling down ({remaining}s left)",
            ),
            cooldown_remaining_seconds=remaining,
        )

    @staticmethod
    def _result(record: AssessmentRecord, evaluation: Evaluation) -> AssessmentResult:
        if evaluation.is_pending:
            return AssessmentResult(
                assessment_id=record.id,
                actor_id=record.actor_id,
                status=AssessmentStatus.PENDING,
                risk=evaluation.risk,
                stress=evaluation.stress,
                reason_tags=evaluation.reason_tags,
            )
        return AssessmentResult(
            assessment_id=record.id,
            actor_id=record.actor_id,
            status=AssessmentStatus.SCORED,
            risk=evaluation.risk,
            decision=evaluation.decision,
            stress=evaluation.stress,
            reason_tags=evaluation.reason_tags,
        )

    def _audit(self, action: str, record: AssessmentRecord, evaluation: Evaluation) -> None:
        self.audit.log_event(
            action,
            record.actor_id,
            assessment_id=record.id,
            risk_score=record.risk_score,
            verdict=record.verdict,
            reasons=[] if evaluation.is_pending else evaluation.decision.reasons,
            details={
                "confidence": evaluation.risk.confidence,
                "reason_tags": evaluation.reason_tags,
                "stress_source": evaluation.stress.source,
                "rule": None if evaluation.is_pending else evaluation.decision.rule,
            },
        )
