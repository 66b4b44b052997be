"""
RiskGate Decision Gate

Pure business logic for the final verdict.
This module is STATELESS and DETERMINISTIC: no I/O, never blocks.

The cascade is an ordered list of rules evaluated top-down; the first rule
that returns a decision wins:

    1. InsufficientSignalsRule  -> block (fixed cooldown, confidence 0.3)
    2. BlockingRule             -> block / supervisor_review
    3. WarningRule              -> cooldown
    4. AllowRule                -> allow
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

from riskgate.models.composer import clamp, round_half_up
from riskgate.processors.signals import SignalSummary
from riskgate.schemas.inputs import ActionContext, Policy
from riskgate.schemas.outputs import (
    GateDecision,
    RiskScoreResult,
    StressAnalysis,
    Verdict,
)


MAX_PRIMARY_CONCERNS = 5


# =============================================================================
# Gate Inputs
# =============================================================================

@dataclass(frozen=True)
class GateInputs:
    """Everything one gate evaluation reads."""
    risk: RiskScoreResult
    summary: SignalSummary
    stress: StressAnalysis
    policy: Policy = field(default_factory=Policy)
    context: Optional[ActionContext] = None

    @property
    def score(self) -> int:
        return self.risk.risk_score

    @property
    def stress_level(self) -> float:
        return self.stress.stress_level

    @property
    def signal_availability(self) -> Dict[str, bool]:
        return {
            "cognitive": self.summary.has_cognitive,
            "behavioral": self.summary.has_behavioral,
            "self_report": self.summary.has_self_report,
            "facial": self.summary.has_facial,
            "voice": self.summary.voice is not None,
        }


class GateRule(Protocol):
    name: str

    def apply(self, inputs: GateInputs) -> Optional[GateDecision]:
        ...


# =============================================================================
# Shared Checks
# =============================================================================

def concerns(inputs: GateInputs) -> List[str]:
    """Sub-blocking concerns in detection order."""
    found: List[str] = []
    score = inputs.score
    policy = inputs.policy
    stress = inputs.stress_level
    flags = inputs.risk.flags

    if policy.warning_threshold <= score < policy.block_threshold:
        found.append(f"Risk score {score} elevated (warning threshold {policy.warning_threshold})")
    if 6.0 <= stress < 8.0:
        found.append(f"Elevated stress level ({stress:.1f}/10)")

    facial = inputs.summary.facial
    if (
        facial is not None
        and facial.present
        and facial.stress_score is not None
        and facial.stress_score >= 50
        and not facial.is_high_stress
    ):
        found.append(f"Facial scan shows moderate stress ({facial.stress_score:.0f}/100)")

    if flags.reaction_time_elevated:
        found.append("Reaction time elevated")
    if flags.accuracy_low:
        found.append("Accuracy below baseline")
    if flags.behavioral_anomalies:
        found.append("Behavioral anomalies detected")
    if flags.facial_stress_detected:
        found.append("Facial stress indicators")
    if flags.voice_stress_detected:
        found.append("Voice stress indicators")
    return found


def red_flags(inputs: GateInputs) -> List[str]:
    flags = inputs.risk.flags
    self_report = inputs.summary.stress_level
    raised = {
        "reaction time elevated": flags.reaction_time_elevated,
        "accuracy low": flags.accuracy_low,
        "behavioral anomalies": flags.behavioral_anomalies,
        "facial stress": flags.facial_stress_detected,
        "stress >= 6": inputs.stress_level >= 6.0,
        "self-report >= 7": self_report is not None and self_report >= 7,
    }
    return [name for name, value in raised.items() if value]


def _reasoning(summary: str, inputs: GateInputs) -> str:
    stress = inputs.stress
    return (
        f"{summary} Stress analysis ({stress.source}): {stress.verdict.value} "
        f"at {stress.stress_level:.1f}/10. {stress.reasoning}".strip()
    )


# =============================================================================
# Rules
# =============================================================================

class InsufficientSignalsRule:
    """Too little evidence to trust any score."""

    name = "insufficient_signals"

    MIN_TRIALS: int = 5
    MIN_SOURCES: int = 2
    COOLDOWN_SECONDS: int = 600
    CONFIDENCE: float = 0.3

    def apply(self, inputs: GateInputs) -> Optional[GateDecision]:
        summary = inputs.summary
        trials = len(summary.valid_trials)
        sources = summary.source_count
        issues: List[str] = []

        if trials < self.MIN_TRIALS:
            issues.append(f"Cognitive test incomplete ({trials} of {self.MIN_TRIALS} valid trials)")
        if sources < self.MIN_SOURCES:
            issues.append(f"Insufficient signal sources ({sources} of {self.MIN_SOURCES} required)")

        if not issues:
            return None

        return GateDecision(
            verdict=Verdict.BLOCK,
            cooldown_seconds=self.COOLDOWN_SECONDS,
            reasons=issues,
            primary_concerns=issues[:MAX_PRIMARY_CONCERNS],
            confidence=self.CONFIDENCE,
            rule=self.name,
            reasoning=_reasoning("Not enough signals to assess readiness.", inputs),
            signal_availability=inputs.signal_availability,
        )


class BlockingRule:
    """Any single blocking condition blocks; severe cases escalate."""

    name = "blocking_conditions"

    CRITICAL_STRESS: float = 8.0
    ESCALATION_SCORE: int = 85
    ESCALATION_STRESS: float = 9.0
    SUPERVISOR_COOLDOWN_SECONDS: int = 900
    RED_FLAG_LIMIT: int = 3
    MAX_LEVERAGE: float = 15.0
    MAX_RECENT_LOSSES: int = 5
    MIN_PNL: float = -5000.0
    MIN_CONFIDENCE: float = 0.4

    def factors(self, inputs: GateInputs) -> List[str]:
        found: List[str] = []
        score = inputs.score
        stress = inputs.stress_level
        policy = inputs.policy

        if stress >= self.CRITICAL_STRESS:
            found.append(f"Critical stress level ({stress:.1f}/10)")
        if score >= policy.block_threshold:
            found.append(f"Risk score {score} at or above block threshold {policy.block_threshold}")

        facial = inputs.summary.facial
        if facial is not None and facial.present and facial.is_high_stress:
            found.append("Facial scan flagged high stress")

        raised = red_flags(inputs)
        if len(raised) >= self.RED_FLAG_LIMIT:
            found.append(f"Multiple red flags ({len(raised)}): {', '.join(raised)}")

        context = inputs.context
        if context is not None:
            if context.leverage is not None and context.leverage > self.MAX_LEVERAGE:
                found.append(f"Leverage {context.leverage:g}x exceeds {self.MAX_LEVERAGE:g}x")
            if context.recent_losses is not None and context.recent_losses >= self.MAX_RECENT_LOSSES:
                found.append(f"{context.recent_losses} recent losing trades")
            if context.current_pnl is not None and context.current_pnl < self.MIN_PNL:
                found.append(f"Session P&L {context.current_pnl:.0f} below {self.MIN_PNL:.0f}")

        if inputs.risk.confidence < self.MIN_CONFIDENCE:
            found.append(f"Assessment confidence too low ({inputs.risk.confidence:.2f})")
        return found

    def apply(self, inputs: GateInputs) -> Optional[GateDecision]:
        found = self.factors(inputs)
        if not found:
            return None

        score = inputs.score
        if score >= self.ESCALATION_SCORE or inputs.stress_level >= self.ESCALATION_STRESS:
            verdict = Verdict.SUPERVISOR_REVIEW
            cooldown = self.SUPERVISOR_COOLDOWN_SECONDS
            summary = "Blocked and escalated for supervisor review."
        else:
            verdict = Verdict.BLOCK
            cooldown = round_half_up(5 + 5 * (score / 100)) * 60
            summary = "Trade blocked."

        reasons = found + [c for c in concerns(inputs) if c not in found]
        return GateDecision(
            verdict=verdict,
            cooldown_seconds=max(cooldown, inputs.policy.cooldown_duration_seconds),
            reasons=reasons,
            primary_concerns=reasons[:MAX_PRIMARY_CONCERNS],
            confidence=inputs.risk.confidence,
            rule=self.name,
            reasoning=_reasoning(summary, inputs),
            signal_availability=inputs.signal_availability,
        )


class WarningRule:
    """Two concerns, or a score in the warning band, enforce a cooldown."""

    name = "warning_conditions"

    MIN_CONCERNS: int = 2

    def apply(self, inputs: GateInputs) -> Optional[GateDecision]:
        policy = inputs.policy
        found = concerns(inputs)
        if len(found) < self.MIN_CONCERNS and inputs.score < policy.warning_threshold:
            return None

        warning = policy.warning_threshold
        block = policy.block_threshold
        if block > warning:
            ratio = clamp((inputs.score - warning) / (block - warning), 0.0, 1.0)
        else:
            ratio = 1.0
        cooldown = round_half_up(1 + 4 * ratio) * 60

        return GateDecision(
            verdict=Verdict.COOLDOWN,
            cooldown_seconds=max(cooldown, policy.cooldown_duration_seconds),
            reasons=found,
            primary_concerns=found[:MAX_PRIMARY_CONCERNS],
            confidence=inputs.risk.confidence,
            rule=self.name,
            reasoning=_reasoning("Cooldown enforced before trading.", inputs),
            signal_availability=inputs.signal_availability,
        )


class AllowRule:
    name = "allow"

    def apply(self, inputs: GateInputs) -> Optional[GateDecision]:
        found = concerns(inputs)
        return GateDecision(
            verdict=Verdict.ALLOW,
            cooldown_seconds=0,
            reasons=found,
            primary_concerns=found[:MAX_PRIMARY_CONCERNS],
            confidence=inputs.risk.confidence,
            rule=self.name,
            reasoning=_reasoning("Cleared to trade.", inputs),
            signal_availability=inputs.signal_availability,
        )


def default_rules() -> List[GateRule]:
    return [InsufficientSignalsRule(), BlockingRule(), WarningRule(), AllowRule()]


# =============================================================================
# Gate
# =============================================================================

class DecisionGate:
    """
    First-match-wins rule cascade.

    Example:
        gate = DecisionGate()
        decision = gate.decide(GateInputs(risk=risk, summary=summary, stress=stress))
    """

    def __init__(self, rules: Optional[Sequence[GateRule]] = None) -> None:
        self.rules: List[GateRule] = list(rules) if rules is not None else default_rules()

    def decide(self, inputs: GateInputs) -> GateDecision:
        for rule in self.rules:
            decision = rule.apply(inputs)
            if decision is not None:
                return decision
        raise RuntimeError("Rule cascade produced no decision; the last rule must always match")
