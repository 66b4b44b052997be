"""
Language-model stress analysis.

Sends the normalized signal summary to a hosted chat-completion model and
parses a structured stress verdict. Callers treat any exception from
analyze() as "unavailable" and use the heuristic estimator instead.
"""

import json
import logging
import math
import os
from typing import Any, Dict, Optional

from openai import OpenAI

from riskgate.processors.signals import SignalSummary
from riskgate.schemas.inputs import ActionContext, UserBaseline
from riskgate.schemas.outputs import StressAnalysis, StressVerdict

logger = logging.getLogger(__name__)


DEFAULT_MODEL = "gpt-4o-mini"

SYSTEM_PROMPT = """You are a stress analyst for a trading platform. Analyze the
provided biometric, cognitive and contextual signals and estimate the
trader's current stress.

Consider pointer and keyboard stability, cognitive test performance,
self-reported stress, facial indicators, the order context and the
trader's personal baseline.

Respond with a JSON object containing:
- stressLevel: number from 0 (calm) to 10 (extreme stress)
- confidence: number from 0 to 1
- verdict: "go", "hold" or "block"
- indicators: array of the main stress signals detected
- reasoning: one or two sentences explaining the verdict

Be conservative: err on the side of trader safety."""


def build_signal_summary(
    summary: SignalSummary,
    context: Optional[ActionContext] = None,
    baseline: Optional[UserBaseline] = None
) -> Dict[str, Any]:
    """JSON-ready view of the sanitized signals sent to the model."""
    facial = summary.facial if summary.has_facial else None
    return {
        "cognitive": {
            "validTrials": len(summary.valid_trials),
            "meanReactionTimeMs": summary.mean_reaction_time,
            "accuracy": summary.accuracy,
            "reactionTimeVariance": summary.reaction_time_variance,
        } if summary.has_cognitive else None,
        "behavioral": {
            "mouseStability": summary.mouse_stability,
            "keystrokeRhythm": summary.keystroke_rhythm,
            "typingSpeed": summary.typing_speed,
            "clickLatencyMs": summary.click_latency_ms,
        } if summary.has_behavioral else None,
        "selfReport": summary.stress_level,
        "voice": summary.voice.model_dump() if summary.voice else None,
        "facial": {
            "blinkRate": facial.blink_rate,
            "browFurrow": facial.brow_furrow,
            "gazeStability": facial.gaze,
            "eyeAspectRatio": facial.eye_aspect_ratio,
            "jawOpenness": facial.jaw_openness,
        } if facial else None,
        "orderContext": {
            "orderSize": context.size,
            "leverage": context.leverage,
            "recentLosses": context.recent_losses,
            "currentPnL": context.current_pnl,
            "marketVolatility": context.market_volatility,
        } if context else None,
        "baseline": {
            "reactionTimeMs": baseline.reaction_time_ms,
            "accuracy": baseline.accuracy,
            "mouseStability": baseline.mouse_stability,
            "keystrokeRhythm": baseline.keystroke_rhythm,
        } if baseline else None,
    }


class LLMStressAnalyzer:
    """
    Chat-completion stress analyzer.

    Example:
        analyzer = LLMStressAnalyzer.from_env()
        if analyzer:
            analysis = analyzer.analyze(summary, context)
    """

    TEMPERATURE: float = 0.1
    MAX_TOKENS: int = 500
    # Runs inside the actor evaluation lock; worst case must stay under its timeout
    REQUEST_TIMEOUT: float = 3.0
    MAX_RETRIES: int = 1

    def __init__(self, client: OpenAI, model: str = DEFAULT_MODEL) -> None:
        self.client = client
        self.model = model

    @classmethod
    def from_env(cls) -> Optional["LLMStressAnalyzer"]:
        """Build from OPENAI_API_KEY / OPENAI_MODEL, or None when no key is set."""
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            logger.info("OPENAI_API_KEY not set - using heuristic stress analysis")
            return None
        model = os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
        logger.info(f"Language-model stress analysis enabled (model={model})")
        client = OpenAI(
            api_key=api_key,
            timeout=cls.REQUEST_TIMEOUT,
            max_retries=cls.MAX_RETRIES,
        )
        return cls(client, model=model)

    @classmethod
    def time_budget(cls) -> float:
        """Longest a single analyze call can block, retries included."""
        return cls.REQUEST_TIMEOUT * (cls.MAX_RETRIES + 1)

    def analyze(
        self,
        summary: SignalSummary,
        context: Optional[ActionContext] = None,
        baseline: Optional[UserBaseline] = None
    ) -> StressAnalysis:
        payload = build_signal_summary(summary, context, baseline)
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": f"Analyze this trader assessment data: {json.dumps(payload, indent=2)}",
                },
            ],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            response_format={"type": "json_object"},
            timeout=self.REQUEST_TIMEOUT,
        )
        content = response.choices[0].message.content
        return self.parse(json.loads(content))

    @staticmethod
    def parse(data: Dict[str, Any]) -> StressAnalysis:
        """Sanitize a model response into a StressAnalysis."""
        stress = _number(data.get("stressLevel"), 5.0)
        confidence = _number(data.get("confidence"), 0.5)

        try:
            verdict = StressVerdict(data.get("verdict"))
        except ValueError:
            verdict = StressVerdict.HOLD

        indicators = data.get("indicators")
        if not isinstance(indicators, list):
            indicators = []

        return StressAnalysis(
            stress_level=min(max(stress, 0.0), 10.0),
            confidence=min(max(confidence, 0.0), 1.0),
            verdict=verdict,
            indicators=[str(i) for i in indicators],
            reasoning=str(data.get("reasoning") or "Analysis completed"),
            source="language_model",
        )


def _number(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value):
        return default
    return float(value)
