"""
RiskGate API

FastAPI application exposing:
- POST /assessments/evaluate → EvaluateResponse
- POST /assessments/{assessment_id}/rescore → EvaluateResponse
- POST /assessments/{assessment_id}/cooldown-completed
- POST /assessments/{assessment_id}/outcome
- POST /assessments/{assessment_id}/override
- POST /actors/{actor_id}/recalibrate → CalibrationResult

Evaluation is rate limited per actor via Redis.
"""

from contextlib import asynccontextmanager
import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from persistence.pattern_cache import RedisPatternCache
from riskgate.orchestrator import (
    ActorBusyError,
    AssessmentNotFoundError,
    OverrideNotAllowedError,
    RiskGateOrchestrator,
)
from riskgate.schemas.inputs import (
    EvaluatePayload,
    OverridePayload,
    RescorePayload,
    TradeOutcomePayload,
)
from riskgate.schemas.outputs import CalibrationResult, EvaluateResponse
from riskgate.services.llm_scoring import LLMStressAnalyzer


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


# =============================================================================
# Application State
# =============================================================================

class AppState:
    """Application state container."""
    orchestrator: Optional[RiskGateOrchestrator] = None


state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting RiskGate API...")
    if state.orchestrator is None:
        state.orchestrator = RiskGateOrchestrator(
            pattern_cache=RedisPatternCache(),
            llm=LLMStressAnalyzer.from_env(),
        )
    logger.info(f"RiskGate ready (environment: {os.getenv('RISKGATE_ENV', 'production')})")

    yield

    # Shutdown
    logger.info("Shutting down RiskGate API...")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="RiskGate",
    description="Pre-trade behavioral risk gate",
    version=API_VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _not_found(e: AssessmentNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _busy(e: ActorBusyError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": API_VERSION}


# =============================================================================
# Assessment Endpoints
# =============================================================================

@app.post("/assessments/evaluate", response_model=EvaluateResponse)
async def evaluate(payload: EvaluatePayload):
    """
    Score an attempted trade and render a verdict.

    - Short-circuits to cooldown while a previous cooldown is active
    - Returns status "pending" without a score when confidence is too low
    """
    # Rate limiting (10/sec for evaluate)
    if not state.orchestrator.cooldowns.check_eval_rate_limit(payload.actor_id):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded (max 10 evaluations/sec)"
        )

    try:
        result = state.orchestrator.evaluate(payload.actor_id, payload.signals, payload.context)
    except ActorBusyError as e:
        raise _busy(e)
    except Exception as e:
        logger.error(f"Evaluate error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error during evaluation"
        )
    return EvaluateResponse.from_result(result)


@app.post("/assessments/{assessment_id}/rescore", response_model=EvaluateResponse)
async def rescore(assessment_id: str, payload: RescorePayload):
    """Re-run an assessment with late-arriving facial metrics or stress rating."""
    try:
        result = state.orchestrator.rescore(
            assessment_id,
            facial_metrics=payload.facial,
            stress_level=payload.stress_level,
        )
    except AssessmentNotFoundError as e:
        raise _not_found(e)
    except ActorBusyError as e:
        raise _busy(e)
    except Exception as e:
        logger.error(f"Rescore error for {assessment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error during re-score"
        )
    return EvaluateResponse.from_result(result)


@app.post("/assessments/{assessment_id}/cooldown-completed")
async def cooldown_completed(assessment_id: str):
    """Mark a served cooldown; 409 while it is still running."""
    try:
        completed = state.orchestrator.record_cooldown_completion(assessment_id)
    except AssessmentNotFoundError as e:
        raise _not_found(e)
    except Exception as e:
        logger.error(f"Cooldown completion error for {assessment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error recording cooldown completion"
        )
    if not completed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cooldown has not fully elapsed"
        )
    return {"assessment_id": assessment_id, "cooldown_completed": True}


@app.post("/assessments/{assessment_id}/outcome")
async def trade_outcome(assessment_id: str, payload: TradeOutcomePayload):
    """Record whether the gated trade executed and how it went."""
    try:
        record = state.orchestrator.record_trade_outcome(
            assessment_id,
            executed=payload.executed,
            pnl=payload.pnl,
            duration_ms=payload.duration_ms,
        )
    except AssessmentNotFoundError as e:
        raise _not_found(e)
    except Exception as e:
        logger.error(f"Trade outcome error for {assessment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error recording trade outcome"
        )
    return {"assessment_id": record.id, "trade_executed": record.trade_executed}


@app.post("/assessments/{assessment_id}/override")
async def override(assessment_id: str, payload: OverridePayload):
    """Override a verdict with a justification, when policy allows it."""
    try:
        record = state.orchestrator.record_override(assessment_id, payload.reason)
    except AssessmentNotFoundError as e:
        raise _not_found(e)
    except OverrideNotAllowedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except Exception as e:
        logger.error(f"Override error for {assessment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error recording override"
        )
    return {"assessment_id": record.id, "overridden": record.overridden}


# =============================================================================
# Baseline Endpoints
# =============================================================================

@app.post("/actors/{actor_id}/recalibrate", response_model=CalibrationResult)
async def recalibrate(actor_id: str):
    """Run the adaptive baseline learner for one actor."""
    try:
        return state.orchestrator.recalibrate_baseline(actor_id)
    except Exception as e:
        logger.error(f"Recalibration error for {actor_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error during recalibration"
        )


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
