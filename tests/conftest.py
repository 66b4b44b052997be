"""
RiskGate Test Suite - Shared Pytest Fixtures

This conftest.py provides fixtures for all test categories including:
- Redis connection and cleanup for persistence tests
- In-memory stand-ins for the Redis and Supabase collaborators
- Engine, gate and processor instances

Usage:
    pytest tests/ -v -s
"""

import os
from contextlib import contextmanager
from typing import Dict, List, Optional

import pytest

from persistence.cooldown_repository import ActorBusyError, CooldownRecord
from riskgate.schemas.inputs import Policy, UserBaseline
from riskgate.schemas.records import AssessmentRecord


# =============================================================================
# Redis Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def redis_client():
    """
    Session-scoped Redis client for persistence tests.

    Requires a local Redis; tests are skipped when it is not reachable.
    """
    import redis

    host = os.environ.get("REDIS_HOST", "localhost")
    port = int(os.environ.get("REDIS_PORT", "6379"))
    password = os.environ.get("REDIS_PASSWORD")

    client = redis.Redis(
        host=host,
        port=port,
        password=password,
        decode_responses=True,
    )
    try:
        client.ping()
    except redis.RedisError:
        pytest.skip(f"Redis not available at {host}:{port}")
    yield client
    client.close()


@pytest.fixture
def clean_redis(redis_client):
    """
    Function-scoped fixture that provides a clean Redis state.
    Flushes the database after each test for isolation.
    """
    yield redis_client
    redis_client.flushdb()


# =============================================================================
# In-Memory Collaborators
# =============================================================================

class InMemoryCooldowns:
    """Dict-backed CooldownRepository."""

    def __init__(self) -> None:
        self.records: Dict[str, CooldownRecord] = {}
        self.busy_actors: set = set()
        self.rate_limited = False

    @contextmanager
    def actor_lock(self, actor_id: str):
        if actor_id in self.busy_actors:
            raise ActorBusyError(f"Another evaluation is in progress for {actor_id}")
        self.busy_actors.add(actor_id)
        try:
            yield
        finally:
            self.busy_actors.discard(actor_id)

    def get_active_cooldown(self, actor_id: str, now: Optional[float] = None) -> Optional[CooldownRecord]:
        record = self.records.get(actor_id)
        if record is None or not record.is_active(now):
            return None
        return record

    def start_cooldown(self, actor_id: str, record: CooldownRecord) -> bool:
        self.records[actor_id] = record
        return True

    def complete_cooldown(self, actor_id: str, assessment_id: str, now: Optional[float] = None) -> bool:
        record = self.records.get(actor_id)
        if record is None:
            return True
        if record.assessment_id != assessment_id or record.is_active(now):
            return False
        del self.records[actor_id]
        return True

    def check_eval_rate_limit(self, actor_id: str) -> bool:
        return not self.rate_limited


class InMemoryAssessments:
    """Dict-backed AssessmentStore; also the history reader."""

    def __init__(self, records: Optional[List[AssessmentRecord]] = None) -> None:
        self.records: Dict[str, AssessmentRecord] = {r.id: r for r in records or []}
        self.fail_history = False

    def create(self, record: AssessmentRecord) -> bool:
        self.records[record.id] = record
        return True

    def get(self, assessment_id: str) -> Optional[AssessmentRecord]:
        return self.records.get(assessment_id)

    def update(self, record: AssessmentRecord) -> bool:
        if record.id not in self.records:
            return False
        self.records[record.id] = record
        return True

    def fetch_history(self, actor_id: str, limit: int) -> List[AssessmentRecord]:
        if self.fail_history:
            raise ConnectionError("history unavailable")
        history = [r for r in self.records.values() if r.actor_id == actor_id]
        history.sort(key=lambda r: r.created_at, reverse=True)
        return history[:limit]


class InMemoryBaselines:
    """Dict-backed BaselineStore with a real non-blocking learning lock."""

    def __init__(self) -> None:
        self.baselines: Dict[str, UserBaseline] = {}
        self.saved: List[UserBaseline] = []
        self.held: set = set()

    def get(self, actor_id: str) -> Optional[UserBaseline]:
        return self.baselines.get(actor_id)

    def save(self, baseline: UserBaseline) -> bool:
        self.baselines[baseline.actor_id] = baseline
        self.saved.append(baseline)
        return True

    @contextmanager
    def learning_lock(self, actor_id: str):
        if actor_id in self.held:
            yield False
            return
        self.held.add(actor_id)
        try:
            yield True
        finally:
            self.held.discard(actor_id)


class StaticPolicies:
    def __init__(self, policy: Optional[Policy] = None) -> None:
        self.policy = policy or Policy()

    def get_active(self) -> Policy:
        return self.policy


class RecordingAudit:
    def __init__(self) -> None:
        self.events: List[Dict] = []

    def log_event(self, action, actor_id, **kwargs) -> str:
        self.events.append({"action": action, "actor_id": actor_id, **kwargs})
        return f"evt_{len(self.events)}"

    def actions(self) -> List[str]:
        return [e["action"] for e in self.events]


@pytest.fixture
def cooldowns():
    return InMemoryCooldowns()


@pytest.fixture
def assessments():
    return InMemoryAssessments()


@pytest.fixture
def baselines():
    return InMemoryBaselines()


@pytest.fixture
def policies():
    return StaticPolicies()


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest.fixture
def clock():
    """Mutable fake wall clock: clock.now is returned, clock.advance(s) moves it."""
    class FakeClock:
        def __init__(self) -> None:
            self.now = 1_700_000_000.0

        def __call__(self) -> float:
            return self.now

        def advance(self, seconds: float) -> None:
            self.now += seconds

    return FakeClock()


@pytest.fixture
def orchestrator(cooldowns, assessments, baselines, policies, audit, clock):
    """Orchestrator wired to in-memory collaborators."""
    from riskgate.cache import TTLStore
    from riskgate.orchestrator import RiskGateOrchestrator

    return RiskGateOrchestrator(
        cooldowns=cooldowns,
        assessments=assessments,
        baselines=baselines,
        policies=policies,
        audit=audit,
        pattern_cache=TTLStore(),
        clock=clock,
    )


# =============================================================================
# Processor & Engine Fixtures
# =============================================================================

@pytest.fixture
def processor():
    from riskgate.processors.signals import SignalProcessor
    return SignalProcessor()


@pytest.fixture
def composer():
    from riskgate.models.composer import RiskComposer
    return RiskComposer()


@pytest.fixture
def gate():
    from riskgate.models.gate import DecisionGate
    return DecisionGate()


@pytest.fixture
def engine():
    from riskgate.engine import RiskEngine
    return RiskEngine()
