"""
RiskGate Cooldown Repository

Redis-backed cooldown enforcement with per-actor serialization.

Key Schemas:
    COOLDOWN:{actor_id}          -> Active cooldown record JSON (TTL = duration)
    ACTOR_LOCK:{actor_id}        -> Evaluation lock (check-then-score)
    EVAL_RATE:{actor_id}:{second} -> Rate limit counter
"""

from __future__ import annotations

import json
import logging
import math
import time
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterator, Optional

import redis
from redis.exceptions import LockError, RedisError, WatchError

from .connection import get_redis_client


logger = logging.getLogger(__name__)


class ActorBusyError(Exception):
    """Another evaluation for this actor holds the evaluation lock."""
    pass


# =============================================================================
# Data Models
# =============================================================================

@dataclass
class CooldownRecord:
    """Unfinished cooldown attached to an actor's most recent blocking verdict."""
    assessment_id: str
    started_at: float
    duration_seconds: int
    verdict: str
    risk_score: Optional[int] = None
    confidence: float = 0.0

    @property
    def ends_at(self) -> float:
        return self.started_at + self.duration_seconds

    def remaining_seconds(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        return max(0, math.ceil(self.ends_at - now))

    def is_active(self, now: Optional[float] = None) -> bool:
        return self.remaining_seconds(now) > 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CooldownRecord:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


# =============================================================================
# Repository
# =============================================================================

class CooldownRepository:
    """
    Redis cooldown store.

    Implements:
    - Per-actor evaluation lock so check-then-score never races
    - Cooldown records that expire with the cooldown itself
    - Completion via WATCH/MULTI/EXEC (only the owning assessment, only once elapsed)
    - Evaluation rate limiting via Redis counters
    """

    LOCK_TIMEOUT: int = 10          # seconds a crashed holder can block an actor
    LOCK_BLOCKING_TIMEOUT: int = 5  # seconds to wait before reporting busy
    MAX_RETRIES: int = 5
    EVAL_RATE_LIMIT: int = 10       # per second

    def __init__(self, client: Optional[redis.Redis] = None) -> None:
        self.client = client if client is not None else get_redis_client()

    # -------------------------------------------------------------------------
    # Key Builders
    # -------------------------------------------------------------------------

    def _cooldown_key(self, actor_id: str) -> str:
        return f"COOLDOWN:{actor_id}"

    def _lock_key(self, actor_id: str) -> str:
        return f"ACTOR_LOCK:{actor_id}"

    def _rate_key(self, actor_id: str) -> str:
        return f"EVAL_RATE:{actor_id}:{int(time.time())}"

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    @contextmanager
    def actor_lock(self, actor_id: str) -> Iterator[None]:
        """
        Hold the actor's evaluation lock for the duration of the block.

        Raises:
            ActorBusyError: lock not acquired within LOCK_BLOCKING_TIMEOUT
                or Redis unavailable (fails closed).
        """
        lock = self.client.lock(
            self._lock_key(actor_id),
            timeout=self.LOCK_TIMEOUT,
            blocking_timeout=self.LOCK_BLOCKING_TIMEOUT,
        )
        try:
            acquired = lock.acquire()
        except RedisError as e:
            logger.error(f"Failed to acquire evaluation lock for {actor_id}: {e}")
            raise ActorBusyError(f"Evaluation lock unavailable for {actor_id}") from e

        if not acquired:
            logger.warning(f"Evaluation lock contention for {actor_id}")
            raise ActorBusyError(f"Another evaluation is in progress for {actor_id}")

        try:
            yield
        finally:
            try:
                lock.release()
            except LockError as e:
                # Expired mid-evaluation; the next holder already owns it
                logger.warning(f"Evaluation lock for {actor_id} expired before release: {e}")
            except RedisError as e:
                logger.error(f"Failed to release evaluation lock for {actor_id}: {e}")

    # -------------------------------------------------------------------------
    # Cooldown Operations
    # -------------------------------------------------------------------------

    def get_active_cooldown(
        self,
        actor_id: str,
        now: Optional[float] = None
    ) -> Optional[CooldownRecord]:
        """Active cooldown for the actor, or None if none/elapsed."""
        try:
            data = self.client.get(self._cooldown_key(actor_id))
            if data is None:
                return None
            record = CooldownRecord.from_dict(json.loads(data))
        except (RedisError, json.JSONDecodeError) as e:
            logger.error(f"Failed to get cooldown for {actor_id}: {e}")
            return None

        return record if record.is_active(now) else None

    def start_cooldown(self, actor_id: str, record: CooldownRecord) -> bool:
        """Store the record with a TTL equal to its remaining duration."""
        ttl = record.remaining_seconds()
        if ttl <= 0:
            return False
        try:
            self.client.setex(self._cooldown_key(actor_id), ttl, json.dumps(record.to_dict()))
            logger.info(
                f"Cooldown started for {actor_id}: {record.duration_seconds}s "
                f"({record.verdict}, assessment {record.assessment_id})"
            )
            return True
        except RedisError as e:
            logger.error(f"Failed to start cooldown for {actor_id}: {e}")
            return False

    def complete_cooldown(
        self,
        actor_id: str,
        assessment_id: str,
        now: Optional[float] = None
    ) -> bool:
        """
        Clear the actor's cooldown if it belongs to assessment_id and has elapsed.

        A record that already expired counts as completed.
        """
        key = self._cooldown_key(actor_id)

        for attempt in range(self.MAX_RETRIES):
            try:
                pipe = self.client.pipeline(True)
                pipe.watch(key)

                raw = self.client.get(key)
                if raw is None:
                    pipe.reset()
                    return True

                record = CooldownRecord.from_dict(json.loads(raw))
                if record.assessment_id != assessment_id or record.is_active(now):
                    pipe.reset()
                    return False

                pipe.multi()
                pipe.delete(key)
                pipe.execute()
                return True

            except WatchError:
                logger.debug(f"Watch conflict on cooldown completion, attempt {attempt + 1}")
                continue
            except (RedisError, json.JSONDecodeError) as e:
                logger.error(f"Failed to complete cooldown for {actor_id}: {e}")
                return False

        logger.warning(f"Max retries exceeded for cooldown completion {actor_id}")
        return False

    # -------------------------------------------------------------------------
    # Rate Limiting
    # -------------------------------------------------------------------------

    def check_eval_rate_limit(self, actor_id: str) -> bool:
        """Check rate limit for the evaluate endpoint (10/sec)."""
        key = self._rate_key(actor_id)
        try:
            count = self.client.incr(key)
            if count == 1:
                self.client.expire(key, 2)
            return count <= self.EVAL_RATE_LIMIT
        except RedisError as e:
            logger.warning(f"Rate limit check failed: {e}")
            return True  # Fail open
