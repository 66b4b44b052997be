"""
RiskGate Baseline Store

Supabase-based persistence for per-actor baselines.
Uses the user_baselines table.

Baselines are rewritten only by calibration or by the adaptive baseline
learner; learning_lock() keeps two learner runs for one actor from
overlapping inside this process.
"""

from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Iterator, Optional

from pydantic import ValidationError
from supabase import Client

from riskgate.schemas.inputs import UserBaseline

from .connection import get_supabase_client


logger = logging.getLogger(__name__)


class BaselineStore:
    """Read/write access to user_baselines keyed by actor_id."""

    TABLE_NAME = "user_baselines"

    # Per-actor locks to serialize learner runs; an entry lives only while a run holds it
    _learn_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
    _lock_guard = threading.Lock()  # Protects _learn_locks dict itself

    def __init__(self, client: Optional[Client] = None) -> None:
        self.client = client if client is not None else get_supabase_client()

    def get(self, actor_id: str) -> Optional[UserBaseline]:
        if self.client is None:
            return None
        try:
            response = self.client.table(self.TABLE_NAME).select("*").eq(
                "actor_id", actor_id
            ).execute()
            if not response.data:
                logger.debug(f"No baseline for actor {actor_id}")
                return None
            return UserBaseline.model_validate(response.data[0])
        except ValidationError as e:
            logger.error(f"Malformed baseline row for {actor_id}: {e}")
            return None
        except Exception as e:
            logger.error(f"Failed to load baseline for {actor_id}: {e}")
            return None

    def save(self, baseline: UserBaseline) -> bool:
        if self.client is None:
            return False
        try:
            record = baseline.model_dump(mode="json")
            record["updated_at"] = "now()"
            self.client.table(self.TABLE_NAME).upsert(
                record,
                on_conflict="actor_id"
            ).execute()
            logger.info(
                f"Saved baseline for {baseline.actor_id} "
                f"(calibration #{baseline.calibration_count})"
            )
            return True
        except Exception as e:
            logger.error(f"Failed to save baseline for {baseline.actor_id}: {e}")
            return False

    def _get_learn_lock(self, actor_id: str) -> threading.Lock:
        with self._lock_guard:
            lock = self._learn_locks.get(actor_id)
            if lock is None:
                lock = threading.Lock()
                self._learn_locks[actor_id] = lock
            return lock

    @contextmanager
    def learning_lock(self, actor_id: str) -> Iterator[bool]:
        """
        Non-blocking per-actor lock.

        Yields True when acquired. Yields False when another run already
        holds it; the caller should skip rather than queue.
        """
        lock = self._get_learn_lock(actor_id)
        acquired = lock.acquire(blocking=False)
        if not acquired:
            logger.warning(f"Skipping baseline learning for {actor_id}: another run holds the lock")
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()
