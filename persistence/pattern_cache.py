"""
RiskGate Pattern Cache

Redis-backed cache for per-actor pattern libraries. Same get/set interface
as riskgate.cache.TTLStore so the pattern matcher can use either.

Key Schema:
    PATTERNS:{actor_id} -> PatternLibrary JSON (TTL)
"""

import logging
from typing import Optional

import redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from riskgate.schemas.records import PatternLibrary

from .connection import get_redis_client


logger = logging.getLogger(__name__)


class RedisPatternCache:
    """Pattern libraries shared across API workers, expiring after ttl_seconds."""

    DEFAULT_TTL: int = 300

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        ttl_seconds: int = DEFAULT_TTL
    ) -> None:
        self.client = client if client is not None else get_redis_client()
        self.ttl_seconds = ttl_seconds

    def _key(self, actor_id: str) -> str:
        return f"PATTERNS:{actor_id}"

    def get(self, actor_id: str) -> Optional[PatternLibrary]:
        try:
            data = self.client.get(self._key(actor_id))
            if data is None:
                return None
            return PatternLibrary.model_validate_json(data)
        except (RedisError, ValidationError) as e:
            logger.error(f"Failed to read pattern cache for {actor_id}: {e}")
            return None

    def set(self, actor_id: str, library: PatternLibrary) -> None:
        try:
            self.client.setex(self._key(actor_id), self.ttl_seconds, library.model_dump_json())
        except RedisError as e:
            logger.warning(f"Failed to write pattern cache for {actor_id}: {e}")

    def delete(self, actor_id: str) -> None:
        try:
            self.client.delete(self._key(actor_id))
        except RedisError as e:
            logger.warning(f"Failed to invalidate pattern cache for {actor_id}: {e}")
