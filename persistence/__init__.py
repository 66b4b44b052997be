"""
RiskGate Persistence Layer

Public exports for Redis and Supabase collaborators.
"""

from .connection import get_redis_client, get_supabase_client
from .cooldown_repository import ActorBusyError, CooldownRecord, CooldownRepository
from .pattern_cache import RedisPatternCache
from .assessment_store import AssessmentStore
from .baseline_store import BaselineStore
from .policy_store import PolicyStore
from .audit_logger import AuditLogger

__all__ = [
    "get_redis_client",
    "get_supabase_client",
    "ActorBusyError",
    "CooldownRecord",
    "CooldownRepository",
    "RedisPatternCache",
    "AssessmentStore",
    "BaselineStore",
    "PolicyStore",
    "AuditLogger",
]
