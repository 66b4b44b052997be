"""
Shared clients for the hot store (Redis) and the durable store (Supabase).

Both are created lazily and cached for the life of the process.
"""

import os
import logging
from functools import lru_cache
from typing import Optional

import redis
from redis.exceptions import RedisError, AuthenticationError
from supabase import create_client, Client

logger = logging.getLogger(__name__)

REDIS_SOCKET_TIMEOUT = 5.0


def _redis_settings() -> dict:
    password = os.getenv("REDIS_PASSWORD")
    if not password:
        logger.critical("REDIS_PASSWORD environment variable is not set.")
        raise ValueError("REDIS_PASSWORD is required to connect to Redis.")

    return {
        "host": os.getenv("REDIS_HOST", "localhost"),
        "port": int(os.getenv("REDIS_PORT", 6379)),
        "db": int(os.getenv("REDIS_DB", 0)),
        "password": password,
        "max_connections": int(os.getenv("REDIS_MAX_CONNECTIONS", 50)),
    }


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """
    Pooled Redis client holding cooldown records, per-actor evaluation
    locks, rate counters and cached pattern libraries.

    Environment:
    - REDIS_HOST / REDIS_PORT / REDIS_DB (localhost, 6379, 0)
    - REDIS_PASSWORD (required)
    - REDIS_MAX_CONNECTIONS (50)
    """
    settings = _redis_settings()
    pool = redis.ConnectionPool(
        decode_responses=True,
        socket_timeout=REDIS_SOCKET_TIMEOUT,
        **settings,
    )
    client = redis.Redis(connection_pool=pool)

    try:
        client.ping()
    except AuthenticationError:
        logger.critical("Redis rejected credentials, check REDIS_PASSWORD")
        raise
    except RedisError as e:
        logger.critical(f"Redis unreachable at {settings['host']}:{settings['port']}: {e}")
        raise

    logger.info(
        f"Redis pool ready at {settings['host']}:{settings['port']}/{settings['db']} "
        f"(max {settings['max_connections']} connections)"
    )
    return client


@lru_cache(maxsize=1)
def get_supabase_client() -> Optional[Client]:
    """Supabase client, or None when SUPABASE_URL / SUPABASE_KEY are unset."""
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_KEY")

    if not url or not key:
        logger.warning("Supabase credentials not configured, durable storage disabled")
        return None

    client = create_client(url, key)
    logger.info("Supabase client initialized")
    return client
