"""Idempotency-Key response cache for payment creation (Redis).

Key format: idem:{scope}:{user or anon}:{sha256(idempotency key)[:32]}
TTL: 24 hours, matching Stripe's own idempotency window.

A Redis outage degrades to "no cache": the request still reaches Stripe with
the same idempotency key, so Stripe returns the original object.
"""

import hashlib
import json
import logging
from typing import Any, Optional

import redis

from resolve_api.db.redis_client import RedisClient

logger = logging.getLogger(__name__)

IDEMPOTENCY_TTL_SECONDS = 24 * 60 * 60


def build_cache_key(scope: str, idempotency_key: str, user_id: Optional[str] = None) -> str:
    digest = hashlib.sha256(idempotency_key.encode("utf-8")).hexdigest()[:32]
    return f"idem:{scope}:{user_id or 'anon'}:{digest}"


def get_cached_response(cache_key: str) -> Optional[dict[str, Any]]:
    """Return the stored response body, or None if absent or Redis is unavailable."""
    try:
        raw = RedisClient.get_client().get(cache_key)
    except redis.RedisError as e:
        logger.warning(
            "idempotency.cache.unavailable",
            extra={"event": "idempotency.cache.unavailable", "error_type": type(e).__name__},
        )
        return None

    if raw is None:
        return None

    try:
        cached = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(
            "idempotency.cache.corrupt",
            extra={"event": "idempotency.cache.corrupt", "cache_key": cache_key},
        )
        return None

    logger.info(
        "idempotency.cache.hit",
        extra={"event": "idempotency.cache.hit", "cache_key": cache_key},
    )
    return cached


def store_response(cache_key: str, body: dict[str, Any]) -> None:
    """Cache a successful response body for replay (best effort)."""
    try:
        RedisClient.get_client().set(cache_key, json.dumps(body), ex=IDEMPOTENCY_TTL_SECONDS)
    except redis.RedisError as e:
        logger.warning(
            "idempotency.cache.store_failed",
            extra={"event": "idempotency.cache.store_failed", "error_type": type(e).__name__},
        )
