"""Redis connection shared by the idempotency cache and health checks.

Redis is optional for Resolve: callers treat redis.RedisError as "cache
unavailable" and carry on.
"""

import os
from typing import Optional
from urllib.parse import urlparse

import redis

from resolve_api.config import env

CONNECT_TIMEOUT_SECONDS = 2
SOCKET_TIMEOUT_SECONDS = 2


class RedisClient:
    """Lazily created process-wide Redis connection pool."""

    _instance: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        """Return the shared client, creating it on first use.

        REDIS_PASSWORD is applied only when REDIS_URL carries no password.
        No connection is made until the first command.
        """
        if cls._instance is None:
            url = env.get_redis_url()
            options: dict = {
                "decode_responses": True,
                "socket_connect_timeout": CONNECT_TIMEOUT_SECONDS,
                "socket_timeout": SOCKET_TIMEOUT_SECONDS,
            }
            password = os.getenv("REDIS_PASSWORD")
            if password and not urlparse(url).password:
                options["password"] = password
            cls._instance = redis.from_url(url, **options)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None
