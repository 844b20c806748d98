"""Redis connection used by the shared rate limiter."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional, Tuple

from redis import Redis

from proofdesk.core.config import get_settings


@lru_cache(maxsize=1)
def get_client() -> Redis:
    settings = get_settings()
    return Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )


def test_connection() -> Tuple[bool, Optional[str]]:
    """Ping Redis; only meaningful when RATE_LIMIT_BACKEND=redis."""

    try:
        get_client().ping()
        return True, None
    except Exception as exc:
        return False, str(exc)
