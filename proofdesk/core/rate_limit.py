"""Fixed-window rate limiting keyed by endpoint and client IP."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from threading import Lock
import time
from typing import Callable, Dict, Protocol, Tuple

from fastapi import HTTPException, Request, Response, status

from proofdesk.core.config import get_settings
from proofdesk.core.metrics import record_rate_limit_block
from proofdesk.storage.redis_client import get_client


@dataclass(frozen=True)
class RateLimitRule:
    max_requests: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int


RATE_LIMITS: Dict[str, RateLimitRule] = {
    "customer_submit": RateLimitRule(max_requests=10, window_seconds=60),
    "proof_view": RateLimitRule(max_requests=30, window_seconds=60),
    "admin_api": RateLimitRule(max_requests=60, window_seconds=60),
    "login": RateLimitRule(max_requests=5, window_seconds=15 * 60),
    "upload": RateLimitRule(max_requests=10, window_seconds=60),
    "search": RateLimitRule(max_requests=30, window_seconds=60),
}


class RateLimiter(Protocol):
    def check(self, *, key: str, rule: RateLimitRule) -> RateLimitDecision:
        """Count one hit for key and return the decision."""


def _window(rule: RateLimitRule) -> Tuple[int, int]:
    if rule.max_requests <= 0:
        raise ValueError("max_requests must be positive")
    if rule.window_seconds <= 0:
        raise ValueError("window_seconds must be positive")
    now = int(time.time())
    return now // rule.window_seconds, rule.window_seconds - (now % rule.window_seconds)


def _decision(rule: RateLimitRule, count: int, reset_seconds: int) -> RateLimitDecision:
    return RateLimitDecision(
        allowed=count <= rule.max_requests,
        limit=rule.max_requests,
        remaining=max(rule.max_requests - count, 0),
        reset_seconds=reset_seconds,
    )


class InMemoryRateLimiter:
    """Single-process counter; not shared between workers or instances."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._store: Dict[Tuple[str, int, int], int] = {}

    def check(self, *, key: str, rule: RateLimitRule) -> RateLimitDecision:
        window_id, reset_seconds = _window(rule)
        store_key = (key, rule.window_seconds, window_id)

        with self._lock:
            # Keep current and previous windows only, for every key.
            stale_keys = [
                item
                for item in self._store
                if item[1] == rule.window_seconds and item[2] < window_id - 1
            ]
            for stale in stale_keys:
                self._store.pop(stale, None)

            count = int(self._store.get(store_key, 0)) + 1
            self._store[store_key] = count

        return _decision(rule, count, reset_seconds)


class RedisRateLimiter:
    def __init__(self) -> None:
        self._redis = get_client()

    def check(self, *, key: str, rule: RateLimitRule) -> RateLimitDecision:
        window_id, reset_seconds = _window(rule)
        redis_key = f"proofdesk:ratelimit:{key}:{rule.window_seconds}:{window_id}"

        try:
            count = int(self._redis.incr(redis_key))
            if count == 1:
                self._redis.expire(redis_key, rule.window_seconds + 1)
        except Exception:
            return RateLimitDecision(
                allowed=True,
                limit=rule.max_requests,
                remaining=rule.max_requests,
                reset_seconds=reset_seconds,
            )

        return _decision(rule, count, reset_seconds)


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    if settings.rate_limit_backend.strip().lower() == "redis":
        return RedisRateLimiter()
    return InMemoryRateLimiter()


def resolve_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def apply_rate_limit_headers(response: Response, decision: RateLimitDecision) -> None:
    response.headers["x-rate-limit-limit"] = str(decision.limit)
    response.headers["x-rate-limit-remaining"] = str(decision.remaining)
    response.headers["x-rate-limit-reset"] = str(decision.reset_seconds)


def rate_limit(endpoint: str, rule_name: str) -> Callable[[Request, Response], None]:
    """Build a dependency that limits one endpoint per client IP."""

    rule = RATE_LIMITS[rule_name]

    def dependency(request: Request, response: Response) -> None:
        decision = get_rate_limiter().check(key=f"{endpoint}:{resolve_client_ip(request)}", rule=rule)
        if not decision.allowed:
            record_rate_limit_block(kind=endpoint)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later.",
                headers={
                    "Retry-After": str(decision.reset_seconds),
                    "x-rate-limit-limit": str(decision.limit),
                    "x-rate-limit-remaining": "0",
                    "x-rate-limit-reset": str(decision.reset_seconds),
                },
            )
        apply_rate_limit_headers(response, decision)

    return dependency
