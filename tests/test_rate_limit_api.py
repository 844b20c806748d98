from types import SimpleNamespace

from fastapi.testclient import TestClient
import pytest

import proofdesk.api.main as api_main
from proofdesk.core import rate_limit as rate_limit_module
from proofdesk.core.metrics import reset_metrics_for_tests
from proofdesk.core.rate_limit import (
    RATE_LIMITS,
    InMemoryRateLimiter,
    RateLimitDecision,
    RateLimitRule,
    resolve_client_ip,
)


class _StaticLimiter:
    def __init__(self, decision: RateLimitDecision) -> None:
        self._decision = decision
        self.keys = []

    def check(self, *, key: str, rule: RateLimitRule) -> RateLimitDecision:  # noqa: ARG002
        self.keys.append(key)
        return self._decision


def test_rate_limit_blocks_request_and_sets_headers(monkeypatch) -> None:
    reset_metrics_for_tests()
    monkeypatch.setattr(api_main.settings, "env", "production")
    monkeypatch.setattr(api_main.settings, "ip_rate_limit_enabled", True)
    limiter = _StaticLimiter(RateLimitDecision(allowed=False, limit=10, remaining=0, reset_seconds=30))
    monkeypatch.setattr(api_main, "get_rate_limiter", lambda: limiter)

    client = TestClient(api_main.app)
    response = client.get("/version", headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"})

    assert response.status_code == 429
    assert response.json()["detail"] == "Rate limit exceeded"
    assert response.headers["retry-after"] == "30"
    assert response.headers["x-rate-limit-limit"] == "10"
    assert response.headers["x-rate-limit-remaining"] == "0"
    assert limiter.keys == ["ip:203.0.113.7"]


def test_rate_limit_allows_request_and_sets_headers(monkeypatch) -> None:
    monkeypatch.setattr(api_main.settings, "env", "production")
    monkeypatch.setattr(api_main.settings, "ip_rate_limit_enabled", True)
    monkeypatch.setattr(
        api_main,
        "get_rate_limiter",
        lambda: _StaticLimiter(RateLimitDecision(allowed=True, limit=10, remaining=9, reset_seconds=60)),
    )

    response = TestClient(api_main.app).get("/version")

    assert response.status_code == 200
    assert response.headers["x-rate-limit-limit"] == "10"
    assert response.headers["x-rate-limit-remaining"] == "9"
    assert response.headers["x-rate-limit-reset"] == "60"


def test_global_ip_limit_is_skipped_outside_production(monkeypatch) -> None:
    monkeypatch.setattr(api_main.settings, "env", "development")
    monkeypatch.setattr(api_main.settings, "ip_rate_limit_enabled", True)
    limiter = _StaticLimiter(RateLimitDecision(allowed=False, limit=1, remaining=0, reset_seconds=5))
    monkeypatch.setattr(api_main, "get_rate_limiter", lambda: limiter)

    response = TestClient(api_main.app).get("/version")

    assert response.status_code == 200
    assert limiter.keys == []


def test_in_memory_limiter_counts_per_key() -> None:
    limiter = InMemoryRateLimiter()
    rule = RateLimitRule(max_requests=2, window_seconds=60)

    first = limiter.check(key="login:1.1.1.1", rule=rule)
    second = limiter.check(key="login:1.1.1.1", rule=rule)
    third = limiter.check(key="login:1.1.1.1", rule=rule)
    other = limiter.check(key="login:2.2.2.2", rule=rule)

    assert first.allowed is True and first.remaining == 1
    assert second.allowed is True and second.remaining == 0
    assert third.allowed is False
    assert other.allowed is True


def test_in_memory_limiter_rejects_invalid_rule() -> None:
    with pytest.raises(ValueError):
        InMemoryRateLimiter().check(key="x", rule=RateLimitRule(max_requests=0, window_seconds=60))


def test_named_rules_match_endpoint_budgets() -> None:
    assert RATE_LIMITS["login"] == RateLimitRule(max_requests=5, window_seconds=900)
    assert RATE_LIMITS["customer_submit"].max_requests == 10
    assert RATE_LIMITS["proof_view"].max_requests == 30


def test_resolve_client_ip_prefers_forwarded_headers() -> None:
    request = SimpleNamespace(headers={"x-real-ip": " 198.51.100.4 "}, client=SimpleNamespace(host="127.0.0.1"))
    assert resolve_client_ip(request) == "198.51.100.4"

    bare = SimpleNamespace(headers={}, client=None)
    assert resolve_client_ip(bare) == "unknown"


def test_redis_limiter_fails_open(monkeypatch) -> None:
    class _BrokenRedis:
        def incr(self, key):  # noqa: ARG002
            raise ConnectionError("redis down")

    monkeypatch.setattr(rate_limit_module, "get_client", lambda: _BrokenRedis())
    limiter = rate_limit_module.RedisRateLimiter()

    decision = limiter.check(key="ip:1.1.1.1", rule=RateLimitRule(max_requests=3, window_seconds=60))

    assert decision.allowed is True
    assert decision.remaining == 3


def test_in_memory_limiter_evicts_idle_clients(monkeypatch) -> None:
    clock = {"now": 1_000_000.0}
    monkeypatch.setattr(rate_limit_module, "time", SimpleNamespace(time=lambda: clock["now"]))
    limiter = InMemoryRateLimiter()
    rule = RATE_LIMITS["customer_submit"]

    for index in range(1000):
        limiter.check(key=f"submit:10.0.{index // 256}.{index % 256}", rule=rule)
    assert len(limiter._store) == 1000

    clock["now"] += 3600
    decision = limiter.check(key="submit:192.0.2.1", rule=rule)

    assert decision.allowed is True
    assert len(limiter._store) == 1
