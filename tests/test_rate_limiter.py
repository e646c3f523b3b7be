import asyncio

import pytest
import redis
from fastapi import HTTPException
from starlette.requests import Request

from learnpath.utils.rate_limiter import RateLimiter


def _request(host="10.0.0.1"):
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/api/progress/courses",
        "headers": [],
        "client": (host, 52000),
    })


class FakePipeline:
    def __init__(self, store):
        self.store = store
        self.ops = []

    def incr(self, key):
        self.ops.append(("incr", key))

    def expire(self, key, seconds):
        self.ops.append(("expire", key))

    def execute(self):
        results = []
        for op, key in self.ops:
            if op == "incr":
                self.store[key] = self.store.get(key, 0) + 1
                results.append(self.store[key])
            else:
                results.append(True)
        return results


class FakeRedis:
    def __init__(self):
        self.store = {}

    def ping(self):
        return True

    def pipeline(self):
        return FakePipeline(self.store)


class BrokenRedis:
    def pipeline(self):
        raise redis.ConnectionError("connection reset")


def test_memory_limit_per_minute():
    limiter = RateLimiter(requests_per_minute=2, requests_per_hour=100)

    asyncio.run(limiter.check_rate_limit(_request()))
    asyncio.run(limiter.check_rate_limit(_request()))
    with pytest.raises(HTTPException) as exc:
        asyncio.run(limiter.check_rate_limit(_request()))

    assert exc.value.status_code == 429
    assert exc.value.detail["retry_after"] == 60


def test_limits_are_per_client():
    limiter = RateLimiter(requests_per_minute=1, requests_per_hour=100)

    asyncio.run(limiter.check_rate_limit(_request("10.0.0.1")))
    asyncio.run(limiter.check_rate_limit(_request("10.0.0.2")))


def test_redis_counters():
    limiter = RateLimiter(requests_per_minute=5, requests_per_hour=2)
    limiter.redis_client = FakeRedis()

    asyncio.run(limiter.check_rate_limit(_request()))
    asyncio.run(limiter.check_rate_limit(_request()))
    with pytest.raises(HTTPException) as exc:
        asyncio.run(limiter.check_rate_limit(_request()))

    assert exc.value.detail["retry_after"] == 3600
    assert any(key.startswith("ratelimit:minute:10.0.0.1:") for key in limiter.redis_client.store)
    assert not limiter.trackers["minute"]


def test_redis_failure_falls_back_to_memory():
    limiter = RateLimiter(requests_per_minute=5, requests_per_hour=100)
    limiter.redis_client = BrokenRedis()

    asyncio.run(limiter.check_rate_limit(_request()))

    assert limiter.redis_client is None
    assert limiter.trackers["minute"]["10.0.0.1"]


def test_unreachable_redis_disables_backend():
    limiter = RateLimiter(redis_url="redis://127.0.0.1:1/0")

    assert limiter.redis_client is None


def test_redis_reconnects_after_failure(monkeypatch):
    healthy = FakeRedis()
    monkeypatch.setattr(redis, "from_url", lambda url, **kwargs: healthy)
    limiter = RateLimiter(requests_per_minute=5, requests_per_hour=100, redis_retry_seconds=0)
    limiter.redis_url = "redis://cache:6379/0"
    limiter.redis_client = BrokenRedis()

    asyncio.run(limiter.check_rate_limit(_request()))
    asyncio.run(limiter.check_rate_limit(_request()))

    assert limiter.redis_client is healthy
    assert len(limiter.trackers["minute"]["10.0.0.1"]) == 1
    assert any(key.startswith("ratelimit:minute:10.0.0.1:") for key in healthy.store)


def test_no_reconnect_during_cooldown(monkeypatch):
    attempts = []
    monkeypatch.setattr(redis, "from_url", lambda url, **kwargs: attempts.append(url) or FakeRedis())
    limiter = RateLimiter(requests_per_minute=5, requests_per_hour=100, redis_retry_seconds=3600)
    limiter.redis_url = "redis://cache:6379/0"
    limiter.redis_client = BrokenRedis()

    asyncio.run(limiter.check_rate_limit(_request()))
    asyncio.run(limiter.check_rate_limit(_request()))

    assert attempts == []
    assert limiter.redis_client is None
    assert len(limiter.trackers["minute"]["10.0.0.1"]) == 2
