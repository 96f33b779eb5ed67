from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.exceptions import UpstreamError
from app.services.session_cleanup import SessionCleanupService
from app.services.store import MemoryStore, RedisStore
from app.utils.security import extract_bearer_token


def test_memory_store_returns_copies():
    store = MemoryStore()
    expires = datetime.now(timezone.utc) + timedelta(minutes=1)
    store.set("k", {"n": 1}, expires)
    value = store.get("k")
    value["n"] = 2
    assert store.get("k") == {"n": 1}


def test_delete_reports_presence():
    store = MemoryStore()
    store.set("k", {}, datetime.now(timezone.utc))
    assert store.delete("k") is True
    assert store.delete("k") is False
    assert store.get("k") is None


def test_sweep_drops_only_expired():
    now = datetime.now(timezone.utc)
    store = MemoryStore()
    store.set("old", {}, now - timedelta(seconds=1))
    store.set("new", {}, now + timedelta(minutes=5))
    assert store.sweep_expired(now) == 1
    assert store.get("old") is None
    assert store.get("new") == {}


def test_cleanup_service_sweeps_store():
    store = MemoryStore()
    store.set("otp:9876543210", {"code": "123456"}, datetime.now(timezone.utc) - timedelta(minutes=1))
    assert SessionCleanupService(store).cleanup_now() == 1
    assert len(store) == 0


def test_extract_bearer_token_accepts_raw_and_bearer():
    assert extract_bearer_token("Bearer abc") == "abc"
    assert extract_bearer_token("bearer  abc ") == "abc"
    assert extract_bearer_token("abc") == "abc"
    assert extract_bearer_token("") is None
    assert extract_bearer_token(None) is None


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0


class DownRedis:
    def _fail(self, *args, **kwargs):
        raise RedisConnectionError("Error 111 connecting to redis.internal:6379")

    get = set = delete = _fail


def test_redis_store_namespaces_keys_and_sets_ttl():
    redis = FakeRedis()
    store = RedisStore(redis, namespace="panchayat")
    store.set("otp:9876543210", {"code": "123456", "attempt_count": 0}, datetime.now(timezone.utc) + timedelta(minutes=5))

    assert list(redis.data) == ["panchayat:otp:9876543210"]
    assert 290 <= redis.ttls["panchayat:otp:9876543210"] <= 300
    assert store.get("otp:9876543210") == {"code": "123456", "attempt_count": 0}
    assert store.get("otp:0000000000") is None

    assert store.delete("otp:9876543210") is True
    assert store.delete("otp:9876543210") is False


def test_redis_store_ttl_is_at_least_one_second():
    redis = FakeRedis()
    RedisStore(redis).set("k", {}, datetime.now(timezone.utc) - timedelta(seconds=30))
    assert redis.ttls["panchayat:k"] == 1


def test_redis_store_leaves_expiry_to_redis():
    assert RedisStore(FakeRedis()).sweep_expired(datetime.now(timezone.utc)) == 0


@pytest.mark.parametrize("call", [
    lambda s: s.get("k"),
    lambda s: s.set("k", {}, datetime.now(timezone.utc) + timedelta(minutes=1)),
    lambda s: s.delete("k"),
])
def test_redis_failures_become_upstream_errors(call):
    with pytest.raises(UpstreamError) as exc:
        call(RedisStore(DownRedis()))
    assert exc.value.message == "Session store unavailable"
    assert exc.value.code == "upstream_error"
