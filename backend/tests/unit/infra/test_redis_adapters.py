"""
Unit tests for the Redis adapters using fakeredis.

- RedisTokenDenylistStore: TTL mirrors the token's remaining lifetime.
- RedisUserLocks: mutual exclusion, timeout, owner-checked release.
"""

from __future__ import annotations

import threading
import time
from datetime import UTC, datetime, timedelta

import fakeredis
import pytest

from authcore.infra.redis.redis_denylist_store import RedisTokenDenylistStore
from authcore.infra.redis.redis_user_locks import RedisUserLocks
from authcore.services._shared.errors import ConcurrentUpdateError
from authcore.services._shared.ports import FrozenClock, LockTimeoutError


@pytest.fixture
def fake_redis():
    """Provide a fresh FakeRedis instance for each test."""
    r = fakeredis.FakeRedis()
    r.flushall()
    return r


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime.now(UTC))


# ----------------------------- Denylist ----------------------------------- #


def test_revoke_sets_marker_with_remaining_ttl(fake_redis, clock):
    store = RedisTokenDenylistStore(fake_redis, clock=clock)
    store.revoke("abc", expires_at=clock.now() + timedelta(seconds=120))

    assert store.is_revoked("abc") is True
    ttl_ms = fake_redis.pttl("deny:at:abc")
    assert 0 < ttl_ms <= 120_000


def test_revoke_ignores_already_expired_tokens(fake_redis, clock):
    store = RedisTokenDenylistStore(fake_redis, clock=clock)
    store.revoke("old", expires_at=clock.now() - timedelta(seconds=1))

    assert store.is_revoked("old") is False
    assert fake_redis.exists("deny:at:old") == 0


def test_unknown_key_is_not_revoked_and_purge_is_noop(fake_redis, clock):
    store = RedisTokenDenylistStore(fake_redis, clock=clock)
    assert store.native_ttl is True
    assert store.is_revoked("missing") is False
    assert store.purge_expired() == 0


# ------------------------------- Locks ------------------------------------ #


def test_lock_is_released_after_block(fake_redis):
    locks = RedisUserLocks(fake_redis, timeout=1.0)
    with locks.lock(42):
        assert fake_redis.exists("lock:user:42") == 1
    assert fake_redis.exists("lock:user:42") == 0


def test_lock_is_released_when_block_raises(fake_redis):
    locks = RedisUserLocks(fake_redis, timeout=1.0)
    with pytest.raises(RuntimeError), locks.lock(1):
        raise RuntimeError("boom")
    assert fake_redis.exists("lock:user:1") == 0


def test_second_holder_times_out(fake_redis):
    locks = RedisUserLocks(fake_redis, timeout=0.2, poll_interval=0.01)
    with locks.lock(5):
        with pytest.raises(LockTimeoutError):
            with locks.lock(5):
                pass  # pragma: no cover


def test_lease_outlives_the_wait_bound(fake_redis):
    locks = RedisUserLocks(fake_redis, timeout=0.2, poll_interval=0.01)
    assert locks.lease == pytest.approx(0.6)

    with locks.lock(6):
        ttl_ms = fake_redis.pttl("lock:user:6")
        assert 200 < ttl_ms <= 600


def test_lease_must_exceed_timeout(fake_redis):
    with pytest.raises(ValueError):
        RedisUserLocks(fake_redis, timeout=1.0, lease=1.0)


def test_lock_timeout_is_a_concurrent_update_error():
    assert issubclass(LockTimeoutError, ConcurrentUpdateError)


def test_different_users_do_not_contend(fake_redis):
    locks = RedisUserLocks(fake_redis, timeout=0.2, poll_interval=0.01)
    with locks.lock(1), locks.lock(2):
        assert fake_redis.exists("lock:user:1", "lock:user:2") == 2


def test_release_keeps_a_lease_taken_over_by_another_owner(fake_redis):
    locks = RedisUserLocks(fake_redis, timeout=1.0)
    with locks.lock(9):
        # Simulate lease expiry followed by another worker's acquisition.
        fake_redis.set("lock:user:9", "someone-else")
    assert fake_redis.get("lock:user:9") == b"someone-else"


def test_waiter_acquires_after_release(fake_redis):
    locks = RedisUserLocks(fake_redis, timeout=2.0, poll_interval=0.01)
    acquired = threading.Event()

    def _waiter():
        with locks.lock(3):
            acquired.set()

    with locks.lock(3):
        worker = threading.Thread(target=_waiter)
        worker.start()
        time.sleep(0.05)
        assert not acquired.is_set()
    worker.join(timeout=2)
    assert acquired.is_set()
