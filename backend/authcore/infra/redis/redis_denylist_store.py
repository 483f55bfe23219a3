from __future__ import annotations

from datetime import datetime
from typing import cast

import redis  # type: ignore[import-untyped]

from authcore.services._shared.ports.clock import Clock, SystemClock
from authcore.services._shared.ports.denylist_store import TokenDenylistStore


class RedisTokenDenylistStore(TokenDenylistStore):
    """
    Denylist for **access tokens** keyed by token digest.

    Each entry is a tiny marker whose Redis TTL equals the token's remaining
    lifetime, so the server drops it the moment the token would have expired.
    """

    native_ttl = True

    def __init__(self, r: redis.Redis, *, clock: Clock | None = None, prefix: str = "deny:at:"):
        self.r = r
        self.clock = clock or SystemClock()
        self.prefix = prefix

    def _k(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def is_revoked(self, key: str) -> bool:
        return cast(int, self.r.exists(self._k(key))) == 1

    def revoke(self, key: str, *, expires_at: datetime) -> None:
        remaining = expires_at.timestamp() - self.clock.now().timestamp()
        if remaining <= 0:
            return
        ttl_ms = max(1, int(remaining * 1000))
        # store a small marker with TTL; idempotent
        self.r.set(self._k(key), "1", px=ttl_ms)

    def purge_expired(self) -> int:
        # Redis evicts expired keys itself.
        return 0
