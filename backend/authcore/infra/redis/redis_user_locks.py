from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Iterator
from contextlib import contextmanager

import redis  # type: ignore[import-untyped]

from authcore.services._shared.ports.user_lock import LockTimeoutError, UserLockProvider

log = logging.getLogger(__name__)


class RedisUserLocks(UserLockProvider):
    """
    Cross-process per-user lock built on ``SET NX PX`` leases.

    Each acquisition stores a random owner token; release deletes the key
    only if it still holds that token (``WATCH``/``MULTI`` compare-and-delete),
    so an expired lease re-acquired by another worker is never released by
    the previous owner.

    :param r: A Redis client (already connected).
    :param timeout: Seconds to wait for the lock.
    :param lease: Seconds a held lock survives a crashed owner. Must exceed
        ``timeout``; defaults to three times ``timeout``.
    :param poll_interval: Sleep between acquisition attempts.
    """

    def __init__(
        self,
        r: redis.Redis,
        *,
        timeout: float = 10.0,
        lease: float | None = None,
        poll_interval: float = 0.05,
        prefix: str = "lock:user:",
    ) -> None:
        lease = 3 * timeout if lease is None else lease
        if lease <= timeout:
            raise ValueError("lease must be longer than timeout")
        self.r = r
        self.timeout = timeout
        self.lease = lease
        self.poll_interval = poll_interval
        self.prefix = prefix

    def _k(self, user_id: int | str) -> str:
        return f"{self.prefix}{user_id}"

    def _acquire(self, key: str, owner: str) -> bool:
        lease_ms = max(1, int(self.lease * 1000))
        deadline = time.monotonic() + self.timeout
        while True:
            if self.r.set(key, owner, nx=True, px=lease_ms):
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(self.poll_interval)

    def _release(self, key: str, owner: str) -> None:
        with self.r.pipeline() as p:
            while True:
                try:
                    p.watch(key)
                    current = p.get(key)
                    if isinstance(current, bytes | bytearray):
                        current = current.decode()
                    if current != owner:
                        p.unwatch()
                        log.warning("User lock lease expired before release", extra={"event": "lock_lost"})
                        return
                    p.multi()
                    p.delete(key)
                    p.execute()
                    return
                except redis.WatchError:
                    continue

    @contextmanager
    def lock(self, user_id: int | str) -> Iterator[None]:
        key = self._k(user_id)
        owner = secrets.token_hex(16)
        if not self._acquire(key, owner):
            raise LockTimeoutError()
        try:
            yield
        finally:
            self._release(key, owner)
