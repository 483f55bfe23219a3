from __future__ import annotations

import threading
from datetime import datetime
from typing import Protocol

from .clock import Clock, SystemClock


class TokenDenylistStore(Protocol):
    """
    Abstraction for a denylist of revoked **access tokens**.

    Keys are opaque (the registry passes a digest of the token). Methods are
    expected to be idempotent.

    :cvar native_ttl: ``True`` when the backend expires entries on its own;
        otherwise :meth:`purge_expired` must be called periodically.
    """

    native_ttl: bool

    def is_revoked(self, key: str) -> bool: ...
    def revoke(self, key: str, *, expires_at: datetime) -> None: ...
    def purge_expired(self) -> int: ...


class InMemoryDenylistStore(TokenDenylistStore):
    """
    Process-local denylist keyed by token digest.

    Lookups are a single dict read; writes and purges take a lock. Entries
    past their expiry are ignored by :meth:`is_revoked` and dropped by
    :meth:`purge_expired`, so memory holds only still-valid revoked tokens.
    """

    native_ttl = False

    def __init__(self, *, clock: Clock | None = None) -> None:
        self.clock = clock or SystemClock()
        self._revoked: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._revoked)

    def is_revoked(self, key: str) -> bool:
        expires_at = self._revoked.get(key)
        return expires_at is not None and expires_at > self.clock.now()

    def revoke(self, key: str, *, expires_at: datetime) -> None:
        with self._lock:
            current = self._revoked.get(key)
            if current is None or current < expires_at:
                self._revoked[key] = expires_at

    def purge_expired(self) -> int:
        now = self.clock.now()
        with self._lock:
            stale = [k for k, exp in self._revoked.items() if exp <= now]
            for k in stale:
                del self._revoked[k]
        return len(stale)
