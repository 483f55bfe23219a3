from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

from authcore.services._shared.errors import ConcurrentUpdateError


class LockTimeoutError(ConcurrentUpdateError):
    """The per-user lock could not be acquired within the configured bound."""


class UserLockProvider(Protocol):
    """
    Serializes read-modify-write sequences on one user aggregate.

    ``lock(user_id)`` returns a context manager; two holders for the same
    user never overlap. Different users never contend.
    """

    def lock(self, user_id: int | str) -> AbstractContextManager[None]: ...


class InMemoryUserLocks(UserLockProvider):
    """
    One :class:`threading.Lock` per user id, for single-process deployments.

    Locks are held weakly by the registry, so a user's lock disappears once
    no holder or waiter references it.

    :param timeout: Seconds to wait before raising :class:`LockTimeoutError`.
    """

    def __init__(self, *, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def _lock_for(self, user_id: int | str) -> threading.Lock:
        key = str(user_id)
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def lock(self, user_id: int | str) -> Iterator[None]:
        lock = self._lock_for(user_id)
        if not lock.acquire(timeout=self.timeout):
            raise LockTimeoutError()
        try:
            yield
        finally:
            lock.release()
