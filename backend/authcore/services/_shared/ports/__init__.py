"""
authcore.services._shared.ports
===============================

Collection of *ports* (hexagonal interfaces) that the credential and session
services depend on.

Modules
-------
- :mod:`clock`:
    :class:`~.Clock` with :class:`~.SystemClock` and :class:`~.FrozenClock`.

- :mod:`token_issuer`:
    :class:`~.TokenIssuer`: signs and checks access tokens.

- :mod:`denylist_store`:
    :class:`~.TokenDenylistStore`: storage for revoked access tokens.

- :mod:`user_lock`:
    :class:`~.UserLockProvider`: per-user serialization of writes.

- :mod:`notifier`:
    :class:`~.EmailSender` and :class:`~.SmsSender`: outbound delivery.

Design Notes
------------
Every port ships an in-memory implementation used by unit tests and
single-process deployments. Concrete adapters (PyJWT, Redis, SMTP) live
under ``authcore.infra``.
"""

from __future__ import annotations

from .clock import Clock, FrozenClock, SystemClock
from .denylist_store import InMemoryDenylistStore, TokenDenylistStore
from .notifier import (
    EmailSender,
    InMemoryEmailSender,
    InMemorySmsSender,
    SentMessage,
    SmsSender,
)
from .token_issuer import AccessClaims, IssuedToken, StubTokenIssuer, TokenIssuer
from .user_lock import InMemoryUserLocks, LockTimeoutError, UserLockProvider

__all__ = [
    "Clock",
    "SystemClock",
    "FrozenClock",
    "TokenIssuer",
    "AccessClaims",
    "IssuedToken",
    "StubTokenIssuer",
    "TokenDenylistStore",
    "InMemoryDenylistStore",
    "UserLockProvider",
    "InMemoryUserLocks",
    "LockTimeoutError",
    "EmailSender",
    "SmsSender",
    "InMemoryEmailSender",
    "InMemorySmsSender",
    "SentMessage",
]
