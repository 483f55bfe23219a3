from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from authcore.services._shared.ports.clock import Clock, SystemClock
from authcore.services._shared.ports.user_lock import InMemoryUserLocks, UserLockProvider
from authcore.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Own the clock and per-user lock provider so every write on a user
      aggregate goes through :meth:`locked_write`.
    * Keep services thin, orchestration-only, no web/ORM leakage.

    Notes
    -----
    - Services must never touch the global session; always use a Unit of Work.
    - Errors raised inside a write scope roll the transaction back. Outcomes
      that must persist (e.g. a failed-attempt counter) are raised after the
      scope has committed.
    """

    DEFAULT_READ_ISOLATION = "READ COMMITTED"

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        locks: UserLockProvider | None = None,
    ) -> None:
        """
        Initialize the base service.

        :param clock: Time source; wall clock when omitted.
        :param locks: Per-user lock provider; process-local when omitted.
        """
        self.clock = clock or SystemClock()
        self.locks = locks or InMemoryUserLocks()

    def now(self) -> datetime:
        return self.clock.now()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """
        Create a read-write Unit of Work.

        :returns: Read-write UoW instance.
        :rtype: SQLAlchemyUnitOfWork
        """
        return SQLAlchemyUnitOfWork()

    def ro_uow(
        self, *, isolation: str | None = None, enforce_db_readonly: bool = True
    ) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :param isolation: Transaction isolation level (e.g. "READ COMMITTED").
        :param enforce_db_readonly: Apply ``SET TRANSACTION READ ONLY`` when supported.
        :returns: Read-only UoW instance.
        """
        return SQLAlchemyReadOnlyUnitOfWork(
            isolation_level=isolation or self.DEFAULT_READ_ISOLATION,
            enforce_db_readonly=enforce_db_readonly,
        )

    @contextmanager
    def locked_write(self, user_id: int) -> Iterator[SQLAlchemyUnitOfWork]:
        """
        Hold the user's lock for the whole lifetime of a read-write UoW.

        The lock is released only after commit (or rollback), so the next
        writer always reads the committed state.

        :param user_id: Aggregate being modified.
        :raises LockTimeoutError: If the lock cannot be acquired in time.
        """
        with self.locks.lock(user_id), self.rw_uow() as uow:
            yield uow
