"""Generic repository base for SQLAlchemy 2.x.

This module centralizes persistence-only concerns shared by all repositories:
- Session resolution (injected Unit of Work session or the Flask-scoped one).
- Primary-key lookups, optionally with ``FOR UPDATE`` row locks.
- No business logic, no commit/rollback; Services own transactions.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar, cast

from sqlalchemy import select
from sqlalchemy.orm import InstrumentedAttribute, Session

from authcore.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Generic, persistence-only repository for a single aggregate.

    Subclasses MUST define:

    * ``model``: the SQLAlchemy mapped class.

    This class NEVER opens, commits, or rolls back transactions.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """Initialise the repository with an optional SQLAlchemy session.

        :param session: Session shared across the Unit of Work scope.
        :type session: :class:`sqlalchemy.orm.Session` | None
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """Return the injected session, or the Flask-scoped one."""
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    def _pk_attr(self) -> InstrumentedAttribute[Any] | None:
        """Return the model's primary-key attribute if available."""
        pk = getattr(self.model, "id", None)
        return pk if isinstance(pk, InstrumentedAttribute) else None

    # --------------------------------- CRUD ----------------------------------

    def add(self, instance: E) -> E:
        """Stage a new entity and flush to materialize the PK.

        :param instance: New entity instance.
        :returns: The same instance after ``flush()``.
        """
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Retrieve a single entity by primary key.

        :param entity_id: Primary-key value.
        :returns: Entity or ``None``.
        :raises RuntimeError: If no PK attribute can be detected.
        """
        pk_attr = self._pk_attr()
        if pk_attr is None:
            raise RuntimeError("BaseRepository.get requires a detectable PK attribute.")
        stmt = select(self.model).where(pk_attr == entity_id)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def get_for_update(self, entity_id: Any) -> E | None:
        """Retrieve an entity by PK with a ``FOR UPDATE`` lock (when supported).

        The row is re-read from the database even when it is already present
        in the identity map, so callers holding a per-user lock always act on
        the latest committed state.

        :param entity_id: Primary-key value.
        :returns: Locked entity or ``None``.
        :raises RuntimeError: If no PK attribute can be detected.
        """
        pk_attr = self._pk_attr()
        if pk_attr is None:
            raise RuntimeError("BaseRepository.get_for_update requires a detectable PK.")
        stmt = (
            select(self.model)
            .where(pk_attr == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def delete(self, instance: E) -> None:
        """Delete an entity and flush changes."""
        self.session.delete(instance)
        self.flush()

    def flush(self) -> None:
        """Flush pending changes to the database without committing."""
        self.session.flush()
