"""Unit of Work implementations."""

from __future__ import annotations

from .base import UnitOfWork
from .sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

__all__ = ["UnitOfWork", "SQLAlchemyUnitOfWork", "SQLAlchemyReadOnlyUnitOfWork"]
