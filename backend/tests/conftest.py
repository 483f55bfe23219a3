"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside a SAVEPOINT-backed transaction against an in-memory
SQLite database so data changes never leak between cases. The application
is built once with a controllable clock and recording email/SMS senders.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime

import pytest
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker

from authcore.core.config import TestingConfig
from authcore.core.container import get_services
from authcore.core.extensions import db as _db  # Flask-SQLAlchemy instance
from authcore.factory import create_app  # application factory under test
from authcore.services._shared.ports import FrozenClock, InMemoryEmailSender, InMemorySmsSender


@pytest.fixture(scope="session")
def frozen_clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture(scope="session")
def email_outbox() -> InMemoryEmailSender:
    return InMemoryEmailSender()


@pytest.fixture(scope="session")
def sms_outbox() -> InMemorySmsSender:
    return InMemorySmsSender()


@pytest.fixture(scope="session")
def app(frozen_clock, email_outbox, sms_outbox):
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestingConfig` applied, a frozen
        clock and in-memory senders, and logging noise reduced.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(
        TestingConfig,
        clock=frozen_clock,
        email_sender=email_outbox,
        sms_sender=sms_outbox,
    )
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated DBAPI connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Provide a SQLAlchemy session wrapped in a nested transaction.

    Notes
    -----
    The fixture mirrors the SQLAlchemy 2.0 pattern for transactional tests: it
    begins a top-level transaction, starts a SAVEPOINT per test, and reinstalls
    the SAVEPOINT whenever SQLAlchemy ends one. Service commits land in the
    SAVEPOINT and are discarded with the outer rollback.
    """
    # 1) Top-level transaction
    top_trans = connection.begin()

    # 2) Scoped session bound to the connection
    SessionFactory = sessionmaker(bind=connection, future=True, autoflush=False)
    scoped = scoped_session(SessionFactory)

    # 3) SAVEPOINT per test
    nested = connection.begin_nested()

    # 4) Re-create SAVEPOINT when the previous nested transaction ends
    @event.listens_for(scoped(), "after_transaction_end")
    def _restart_savepoint(sess, trans):  # pragma: no cover
        if trans.nested and not trans._parent.nested:
            nonlocal nested
            nested = connection.begin_nested()

    # 5) Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        top_trans.rollback()


@pytest.fixture(autouse=True)
def _reset_side_channels(frozen_clock, email_outbox, sms_outbox):
    """Start every test at the current wall time with empty outboxes."""
    frozen_clock.set(datetime.now(UTC).replace(microsecond=0))
    email_outbox.outbox.clear()
    email_outbox.fail = False
    sms_outbox.outbox.clear()
    sms_outbox.fail = False
    yield


@pytest.fixture()
def services(app, session):
    """Component graph of the testing app (requires the DB session)."""
    with app.app_context():
        yield get_services()


@pytest.fixture()
def client(app, session):
    return app.test_client()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the transactional session fixture."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield
