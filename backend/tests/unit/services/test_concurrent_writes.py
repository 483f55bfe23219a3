# tests/unit/services/test_concurrent_writes.py
"""Racing writers on one user: the per-user lock lets exactly one win."""

from __future__ import annotations

import threading

import pytest

from authcore.models.enums import TwoFactorMethod
from authcore.services._shared.errors import InvalidTokenError
from tests.factories.user import UserFactory
from tests.helpers.outbox import latest_code

WORKERS = 2


def _race(app, session, fn):
    """Run ``fn`` on ``WORKERS`` threads released together; return their outcomes."""
    barrier = threading.Barrier(WORKERS)
    outcomes: list = []
    guard = threading.Lock()

    def worker():
        with app.app_context():
            try:
                barrier.wait(timeout=5)
                result = fn()
            except Exception as exc:  # collected for the assertions below
                result = exc
            finally:
                session.remove()
        with guard:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(WORKERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    assert not any(t.is_alive() for t in threads)
    session.expire_all()
    return outcomes


def test_refresh_token_rotates_once_under_contention(app, session, services):
    user = UserFactory()
    raw = services.refresh.issue_tokens(user.id).refresh_token

    outcomes = _race(app, session, lambda: services.refresh.rotate(raw, user_id=user.id))

    winners = [o for o in outcomes if not isinstance(o, Exception)]
    losers = [o for o in outcomes if isinstance(o, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], InvalidTokenError)
    with pytest.raises(InvalidTokenError):
        services.refresh.rotate(raw, user_id=user.id)
    services.refresh.rotate(winners[0].refresh_token, user_id=user.id)


def test_recovery_code_is_consumed_once_under_contention(app, session, services, email_outbox):
    user = UserFactory()
    services.two_factor.setup(user.id, TwoFactorMethod.EMAIL)
    codes = services.two_factor.verify_setup(user.id, latest_code(email_outbox, user.email))

    outcomes = _race(app, session, lambda: services.two_factor.validate_recovery_code(user.id, codes[0]))

    assert sorted(outcomes) == [False, True]
    assert services.two_factor.status(user.id).recovery_codes_remaining == 9
