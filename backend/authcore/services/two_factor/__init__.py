from __future__ import annotations

from .dto import LoginChallenge, SetupOut, TwoFactorStatusOut
from .engine import TwoFactorEngine, hash_login_ticket

__all__ = ["TwoFactorEngine", "LoginChallenge", "SetupOut", "TwoFactorStatusOut", "hash_login_ticket"]
