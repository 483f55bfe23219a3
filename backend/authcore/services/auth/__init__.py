from __future__ import annotations

from .dto import LoginIn, LoginOut, RegisterIn, UserPublicOut
from .service import AuthService, to_user_public

__all__ = ["AuthService", "LoginIn", "LoginOut", "RegisterIn", "UserPublicOut", "to_user_public"]
