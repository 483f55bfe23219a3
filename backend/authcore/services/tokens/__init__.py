from __future__ import annotations

from .dto import RefreshTokenConfig, TokenPair
from .manager import RefreshTokenManager, generate_refresh_token, hash_refresh_token

__all__ = [
    "RefreshTokenManager",
    "RefreshTokenConfig",
    "TokenPair",
    "generate_refresh_token",
    "hash_refresh_token",
]
