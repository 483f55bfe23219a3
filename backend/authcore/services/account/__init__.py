from __future__ import annotations

from .service import AccountService, normalize_phone

__all__ = ["AccountService", "normalize_phone"]
