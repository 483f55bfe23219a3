from __future__ import annotations

from .registry import RevocationRegistry, revocation_key
from .sweeper import RevocationSweeper

__all__ = ["RevocationRegistry", "RevocationSweeper", "revocation_key"]
