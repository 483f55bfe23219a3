"""Recovery-code format: ten ``[A-Z0-9]`` characters shown as ``XXXXX-XXXXX``."""

from __future__ import annotations

import hashlib
import secrets
import string

ALPHABET = string.ascii_uppercase + string.digits
GROUP = 5
LENGTH = GROUP * 2


def generate_code() -> str:
    raw = "".join(secrets.choice(ALPHABET) for _ in range(LENGTH))
    return f"{raw[:GROUP]}-{raw[GROUP:]}"


def generate_codes(count: int) -> list[str]:
    """Return ``count`` distinct codes."""
    codes: list[str] = []
    seen: set[str] = set()
    while len(codes) < count:
        code = generate_code()
        if code not in seen:
            seen.add(code)
            codes.append(code)
    return codes


def normalize(code: str | None) -> str | None:
    """
    Canonicalize user input: trim, uppercase, tolerate a missing hyphen.

    :returns: ``XXXXX-XXXXX`` or ``None`` when the input cannot be a recovery code.
    """
    if not code:
        return None
    compact = "".join(str(code).split()).upper().replace("-", "")
    if len(compact) != LENGTH or any(ch not in ALPHABET for ch in compact):
        return None
    return f"{compact[:GROUP]}-{compact[GROUP:]}"


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("ascii")).hexdigest()
