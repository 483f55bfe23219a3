from __future__ import annotations

from .verifier import OtpOutcome, OtpVerifier, generate_otp, hash_otp, normalize_otp

__all__ = ["OtpVerifier", "OtpOutcome", "generate_otp", "hash_otp", "normalize_otp"]
