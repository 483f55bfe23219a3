from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pyotp
import pytest

from authcore.services.two_factor import recovery, totp

T0 = datetime(2025, 6, 1, 10, 0, 0, tzinfo=UTC)


class TestRecoveryCodes:
    def test_format(self):
        code = recovery.generate_code()
        assert len(code) == 11
        assert code[5] == "-"
        assert all(ch in recovery.ALPHABET for ch in code.replace("-", ""))

    def test_generate_codes_are_distinct(self):
        codes = recovery.generate_codes(50)
        assert len(codes) == 50
        assert len(set(codes)) == 50

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("ABCDE-12345", "ABCDE-12345"),
            ("abcde12345", "ABCDE-12345"),
            (" ab cde-123 45 ", "ABCDE-12345"),
            ("ABCDE-1234", None),
            ("ABCDE-12345X", None),
            ("ABCDE_12345", None),
            ("", None),
            (None, None),
        ],
    )
    def test_normalize(self, raw, expected):
        assert recovery.normalize(raw) == expected

    def test_hash_is_deterministic_and_opaque(self):
        assert recovery.hash_code("ABCDE-12345") == recovery.hash_code("ABCDE-12345")
        assert "ABCDE" not in recovery.hash_code("ABCDE-12345")


class TestTotp:
    def test_new_secret_is_base32_of_expected_length(self):
        secret = totp.new_secret()
        assert len(secret) == totp.SECRET_LENGTH
        pyotp.TOTP(secret).now()  # decodes as base32

    def test_match_step_current_and_neighbours(self):
        secret = totp.new_secret()
        step = pyotp.TOTP(secret).timecode(T0)

        assert totp.match_step(secret, pyotp.TOTP(secret).at(T0), at=T0) == step
        earlier = pyotp.TOTP(secret).at(T0 - timedelta(seconds=30))
        assert totp.match_step(secret, earlier, at=T0) == step - 1
        later = pyotp.TOTP(secret).at(T0 + timedelta(seconds=30))
        assert totp.match_step(secret, later, at=T0) == step + 1

    def test_match_step_respects_window(self):
        secret = totp.new_secret()
        far = pyotp.TOTP(secret).at(T0 - timedelta(seconds=60))
        current = pyotp.TOTP(secret).at(T0)
        if far == current:
            pytest.skip("codes collide for this secret")
        assert totp.match_step(secret, far, at=T0, window=1) is None
        assert totp.match_step(secret, far, at=T0, window=2) is not None

    @pytest.mark.parametrize("code", [None, "", "abcdef"])
    def test_match_step_rejects_garbage(self, code):
        assert totp.match_step(totp.new_secret(), code, at=T0) is None

    def test_provisioning_uri(self):
        uri = totp.provisioning_uri("JBSWY3DPEHPK3PXP", email="ada@example.com", issuer="AuthCore")
        assert uri.startswith("otpauth://totp/AuthCore:")
        assert "secret=JBSWY3DPEHPK3PXP" in uri
        assert "issuer=AuthCore" in uri
