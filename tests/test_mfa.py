"""
Tests for the TOTP engine.

Covers:
- RFC 6238 reference values
- Determinism of code derivation
- Clock-skew window
- Rejection of malformed codes and secrets
- Secret generation
"""
import base64
from unittest.mock import patch

import pyotp
import pytest

from digibridge.auth.mfa import TOTPEngine
from digibridge.errors import RandomSourceUnavailable

from conftest import RFC_SECRET, T0


# ============================================
# Code Derivation
# ============================================

class TestDeriveCode:
    """Test time-step code derivation."""

    @pytest.mark.parametrize("timestamp,expected", [
        (59, "94287082"),
        (1111111109, "07081804"),
        (1234567890, "89005924"),
        (2000000000, "69279037"),
    ])
    def test_rfc6238_sha1_vectors(self, engine, timestamp, expected):
        """Test against the SHA1 vectors from RFC 6238 appendix B."""
        assert engine.derive_code(RFC_SECRET, timestamp, digits=8) == expected

    def test_six_digit_code_is_truncation_of_reference(self, engine):
        assert engine.derive_code(RFC_SECRET, 59) == "287082"

    def test_deterministic(self, engine):
        """Same secret and timestamp always yield the same code."""
        secret = engine.generate_secret()
        codes = {engine.derive_code(secret, T0) for _ in range(5)}
        assert len(codes) == 1

    def test_same_step_same_code(self, engine):
        """All timestamps inside one 30s step share a code."""
        start = T0 - (T0 % 30)
        assert engine.derive_code(RFC_SECRET, start) == engine.derive_code(RFC_SECRET, start + 29.9)

    def test_matches_pyotp(self, engine):
        secret = engine.generate_secret()
        assert engine.derive_code(secret, T0) == pyotp.TOTP(secret).at(T0)

    def test_custom_step(self, engine):
        # With a 60s step, T0 and T0+30 land in the same counter when aligned
        start = T0 - (T0 % 60)
        assert engine.derive_code(RFC_SECRET, start, step=60) == engine.derive_code(RFC_SECRET, start + 30, step=60)


# ============================================
# Verification Window
# ============================================

class TestVerify:
    """Test code verification with clock-skew tolerance."""

    def test_current_code_valid(self, engine):
        secret = engine.generate_secret()
        assert engine.verify(secret, engine.current_code(secret))

    @pytest.mark.parametrize("skew", [-29, -15, 0, 15, 29])
    def test_within_one_step_of_skew(self, engine, skew):
        """A code derived at t verifies at t +- 29s."""
        code = engine.derive_code(RFC_SECRET, T0)
        assert engine.verify(RFC_SECRET, code, now=T0 + skew)

    def test_outside_window_rejected(self, engine):
        """A code derived at t is rejected at t + 90s."""
        code = engine.derive_code(RFC_SECRET, T0)
        assert not engine.verify(RFC_SECRET, code, now=T0 + 90)

    def test_previous_step_accepted_next_beyond_rejected(self, engine):
        start = T0 - (T0 % 30)
        code = engine.derive_code(RFC_SECRET, start)
        assert engine.verify(RFC_SECRET, code, now=start + 30)
        assert not engine.verify(RFC_SECRET, code, now=start + 60)

    def test_zero_window_is_strict(self):
        engine = TOTPEngine(window=0)
        start = T0 - (T0 % 30)
        code = engine.derive_code(RFC_SECRET, start)
        assert engine.verify(RFC_SECRET, code, now=start + 10)
        assert not engine.verify(RFC_SECRET, code, now=start + 30)

    def test_window_override(self, engine):
        start = T0 - (T0 % 30)
        code = engine.derive_code(RFC_SECRET, start)
        assert engine.verify(RFC_SECRET, code, now=start + 60, window=2)

    def test_wrong_code_rejected(self, engine):
        code = engine.derive_code(RFC_SECRET, 59)
        wrong = f"{(int(code) + 1) % 1_000_000:06d}"
        assert not engine.verify(RFC_SECRET, wrong, now=59)

    def test_matching_step_returns_counter(self, engine):
        start = T0 - (T0 % 30)
        code = engine.derive_code(RFC_SECRET, start)
        assert engine.matching_step(RFC_SECRET, code, now=start + 5) == start // 30
        # Still resolves to the step it was derived in when verified a step later
        assert engine.matching_step(RFC_SECRET, code, now=start + 35) == start // 30


# ============================================
# Malformed Input
# ============================================

class TestMalformedInput:
    """Malformed input yields False, never an exception."""

    @pytest.mark.parametrize("code", [
        "",
        "12345",
        "1234567",
        "12345a",
        "12 345",
        " 123456",
        "123456 ",
        "-12345",
        "١٢٣٤٥٦",  # Arabic-Indic digits
        None,
        123456,
    ])
    def test_malformed_code_rejected(self, engine, code):
        assert engine.verify(RFC_SECRET, code, now=T0) is False

    def test_missing_secret_rejected(self, engine):
        assert engine.verify(None, "123456") is False
        assert engine.verify("", "123456") is False

    def test_undecodable_secret_rejected(self, engine):
        assert engine.verify("not base32 at all!", "123456") is False

    def test_is_well_formed(self, engine):
        assert engine.is_well_formed("000000")
        assert not engine.is_well_formed("00000")


# ============================================
# Secret Generation
# ============================================

class TestGenerateSecret:
    """Test secret generation."""

    def test_secret_is_base32_160_bits(self, engine):
        secret = engine.generate_secret()
        assert len(secret) == 32
        assert len(base64.b32decode(secret)) == 20

    def test_secrets_are_unique(self, engine):
        assert len({engine.generate_secret() for _ in range(50)}) == 50

    def test_random_source_unavailable_is_fatal(self, engine):
        with patch("digibridge.auth.mfa.pyotp.random_base32", side_effect=NotImplementedError("no urandom")):
            with pytest.raises(RandomSourceUnavailable):
                engine.generate_secret()


class TestEngineConfig:

    @pytest.mark.parametrize("kwargs", [{"step": 0}, {"digits": 5}, {"window": -1}])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            TOTPEngine(**kwargs)
