"""
Time-based one-time passwords for DigiBridge 2FA enrollment.

Implements TOTP (RFC 6238) on top of pyotp with HMAC-SHA1, 30-second steps
and 6-digit codes, which is what Google Authenticator, Authy and most other
authenticator apps expect.

The engine is pure: it never touches storage, and every call is a function
of its arguments (plus the wall clock when ``now`` is omitted).
"""
import hmac
import logging
import time
from typing import Optional

import pyotp

from ..errors import RandomSourceUnavailable

logger = logging.getLogger(__name__)

DEFAULT_STEP = 30
DEFAULT_DIGITS = 6
DEFAULT_WINDOW = 1

# 32 base32 characters = 160 bits of entropy
SECRET_LENGTH = 32


class TOTPEngine:
    """
    Generates secrets, derives codes and verifies submitted codes.

    Example usage:
        engine = TOTPEngine()
        secret = engine.generate_secret()
        code = engine.derive_code(secret, time.time())
        assert engine.verify(secret, code)
    """

    def __init__(
        self,
        step: int = DEFAULT_STEP,
        digits: int = DEFAULT_DIGITS,
        window: int = DEFAULT_WINDOW,
    ):
        """
        Args:
            step: Time step in seconds.
            digits: Number of digits in a code.
            window: Steps tolerated either side of the current one (1 = +-30s).
        """
        if step <= 0:
            raise ValueError("step must be positive")
        if digits not in (6, 7, 8):
            raise ValueError("digits must be 6, 7 or 8")
        if window < 0:
            raise ValueError("window must not be negative")

        self.step = step
        self.digits = digits
        self.window = window

    def generate_secret(self) -> str:
        """
        Generate a new TOTP secret for enrollment.

        Returns:
            Base32-encoded secret (32 characters).

        Raises:
            RandomSourceUnavailable: If the OS random source cannot be used.
        """
        try:
            return pyotp.random_base32(length=SECRET_LENGTH)
        except (NotImplementedError, OSError) as e:
            logger.critical(f"Cryptographic random source unavailable: {e}")
            raise RandomSourceUnavailable(str(e)) from e

    def derive_code(
        self,
        secret: str,
        timestamp: float,
        step: Optional[int] = None,
        digits: Optional[int] = None,
    ) -> str:
        """
        Derive the code for the time step containing ``timestamp``.

        Args:
            secret: Base32-encoded TOTP secret.
            timestamp: Unix time in seconds.
            step: Override for the time step.
            digits: Override for the code length.

        Returns:
            Zero-padded decimal code.
        """
        interval = step or self.step
        totp = pyotp.TOTP(secret, digits=digits or self.digits, interval=interval)
        return totp.generate_otp(int(timestamp // interval))

    def verify(
        self,
        secret: Optional[str],
        submitted_code: Optional[str],
        now: Optional[float] = None,
        window: Optional[int] = None,
    ) -> bool:
        """
        Verify a submitted code against the secret.

        Args:
            secret: Base32-encoded TOTP secret.
            submitted_code: Code entered by the user.
            now: Unix time to verify at (defaults to the current time).
            window: Override for the tolerated steps.

        Returns:
            True if the code is valid, False otherwise (including any
            malformed input).
        """
        return self.matching_step(secret, submitted_code, now, window) is not None

    def matching_step(
        self,
        secret: Optional[str],
        submitted_code: Optional[str],
        now: Optional[float] = None,
        window: Optional[int] = None,
    ) -> Optional[int]:
        """
        Return the time counter the code matched, or None.

        Every step in ``[now - window*step, now + window*step]`` is compared
        in constant time, and all of them are compared even after a match.
        The counter is what the replay guard records.
        """
        if not secret or not self.is_well_formed(submitted_code):
            return None

        if now is None:
            now = time.time()
        if window is None:
            window = self.window

        found = None
        try:
            for offset in range(-window, window + 1):
                at = now + offset * self.step
                if hmac.compare_digest(self.derive_code(secret, at), submitted_code):
                    found = int(at // self.step)
        except (ValueError, TypeError):
            # Undecodable base32 secret
            return None

        return found

    def is_well_formed(self, code: Optional[str]) -> bool:
        """Check the code is exactly ``digits`` ASCII digits."""
        return (
            isinstance(code, str)
            and len(code) == self.digits
            and code.isascii()
            and code.isdigit()
        )

    def current_code(self, secret: str) -> str:
        """
        Get the current code (for testing/debugging).

        Args:
            secret: Base32-encoded TOTP secret.

        Returns:
            Current code.
        """
        return self.derive_code(secret, time.time())
