"""
Bearer session credentials issued after a successful 2FA verification.

Credentials are HS256 JSON Web Tokens carrying the user id, email, issue time
and expiry. They are bearer-style and carry no revocation state: expiry is
the only way a credential stops being valid.
"""
import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

import jwt

from ..errors import SigningKeyMissing, TokenExpired, TokenInvalidSignature, TokenMalformed
from ..utils.secrets import get_secret

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
DEFAULT_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "email", "iat", "exp"]


@dataclass(frozen=True)
class SessionClaims:
    """Decoded claims of a session credential."""
    user_id: str
    email: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class SessionCredential:
    """A signed session token and the claims it carries."""
    token: str
    claims: SessionClaims

    @property
    def expires_in(self) -> int:
        return self.claims.expires_at - self.claims.issued_at


class SessionIssuer:
    """
    Issues and validates session credentials.

    The signing key is injected at construction and never changes afterwards.

    Example usage:
        issuer = SessionIssuer(signing_key="...")
        credential = issuer.issue(user_id, "alice@example.com")
        claims = issuer.validate(credential.token)
    """

    def __init__(
        self,
        signing_key: Optional[str],
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        algorithm: str = DEFAULT_ALGORITHM,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            signing_key: HMAC key used to sign tokens.
            ttl_seconds: Credential lifetime.
            algorithm: JWT signing algorithm.
            clock: Source of the current Unix time.

        Raises:
            SigningKeyMissing: If no signing key is given.
        """
        if not signing_key:
            raise SigningKeyMissing(
                "No session signing key configured. Set JWT_SECRET or JWT_SECRET_FILE."
            )
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self._signing_key = signing_key
        self.ttl_seconds = ttl_seconds
        self.algorithm = algorithm
        self._clock = clock

    @classmethod
    def from_env(cls) -> "SessionIssuer":
        """
        Build an issuer from JWT_SECRET (or JWT_SECRET_FILE / Docker secret).

        Raises:
            SigningKeyMissing: If the secret is not configured.
        """
        ttl = int(os.getenv("SESSION_TTL_SECONDS", str(DEFAULT_TTL_SECONDS)))
        return cls(signing_key=get_secret("JWT_SECRET"), ttl_seconds=ttl)

    def issue(self, user_id: str, email: str) -> SessionCredential:
        """
        Mint a credential for a user who has just passed 2FA.

        Args:
            user_id: Stable user id.
            email: User's email address.

        Returns:
            SessionCredential valid for ``ttl_seconds``.
        """
        issued_at = int(self._clock())
        claims = SessionClaims(
            user_id=str(user_id),
            email=email,
            issued_at=issued_at,
            expires_at=issued_at + self.ttl_seconds,
        )
        payload = {
            "sub": claims.user_id,
            "email": claims.email,
            "iat": claims.issued_at,
            "exp": claims.expires_at,
        }
        token = jwt.encode(payload, self._signing_key, algorithm=self.algorithm)

        logger.debug(f"Issued session for user {user_id}, expires {claims.expires_at}")
        return SessionCredential(token=token, claims=claims)

    def validate(self, token: str) -> SessionClaims:
        """
        Verify signature and expiry of a credential.

        Args:
            token: Encoded JWT.

        Returns:
            The credential's claims.

        Raises:
            TokenInvalidSignature: Signature does not match the signing key.
            TokenMalformed: Not a decodable JWT or required claims missing.
            TokenExpired: The credential's expiry has passed.
        """
        try:
            payload = jwt.decode(
                token,
                self._signing_key,
                algorithms=[self.algorithm],
                # Expiry is checked below against the injected clock
                options={"verify_exp": False, "verify_iat": False, "require": REQUIRED_CLAIMS},
            )
        except jwt.InvalidSignatureError as e:
            raise TokenInvalidSignature("Token signature is invalid") from e
        except jwt.InvalidTokenError as e:
            raise TokenMalformed(f"Token is malformed: {e}") from e

        try:
            claims = SessionClaims(
                user_id=str(payload["sub"]),
                email=str(payload["email"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (TypeError, ValueError) as e:
            raise TokenMalformed(f"Token claims are malformed: {e}") from e

        if self._clock() >= claims.expires_at:
            raise TokenExpired("Token has expired")

        return claims
