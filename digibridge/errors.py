"""
Error kinds for the DigiBridge onboarding core.

Every per-request failure is raised as a subclass of DigiBridgeError and
mapped to a JSON response by the API layer. Only SigningKeyMissing and
RandomSourceUnavailable are treated as fatal (startup) conditions.
"""


class DigiBridgeError(Exception):
    """Base class for all DigiBridge errors."""

    code = "DIGIBRIDGE_ERROR"


class ValidationError(DigiBridgeError):
    """Malformed input that should have been rejected before reaching the core."""

    code = "VALIDATION_ERROR"


class UserNotEnrolled(DigiBridgeError):
    """No user record, or the record has no TOTP secret yet."""

    code = "USER_NOT_ENROLLED"


class InvalidCode(DigiBridgeError):
    """Submitted one-time code did not match any step in the window."""

    code = "INVALID_CODE"


class StorageError(DigiBridgeError):
    """The user store failed. Not retried by the core."""

    code = "STORAGE_ERROR"


class ArtifactEncodingError(DigiBridgeError):
    """Provisioning URI could not be encoded as a QR code."""

    code = "ARTIFACT_ENCODING_ERROR"


class InvalidTransition(DigiBridgeError):
    """Enrollment state machine was asked for a transition it does not allow."""

    code = "INVALID_TRANSITION"


class SigningKeyMissing(DigiBridgeError):
    """No session signing key configured."""

    code = "SIGNING_KEY_MISSING"


class RandomSourceUnavailable(DigiBridgeError):
    """The OS cryptographic random source cannot be used."""

    code = "RANDOM_SOURCE_UNAVAILABLE"


class TokenError(DigiBridgeError):
    """Base class for session credential validation failures."""

    code = "TOKEN_ERROR"


class TokenExpired(TokenError):
    code = "TOKEN_EXPIRED"


class TokenMalformed(TokenError):
    code = "TOKEN_MALFORMED"


class TokenInvalidSignature(TokenError):
    code = "TOKEN_INVALID_SIGNATURE"
