"""
User account model and enrollment state machine.

A UserAccount moves through NEW -> PROFILE_SAVED -> SECRET_ISSUED -> VERIFIED.
Profile updates never move it backwards, and the TOTP secret is set once and
never rotated.
"""
import uuid
from dataclasses import dataclass, fields, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from ..errors import InvalidTransition


class EnrollmentState(str, Enum):
    NEW = "NEW"
    PROFILE_SAVED = "PROFILE_SAVED"
    SECRET_ISSUED = "SECRET_ISSUED"
    VERIFIED = "VERIFIED"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)


_ORDER = [
    EnrollmentState.NEW,
    EnrollmentState.PROFILE_SAVED,
    EnrollmentState.SECRET_ISSUED,
    EnrollmentState.VERIFIED,
]

# Targets reachable from each state. Moving to an earlier state is accepted
# only as a no-op (see transition()).
_ALLOWED = {
    EnrollmentState.NEW: {EnrollmentState.PROFILE_SAVED},
    EnrollmentState.PROFILE_SAVED: {EnrollmentState.PROFILE_SAVED, EnrollmentState.SECRET_ISSUED},
    EnrollmentState.SECRET_ISSUED: {
        EnrollmentState.PROFILE_SAVED,
        EnrollmentState.SECRET_ISSUED,
        EnrollmentState.VERIFIED,
    },
    EnrollmentState.VERIFIED: {EnrollmentState.PROFILE_SAVED, EnrollmentState.VERIFIED},
}


def transition(current: EnrollmentState, target: EnrollmentState) -> EnrollmentState:
    """
    Apply a state transition.

    Saving a profile after the secret was issued (or after verification)
    is allowed but keeps the later state.

    Args:
        current: State the account is in.
        target: State requested.

    Returns:
        The resulting state.

    Raises:
        InvalidTransition: If ``target`` is not reachable from ``current``.
    """
    if target not in _ALLOWED[current]:
        raise InvalidTransition(f"Cannot move enrollment from {current.value} to {target.value}")
    return target if target.rank >= current.rank else current


@dataclass(frozen=True)
class ProfilePatch:
    """
    Profile fields submitted with an enrollment request.

    ``None`` means "not provided": the stored value is kept.
    """
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    village: Optional[str] = None
    age_range: Optional[str] = None
    education_level: Optional[str] = None
    occupation: Optional[str] = None
    experience_level: Optional[str] = None


PROFILE_FIELDS = tuple(f.name for f in fields(ProfilePatch))


@dataclass(frozen=True)
class UserAccount:
    """An onboarding user as held by the user store."""
    email: str
    user_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    village: Optional[str] = None
    age_range: Optional[str] = None
    education_level: Optional[str] = None
    occupation: Optional[str] = None
    experience_level: Optional[str] = None
    totp_secret: Optional[str] = None
    two_factor_enabled: bool = False
    state: EnrollmentState = EnrollmentState.NEW
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def new(cls, email: str) -> "UserAccount":
        return cls(email=email, user_id=str(uuid.uuid4()))

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks
        secret = "set" if self.totp_secret else None
        return (
            f"UserAccount(email={self.email!r}, user_id={self.user_id!r}, "
            f"state={self.state.value}, two_factor_enabled={self.two_factor_enabled}, "
            f"totp_secret={secret})"
        )


def merge_profile(account: UserAccount, patch: ProfilePatch) -> UserAccount:
    """
    Apply a profile patch to an account.

    Every field present in the patch replaces the stored value; fields left
    as ``None`` keep the stored value. The input account is not modified.
    """
    changes = {
        name: getattr(patch, name)
        for name in PROFILE_FIELDS
        if getattr(patch, name) is not None
    }
    return replace(account, **changes)
