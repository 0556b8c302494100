"""
Two-factor enrollment for DigiBridge.

This package provides:
- TOTP secret generation and code verification
- Provisioning URIs and QR codes for authenticator apps
- Session credential (JWT) issuance and validation
- The enrollment state machine and flow
"""
from .account import EnrollmentState, ProfilePatch, UserAccount, merge_profile, transition
from .enrollment import EnrollmentFlow
from .mfa import TOTPEngine
from .provisioning import ProvisioningArtifact, ProvisioningEncoder
from .replay import UsedCodeRegistry
from .session import SessionClaims, SessionCredential, SessionIssuer

__all__ = [
    "EnrollmentFlow",
    "EnrollmentState",
    "ProfilePatch",
    "ProvisioningArtifact",
    "ProvisioningEncoder",
    "SessionClaims",
    "SessionCredential",
    "SessionIssuer",
    "TOTPEngine",
    "UsedCodeRegistry",
    "UserAccount",
    "merge_profile",
    "transition",
]
