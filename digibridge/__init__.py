"""
DigiBridge - Onboarding Backend

Account onboarding with TOTP two-factor enrollment: profile registration,
authenticator provisioning (QR code), code verification and session issuance.
"""

__version__ = "1.0.0"
__author__ = "DigiBridge Team"
