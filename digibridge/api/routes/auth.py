"""
Enrollment Endpoints.

Profile submission with TOTP provisioning, and 2FA code verification.
"""
import logging

from fastapi import APIRouter, Depends

from ..models import (
    ProfileRequest,
    ProfileResponse,
    VerifyRequest,
    VerifyResponse,
    ErrorResponse,
)
from ..deps import (
    get_enrollment_flow,
    check_profile_rate_limit,
    check_verify_rate_limit,
)
from ...auth.enrollment import EnrollmentFlow

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post(
    "/profile",
    response_model=ProfileResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Provisioning artifact could not be encoded"},
        422: {"model": ErrorResponse, "description": "Invalid input"},
        429: {"model": ErrorResponse, "description": "Too many submissions"},
        503: {"model": ErrorResponse, "description": "Storage unavailable"},
    },
    dependencies=[Depends(check_profile_rate_limit)],
)
def save_profile(
    profile: ProfileRequest,
    flow: EnrollmentFlow = Depends(get_enrollment_flow),
):
    """
    Save or update an onboarding profile.

    Returns a QR code for the user's authenticator app. The secret is
    generated on first submission only; later submissions return the same
    QR code.
    """
    artifact = flow.save_profile(profile.email, profile.to_patch())

    return ProfileResponse(
        message="Profile saved",
        provisioning_artifact=artifact.data_url,
        provisioning_uri=artifact.uri,
    )


@router.post(
    "/verify",
    response_model=VerifyResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid authentication code"},
        422: {"model": ErrorResponse, "description": "Invalid input"},
        429: {"model": ErrorResponse, "description": "Too many attempts"},
        503: {"model": ErrorResponse, "description": "Storage unavailable"},
    },
    dependencies=[Depends(check_verify_rate_limit)],
)
def verify(
    verification: VerifyRequest,
    flow: EnrollmentFlow = Depends(get_enrollment_flow),
):
    """
    Verify a code from the authenticator app.

    Enables 2FA for the account and returns a session credential valid for
    one hour. Send it as `Authorization: Bearer <token>`.
    """
    credential = flow.verify_code(verification.email, verification.token)

    return VerifyResponse(
        message="2FA verified",
        session_credential=credential.token,
        expires_in=credential.expires_in,
    )
