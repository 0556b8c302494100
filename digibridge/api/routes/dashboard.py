"""
Dashboard Endpoints.

Requires a session credential from /api/auth/verify.
"""
from fastapi import APIRouter, Depends

from ..models import DashboardResponse, ErrorResponse
from ..deps import get_current_claims
from ...auth.session import SessionClaims

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get(
    "",
    response_model=DashboardResponse,
    responses={401: {"model": ErrorResponse, "description": "Missing, invalid or expired token"}},
)
async def dashboard(claims: SessionClaims = Depends(get_current_claims)):
    """Welcome message for an authenticated user."""
    return DashboardResponse(message="Welcome to your dashboard!", user_email=claims.email)
