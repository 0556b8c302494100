"""
Pydantic Models for DigiBridge API.

Request and response models for all API endpoints. JSON field names are
camelCase to match the web client.
"""
from datetime import datetime
from typing import Optional, Dict
from pydantic import BaseModel, EmailStr, Field, ConfigDict
from pydantic.alias_generators import to_camel

from ..auth.account import ProfilePatch

# Same rule the web client applies before submitting
PHONE_PATTERN = r"^\+?[0-9\s()-]{10,}$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================
# Enrollment Models
# ============================================

class ProfileRequest(CamelModel):
    """
    Onboarding profile submission.

    Creates the user on first submission, updates the profile afterwards.
    Omitted optional fields keep their stored value.
    """
    email: EmailStr = Field(..., description="Valid email address (account identity)")
    phone: str = Field(..., pattern=PHONE_PATTERN, max_length=64, description="Contact phone number")
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    village: Optional[str] = Field(None, max_length=255)
    age_range: Optional[str] = Field(None, max_length=64)
    education_level: Optional[str] = Field(None, max_length=255)
    occupation: Optional[str] = Field(None, max_length=255)
    experience_level: Optional[str] = Field(None, max_length=255)

    # Surrounding whitespace is dropped before the phone pattern is checked
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "email": "alice@example.com",
                "firstName": "Alice",
                "lastName": "Mwangi",
                "phone": "+254 712 345 678",
                "village": "Kisumu",
                "ageRange": "25-34",
                "educationLevel": "Secondary",
                "occupation": "Farmer",
                "experienceLevel": "Beginner",
            }
        }
    )

    def to_patch(self) -> ProfilePatch:
        return ProfilePatch(
            first_name=self.first_name,
            last_name=self.last_name,
            phone=self.phone,
            village=self.village,
            age_range=self.age_range,
            education_level=self.education_level,
            occupation=self.occupation,
            experience_level=self.experience_level,
        )


class ProfileResponse(CamelModel):
    """Profile saved; scan the QR code with an authenticator app."""
    message: str = "Profile saved"
    provisioning_artifact: str = Field(..., description="QR code as a data:image/png;base64 URL")
    provisioning_uri: str = Field(..., description="otpauth:// URI for manual entry")


class VerifyRequest(CamelModel):
    """2FA verification with a code from the authenticator app."""
    email: EmailStr = Field(..., description="Enrolled email address")
    token: str = Field(..., max_length=32, description="6-digit code from the authenticator app")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "alice@example.com",
                "token": "123456"
            }
        }
    )


class VerifyResponse(CamelModel):
    """2FA verified; use the session credential as a bearer token."""
    message: str = "2FA verified"
    session_credential: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Credential lifetime in seconds")


# ============================================
# Session / Dashboard Models
# ============================================

class DashboardResponse(CamelModel):
    message: str
    user_email: str


# ============================================
# System Models
# ============================================

class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint."""
    error: str
    code: str
    detail: Optional[str] = None


class HealthStatus(BaseModel):
    """Health check response."""
    status: str
    version: str
    services: Dict[str, str]
    timestamp: datetime
