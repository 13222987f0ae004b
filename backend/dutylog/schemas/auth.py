"""Pydantic schemas for authentication and onboarding endpoints."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupRequest(BaseModel):
    """Request schema for POST /auth/signup."""

    email: EmailStr = Field(..., description="Email address for the new identity")
    password: str = Field(..., description="Password (strength rules apply)")


class LoginRequest(BaseModel):
    """Request schema for POST /auth/login."""

    email: EmailStr = Field(..., description="Identity email address")
    password: str = Field(..., min_length=1, description="Identity password")


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1, description="Refresh token from login")


class TokenResponse(BaseModel):
    """Response schema for signup, login and refresh.

    ``refresh_token`` is omitted on refresh.
    """

    access_token: str = Field(..., description="JWT access token for API authentication")
    refresh_token: str | None = Field(default=None, description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")
    expires_in: int | None = Field(default=None, description="Seconds until access token expires")
    user_id: UUID = Field(..., description="Identity id (the principal)")


class SetupProfileRequest(BaseModel):
    """Request schema for POST /auth/setup-profile.

    Fields are optional at the schema level so a missing one is reported as
    "Missing required fields" rather than a generic validation error.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
    email: str | None = None
    full_name: str | None = Field(default=None, alias="fullName")
    organization_name: str | None = Field(default=None, alias="organizationName")


class CheckProfileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_profile: bool = Field(..., alias="hasProfile")
    has_organization: bool = Field(..., alias="hasOrganization")
    user_id: UUID = Field(..., alias="userId")
