"""Pydantic schemas for profile and user management endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dutylog.models.enums import Theme, UserRole
from dutylog.schemas.organization import OrganizationResponse, OrganizationSummary


class UserResponse(BaseModel):
    """Response schema for a user profile."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="User id (equals the identity id)")
    organization_id: UUID = Field(..., description="Owning organization")
    email: str = Field(..., description="User email address")
    full_name: str = Field(..., description="Display name")
    badge_no: str | None = Field(None, description="Badge number")
    role: UserRole = Field(..., description="User role (admin, user)")
    theme: Theme = Field(..., description="UI theme preference")
    created_at: datetime
    updated_at: datetime


class ProfileResponse(UserResponse):
    """Own profile with the organization's public view."""

    organization: OrganizationSummary | None = None


class ProfileEnvelope(BaseModel):
    success: bool = True
    profile: ProfileResponse


class ProfileUpdateRequest(BaseModel):
    """Request schema for PATCH /profile. Omitted fields are left unchanged."""

    full_name: str | None = Field(None, max_length=255)
    badge_no: str | None = Field(None, max_length=64)
    theme: Theme | None = None


class MemberUpdateRequest(BaseModel):
    """Request schema for PATCH /users/list (admin edits a member's display fields)."""

    user_id: UUID = Field(..., description="Member to update")
    full_name: str | None = Field(None, max_length=255)
    badge_no: str | None = Field(None, max_length=64)


class RoleUpdateRequest(BaseModel):
    """Request schema for PATCH /users/{id}/role.

    ``role`` is checked by ``UserService.change_role`` so the error message stays stable.
    """

    role: str | None = None


class UserEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    user: UserResponse


class UserListEnvelope(BaseModel):
    success: bool = True
    users: list[UserResponse] = Field(default_factory=list)


class RemovedUser(BaseModel):
    id: UUID
    full_name: str
    email: str


class UserRemovedEnvelope(BaseModel):
    success: bool = True
    message: str = "User removed successfully"
    user: RemovedUser


class SetupProfileEnvelope(BaseModel):
    success: bool = True
    user: UserResponse
    organization: OrganizationResponse
