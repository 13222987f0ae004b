"""Pydantic schemas for invitation endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from dutylog.models.enums import InvitationStatus, UserRole
from dutylog.schemas.organization import OrganizationSummary
from dutylog.schemas.user import UserResponse


class InviteRequest(BaseModel):
    """Request schema for POST /invitations/send.

    Email format and role are checked by the invitation service.
    """

    email: str | None = Field(None, description="Email address of the user to invite")
    role: str | None = Field(
        default=UserRole.USER.value, description="Role to assign to the invited user"
    )


class InviterSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: str


class InvitationResponse(BaseModel):
    """Invitation as seen by admins of the issuing organization.

    The token is never returned; it only travels in the emailed link.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Invitation unique identifier")
    organization_id: UUID
    email: str = Field(..., description="Invitee email address (normalized)")
    role: UserRole = Field(..., description="Assigned role")
    status: InvitationStatus
    expires_at: datetime = Field(..., description="Invitation expiry timestamp")
    created_at: datetime
    invited_by: InviterSummary | None = Field(
        None, validation_alias=AliasChoices("inviter", "invited_by")
    )


class PublicInvitationResponse(BaseModel):
    """Invitation as seen through its token, before sign-in."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    role: UserRole
    status: InvitationStatus
    expires_at: datetime
    organization: OrganizationSummary


class AcceptInviteRequest(BaseModel):
    """Request schema for POST /invitations/accept/{token}."""

    model_config = ConfigDict(populate_by_name=True)

    full_name: str | None = Field(default=None, alias="fullName")


class InvitationEnvelope(BaseModel):
    success: bool = True
    invitation: InvitationResponse


class PublicInvitationEnvelope(BaseModel):
    success: bool = True
    invitation: PublicInvitationResponse


class InvitationListEnvelope(BaseModel):
    success: bool = True
    invitations: list[InvitationResponse] = Field(default_factory=list)


class AcceptInviteEnvelope(BaseModel):
    success: bool = True
    user: UserResponse


class MessageResponse(BaseModel):
    success: bool = True
    message: str
