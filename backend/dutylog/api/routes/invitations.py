"""Invitation endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.api.deps import client_ip, get_current_principal
from dutylog.core.database import get_db
from dutylog.core.email import Mailer, get_mailer
from dutylog.core.policy import Principal
from dutylog.schemas.invitation import (
    AcceptInviteEnvelope,
    AcceptInviteRequest,
    InvitationEnvelope,
    InvitationListEnvelope,
    InvitationResponse,
    InviteRequest,
    MessageResponse,
    PublicInvitationEnvelope,
    PublicInvitationResponse,
)
from dutylog.schemas.user import UserResponse
from dutylog.services.invitation_service import InvitationService

router = APIRouter()


@router.post("/send", response_model=InvitationEnvelope, status_code=status.HTTP_201_CREATED)
async def send_invitation(
    request: InviteRequest,
    http_request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Invite an email address to the caller's organization (admin only).

    Args:
        request: Invitation details (email, role)
        http_request: FastAPI request (for client IP)
        principal: Current admin
        db: Database session
        mailer: Outgoing mail transport

    Returns:
        Created invitation (the token travels only in the email)

    Raises:
        400: Invalid email/role, already a member, pending duplicate or
            already registered
        403: Not an admin
        500: The email could not be sent (the invitation is withdrawn)
    """
    invitation = await InvitationService(db).create_invitation(
        principal,
        email=request.email,
        role=request.role,
        mailer=mailer,
        ip_address=client_ip(http_request),
    )
    return InvitationEnvelope(invitation=InvitationResponse.model_validate(invitation))


@router.get("/list", response_model=InvitationListEnvelope)
async def list_invitations(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """List pending invitations of the caller's organization (admin only)."""
    invitations = await InvitationService(db).list_invitations(principal)
    return InvitationListEnvelope(
        invitations=[InvitationResponse.model_validate(i) for i in invitations]
    )


@router.get("/accept/{token}", response_model=PublicInvitationEnvelope)
async def get_invitation(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """Look up an invitation by token. No authentication required.

    Raises:
        404: Unknown or no longer pending token
        400: The invitation has expired (it is marked expired)
    """
    invitation = await InvitationService(db).get_by_token(token)
    return PublicInvitationEnvelope(
        invitation=PublicInvitationResponse.model_validate(invitation)
    )


@router.post("/accept/{token}", response_model=AcceptInviteEnvelope)
async def accept_invitation(
    token: str,
    request: AcceptInviteRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Accept an invitation as the signed-in identity and create its profile."""
    user = await InvitationService(db).accept_invitation(principal, token, request.full_name)
    return AcceptInviteEnvelope(user=UserResponse.model_validate(user))


@router.post("/resend/{invitation_id}", response_model=MessageResponse)
async def resend_invitation(
    invitation_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Email a pending invitation again (admin only)."""
    await InvitationService(db).resend_invitation(principal, invitation_id, mailer)
    return MessageResponse(message="Invitation email resent successfully")


@router.delete("/{invitation_id}", response_model=MessageResponse)
async def revoke_invitation(
    invitation_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Revoke an invitation (admin only)."""
    await InvitationService(db).revoke_invitation(principal, invitation_id)
    return MessageResponse(message="Invitation revoked successfully")
