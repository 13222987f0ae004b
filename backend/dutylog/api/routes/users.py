"""User management endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.api.deps import client_ip, get_current_principal
from dutylog.core.database import get_db
from dutylog.core.policy import Principal
from dutylog.schemas.user import (
    MemberUpdateRequest,
    RemovedUser,
    RoleUpdateRequest,
    UserEnvelope,
    UserListEnvelope,
    UserRemovedEnvelope,
    UserResponse,
)
from dutylog.services.user_service import UserService

router = APIRouter()


@router.get("/list", response_model=UserListEnvelope)
async def list_users(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """List all users in the organization (admin only).

    Args:
        principal: Current admin
        db: Database session

    Returns:
        Users of the caller's organization, newest first
    """
    users = await UserService(db).list_users(principal)
    return UserListEnvelope(users=[UserResponse.model_validate(u) for u in users])


@router.patch("/list", response_model=UserEnvelope)
async def update_member(
    request: MemberUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Update a member's name or badge number (admin only)."""
    updates = request.model_dump(include={"full_name", "badge_no"}, exclude_unset=True)
    user = await UserService(db).update_member(principal, request.user_id, updates)
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.patch("/{user_id}/role", response_model=UserEnvelope)
async def change_role(
    user_id: UUID,
    request: RoleUpdateRequest,
    http_request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Change a member's role (admin only).

    Raises:
        400: Invalid role, or the change would leave no admin
        403: Not an admin, own role, or another organization's member
        404: Member not found
    """
    user = await UserService(db).change_role(
        principal,
        user_id,
        request.role,
        ip_address=client_ip(http_request),
    )
    return UserEnvelope(
        message="User role updated successfully",
        user=UserResponse.model_validate(user),
    )


@router.delete("/{user_id}", response_model=UserRemovedEnvelope)
async def remove_user(
    user_id: UUID,
    http_request: Request,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Remove a non-admin member and their identity (admin only)."""
    removed = await UserService(db).remove_user(
        principal,
        user_id,
        ip_address=client_ip(http_request),
    )
    return UserRemovedEnvelope(user=RemovedUser(**removed))
