"""Own profile endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.api.deps import get_current_principal
from dutylog.core.database import get_db
from dutylog.core.policy import Principal
from dutylog.schemas.user import ProfileEnvelope, ProfileResponse, ProfileUpdateRequest
from dutylog.services.user_service import UserService

router = APIRouter()


@router.get("", response_model=ProfileEnvelope)
async def get_profile(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Get the caller's profile with its organization."""
    user = await UserService(db).get_own_profile(principal)
    return ProfileEnvelope(profile=ProfileResponse.model_validate(user))


@router.patch("", response_model=ProfileEnvelope)
async def update_profile(
    request: ProfileUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Update the caller's name, badge number or theme.

    Only fields present in the body are changed; ``badge_no: null`` clears
    the badge number.
    """
    updates = request.model_dump(exclude_unset=True)
    user = await UserService(db).update_own_profile(principal, updates)
    return ProfileEnvelope(profile=ProfileResponse.model_validate(user))
