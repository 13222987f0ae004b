"""Organization endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.api.deps import get_current_principal
from dutylog.core.database import get_db
from dutylog.core.policy import Principal
from dutylog.schemas.organization import (
    OrganizationEnvelope,
    OrganizationResponse,
    OrganizationUpdateRequest,
)
from dutylog.services.org_service import OrgService

router = APIRouter()


@router.patch("", response_model=OrganizationEnvelope)
async def update_organization(
    request: OrganizationUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Rename the caller's organization.

    Args:
        request: Organization update data
        principal: Current admin
        db: Database session

    Returns:
        Updated organization

    Raises:
        400: Missing or blank name
        403: Not an admin
    """
    org = await OrgService(db).rename_organization(principal, request.name)
    return OrganizationEnvelope(organization=OrganizationResponse.model_validate(org))
