"""Tag endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.api.deps import get_current_principal
from dutylog.core.database import get_db
from dutylog.core.policy import Principal
from dutylog.schemas.invitation import MessageResponse
from dutylog.schemas.tag import (
    TagCreateRequest,
    TagEnvelope,
    TagListEnvelope,
    TagResponse,
    TagUpdateRequest,
)
from dutylog.services.tag_service import TagService

router = APIRouter()


@router.get("/list", response_model=TagListEnvelope)
async def list_tags(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """List the organization's tags ordered by name."""
    tags = await TagService(db).list_tags(principal)
    return TagListEnvelope(tags=[TagResponse.model_validate(t) for t in tags])


@router.post("", response_model=TagEnvelope, status_code=status.HTTP_201_CREATED)
async def create_tag(
    request: TagCreateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Create a tag (admin only).

    Raises:
        400: Blank name or malformed color
        409: Name already used in the organization
    """
    tag = await TagService(db).create_tag(
        principal,
        name=request.name,
        color=request.color,
        description=request.description,
    )
    return TagEnvelope(tag=TagResponse.model_validate(tag))


@router.patch("/{tag_id}", response_model=TagEnvelope)
async def update_tag(
    tag_id: UUID,
    request: TagUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Rename or recolor a tag (admin only)."""
    tag = await TagService(db).update_tag(
        principal,
        tag_id,
        name=request.name,
        color=request.color,
        description=request.description,
        fields_set=frozenset(request.model_fields_set),
    )
    return TagEnvelope(tag=TagResponse.model_validate(tag))


@router.delete("/{tag_id}", response_model=MessageResponse)
async def delete_tag(
    tag_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Delete a tag (admin only); it is detached from all events."""
    await TagService(db).delete_tag(principal, tag_id)
    return MessageResponse(message="Tag deleted successfully")
