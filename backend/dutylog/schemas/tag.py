"""Pydantic schemas for tag endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TagSummary(BaseModel):
    """Tag view embedded in events."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    color: str


class TagResponse(TagSummary):
    organization_id: UUID
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class TagCreateRequest(BaseModel):
    """Request schema for POST /tags. Validation happens in the tag service."""

    name: str | None = Field(None, description="Tag name, unique within the organization")
    color: str | None = Field(None, description="Hex color (#RRGGBB), defaults to #3B82F6")
    description: str | None = None


class TagUpdateRequest(BaseModel):
    """Request schema for PATCH /tags/{id}. Omitted fields are left unchanged."""

    name: str | None = None
    color: str | None = None
    description: str | None = None


class TagEnvelope(BaseModel):
    success: bool = True
    tag: TagResponse


class TagListEnvelope(BaseModel):
    success: bool = True
    tags: list[TagResponse] = Field(default_factory=list)
