"""Pydantic schemas for organization endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class OrganizationSummary(BaseModel):
    """Public organization view embedded in profiles and invitations."""

    id: UUID
    name: str

    model_config = ConfigDict(from_attributes=True)


class OrganizationResponse(BaseModel):
    """Response schema for organization endpoints."""

    id: UUID = Field(..., description="Organization unique identifier")
    name: str = Field(..., description="Organization display name")
    created_at: datetime = Field(..., description="Creation timestamp")

    model_config = ConfigDict(from_attributes=True)


class OrganizationUpdateRequest(BaseModel):
    """Request schema for PATCH /organizations.

    ``name`` is validated by the service so non-string and blank values get
    the same message.
    """

    name: Any = Field(None, description="Organization display name")


class OrganizationEnvelope(BaseModel):
    success: bool = True
    organization: OrganizationResponse
