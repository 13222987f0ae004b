"""Pydantic schemas for event endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dutylog.models.enums import EventStatus
from dutylog.schemas.tag import TagSummary


class EventResponse(BaseModel):
    """Event with its tags flattened to ``{id, name, color}``."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    officer_id: UUID | None = None
    officer_name: str
    start_time: datetime
    end_time: datetime | None = None
    notes: str
    involved_parties: str | None = None
    status: EventStatus
    created_at: datetime
    updated_at: datetime
    tags: list[TagSummary] = Field(default_factory=list)


class EventCreateRequest(BaseModel):
    """Request schema for POST /events.

    ``start_time`` and ``status`` are checked by the event service.
    """

    start_time: datetime | None = None
    end_time: datetime | None = None
    tag_ids: list[UUID] = Field(default_factory=list)
    notes: str | None = ""
    involved_parties: str | None = None
    status: str | None = EventStatus.DRAFT.value


class EventUpdateRequest(BaseModel):
    """Request schema for PATCH /events/{id}.

    Partial update: only fields present in the body are applied. ``tag_ids``
    replaces the event's tag links when present.
    """

    start_time: datetime | None = None
    end_time: datetime | None = None
    tag_ids: list[UUID] | None = None
    notes: str | None = None
    involved_parties: str | None = None
    status: str | None = None


class BulkDeleteRequest(BaseModel):
    event_ids: list[UUID] | None = None


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int
    limit: int
    total: int
    total_pages: int = Field(..., alias="totalPages")


class EventEnvelope(BaseModel):
    success: bool = True
    event: EventResponse


class EventListEnvelope(BaseModel):
    success: bool = True
    events: list[EventResponse] = Field(default_factory=list)
    pagination: Pagination


class BulkDeleteResponse(BaseModel):
    success: bool = True
    deleted_count: int
    message: str
