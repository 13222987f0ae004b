"""Event endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.api.deps import get_current_principal
from dutylog.core.config import get_settings
from dutylog.core.database import get_db
from dutylog.core.policy import EventQuery, Principal
from dutylog.schemas.event import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    EventCreateRequest,
    EventEnvelope,
    EventListEnvelope,
    EventResponse,
    EventUpdateRequest,
    Pagination,
)
from dutylog.schemas.invitation import MessageResponse
from dutylog.services.event_service import EventService

router = APIRouter()
settings = get_settings()


@router.get("", response_model=EventListEnvelope)
async def list_events(
    status_filter: str | None = Query(None, alias="status"),
    start_date: str | None = None,
    end_date: str | None = None,
    officer_ids: str | None = None,
    tag_ids: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """List events visible to the caller.

    Officers see their own events. Admins see their own drafts plus every
    submitted event, or all events of the officers named in ``officer_ids``.

    Args:
        status: "draft" or "submitted"
        start_date: Inclusive lower bound on start time (YYYY-MM-DD, UTC)
        end_date: Inclusive upper bound on start date (YYYY-MM-DD, UTC)
        officer_ids: Comma-separated officer ids (admins only)
        tag_ids: Comma-separated tag ids; events with any of them match
        page: 1-indexed page number
        limit: Page size, 1 to 100
    """
    query = EventQuery.from_params(
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        officer_ids=officer_ids,
        tag_ids=tag_ids,
        page=page,
        limit=limit,
        default_limit=settings.events_default_page_size,
        max_limit=settings.events_max_page_size,
    )
    events, pagination = await EventService(db).list_events(principal, query)
    return EventListEnvelope(
        events=[EventResponse.model_validate(e) for e in events],
        pagination=Pagination(
            page=pagination["page"],
            limit=pagination["limit"],
            total=pagination["total"],
            total_pages=pagination["totalPages"],
        ),
    )


@router.post("", response_model=EventEnvelope, status_code=status.HTTP_201_CREATED)
async def create_event(
    request: EventCreateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Log a new event for the caller."""
    event = await EventService(db).create_event(principal, request)
    return EventEnvelope(event=EventResponse.model_validate(event))


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_events(
    request: BulkDeleteRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Delete several events at once (admin only).

    Raises:
        400: ``event_ids`` missing or empty
        403: Not an admin, or some ids belong to another organization
            (listed in ``invalid_event_ids``)
    """
    deleted_count = await EventService(db).bulk_delete(principal, request.event_ids)
    suffix = "" if deleted_count == 1 else "s"
    return BulkDeleteResponse(
        deleted_count=deleted_count,
        message=f"Successfully deleted {deleted_count} event{suffix}",
    )


@router.patch("/{event_id}", response_model=EventEnvelope)
async def update_event(
    event_id: UUID,
    request: EventUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Partially update an event. Officers may only edit their own drafts."""
    event = await EventService(db).update_event(principal, event_id, request)
    return EventEnvelope(event=EventResponse.model_validate(event))


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Delete an event. Officers may only delete their own drafts."""
    await EventService(db).delete_event(principal, event_id)
    return MessageResponse(message="Event deleted successfully")
