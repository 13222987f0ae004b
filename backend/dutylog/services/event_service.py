"""Event service: officer activity log with role-based visibility."""
import logging
from uuid import UUID

from sqlalchemy import and_, delete, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.core.errors import AppError, ErrorCode, NotFoundError, ValidationFailed
from dutylog.core.policy import (
    Action,
    EventFilter,
    EventQuery,
    Principal,
    Visibility,
    authorize,
    build_event_filter,
)
from dutylog.core.structured_logging import log_json
from dutylog.models.enums import AuditAction, EventStatus
from dutylog.models.event import Event, event_tags
from dutylog.schemas.event import EventCreateRequest, EventUpdateRequest
from dutylog.services.audit_service import AuditService
from dutylog.services.tag_service import TagService

logger = logging.getLogger(__name__)


def _parse_status(value, message: str) -> EventStatus:
    try:
        return EventStatus(value)
    except ValueError:
        raise ValidationFailed(message) from None


def filter_conditions(flt: EventFilter) -> list:
    """Translate an ``EventFilter`` into SQLAlchemy WHERE clauses."""
    conditions = [Event.organization_id == flt.organization_id]

    if flt.visibility == Visibility.OWN:
        conditions.append(Event.officer_id == flt.principal_id)
    elif flt.visibility == Visibility.OFFICERS:
        conditions.append(Event.officer_id.in_(flt.officer_ids))
    else:
        conditions.append(
            or_(
                and_(Event.officer_id == flt.principal_id, Event.status == EventStatus.DRAFT),
                Event.status == EventStatus.SUBMITTED,
            )
        )

    if flt.status is not None:
        conditions.append(Event.status == flt.status)
    if flt.starts_at is not None:
        conditions.append(Event.start_time >= flt.starts_at)
    if flt.ends_before is not None:
        conditions.append(Event.start_time < flt.ends_before)
    if flt.tag_ids:
        # any requested tag matches; applied before LIMIT/OFFSET
        conditions.append(
            exists().where(
                event_tags.c.event_id == Event.id,
                event_tags.c.tag_id.in_(flt.tag_ids),
            )
        )
    return conditions


class EventService:
    """Service for event CRUD and listing."""

    def __init__(self, db: AsyncSession):
        """Initialize event service.

        Args:
            db: Database session
        """
        self.db = db
        self.audit_service = AuditService(db)
        self.tag_service = TagService(db)

    async def list_events(
        self,
        principal: Principal,
        query: EventQuery,
    ) -> tuple[list[Event], dict[str, int]]:
        """List events visible to the caller, newest start time first.

        Args:
            principal: Acting principal with profile
            query: Parsed listing parameters

        Returns:
            Tuple of (events on the requested page, pagination dict)
        """
        flt = build_event_filter(principal, query)
        conditions = filter_conditions(flt)

        total = await self.db.scalar(select(func.count(Event.id)).where(*conditions))

        result = await self.db.execute(
            select(Event)
            .where(*conditions)
            .order_by(Event.start_time.desc(), Event.id)
            .offset(flt.offset)
            .limit(flt.limit)
        )
        events = list(result.scalars().all())
        return events, flt.pagination(total or 0)

    async def _get_event(self, event_id: UUID) -> Event:
        result = await self.db.execute(select(Event).where(Event.id == event_id))
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundError("Event not found")
        return event

    async def create_event(self, principal: Principal, payload: EventCreateRequest) -> Event:
        """Log a new event for the caller.

        Unknown or foreign tag ids are dropped rather than rejected.

        Args:
            principal: Acting principal with profile
            payload: Event fields

        Returns:
            Created Event with its tags

        Raises:
            ValidationFailed: Missing start time or invalid status
        """
        authorize(principal, Action.CREATE).enforce()
        profile = principal.profile

        if payload.start_time is None:
            raise ValidationFailed("Start time is required")
        status = _parse_status(
            payload.status or EventStatus.DRAFT.value,
            'Invalid status. Must be "draft" or "submitted"',
        )

        tags = await self.tag_service.resolve_tags(profile.organization_id, payload.tag_ids)

        event = Event(
            organization_id=profile.organization_id,
            officer_id=principal.id,
            officer_name=profile.full_name or profile.email,
            start_time=payload.start_time,
            end_time=payload.end_time,
            notes=payload.notes or "",
            involved_parties=payload.involved_parties or None,
            status=status,
        )
        event.tags = sorted(tags, key=lambda t: t.name)
        self.db.add(event)
        await self.db.flush()

        log_json(
            logger,
            logging.INFO,
            "event_created",
            event_id=str(event.id),
            status=status.value,
            tag_count=len(tags),
        )
        return event

    async def update_event(
        self,
        principal: Principal,
        event_id: UUID,
        payload: EventUpdateRequest,
    ) -> Event:
        """Apply a partial update to an event.

        Non-admins may only update their own drafts.

        Raises:
            NotFoundError: If the event does not exist
            AppError: CROSS_TENANT, NOT_OWNER or INSUFFICIENT_ROLE
            ValidationFailed: Invalid status or cleared start time
        """
        event = await self._get_event(event_id)
        authorize(principal, Action.UPDATE, event).enforce()

        fields = payload.model_fields_set

        if "status" in fields:
            event.status = _parse_status(payload.status, "Invalid status")
        if "start_time" in fields:
            if payload.start_time is None:
                raise ValidationFailed("Start time is required")
            event.start_time = payload.start_time
        if "end_time" in fields:
            event.end_time = payload.end_time
        if "notes" in fields:
            event.notes = payload.notes or ""
        if "involved_parties" in fields:
            event.involved_parties = payload.involved_parties or None
        if "tag_ids" in fields:
            tags = await self.tag_service.resolve_tags(event.organization_id, payload.tag_ids)
            event.tags = sorted(tags, key=lambda t: t.name)

        await self.db.flush()
        return event

    async def delete_event(self, principal: Principal, event_id: UUID) -> None:
        """Delete one event; its tag links cascade.

        Raises:
            NotFoundError: If the event does not exist
            AppError: CROSS_TENANT, NOT_OWNER or INSUFFICIENT_ROLE
        """
        event = await self._get_event(event_id)
        authorize(principal, Action.DELETE, event).enforce()

        await self.audit_service.log(
            organization_id=event.organization_id,
            user_id=principal.id,
            action=AuditAction.EVENT_DELETE,
            entity_type="event",
            entity_id=event.id,
            diff_json={
                "officer_id": str(event.officer_id) if event.officer_id else None,
                "status": event.status.value,
            },
        )
        await self.db.execute(delete(Event).where(Event.id == event.id))

    async def bulk_delete(self, principal: Principal, event_ids: list[UUID] | None) -> int:
        """Delete several events of the caller's organization (admin only).

        Nothing is deleted if any id belongs to another organization.

        Returns:
            Number of events actually deleted

        Raises:
            ValidationFailed: If ``event_ids`` is missing or empty
            AppError: CROSS_TENANT with ``invalid_event_ids``
        """
        authorize(principal, Action.BULK_DELETE_EVENTS).enforce()
        if not event_ids:
            raise ValidationFailed("event_ids array is required")

        organization_id = principal.profile.organization_id
        ids = list(dict.fromkeys(event_ids))

        result = await self.db.execute(
            select(Event.id, Event.organization_id).where(Event.id.in_(ids))
        )
        invalid = [str(row.id) for row in result if row.organization_id != organization_id]
        if invalid:
            raise AppError(
                ErrorCode.CROSS_TENANT,
                "Some events do not belong to your organization",
                extra={"invalid_event_ids": invalid},
            )

        deleted = await self.db.execute(
            delete(Event).where(Event.id.in_(ids), Event.organization_id == organization_id)
        )
        deleted_count = deleted.rowcount or 0

        await self.audit_service.log(
            organization_id=organization_id,
            user_id=principal.id,
            action=AuditAction.EVENT_BULK_DELETE,
            entity_type="organization",
            entity_id=organization_id,
            diff_json={"event_ids": [str(i) for i in ids], "deleted_count": deleted_count},
        )
        log_json(logger, logging.INFO, "events_bulk_deleted", deleted_count=deleted_count)
        return deleted_count
