"""Audit service for logging administrative actions."""
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.models.audit_event import AuditEvent
from dutylog.models.enums import AuditAction


class AuditService:
    """Service for creating audit trail entries."""

    def __init__(self, db: AsyncSession):
        """Initialize audit service.

        Args:
            db: Database session
        """
        self.db = db

    async def log(
        self,
        organization_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        user_id: Optional[UUID] = None,
        diff_json: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> AuditEvent:
        """Create an audit log entry.

        The entry is flushed, not committed; it shares the caller's
        transaction.

        Args:
            organization_id: Organization ID
            action: Action being performed
            entity_type: Type of entity being acted upon
            entity_id: ID of entity being acted upon
            user_id: ID of user performing action (None for system actions)
            diff_json: Before/after diff for update actions
            ip_address: Client IP address

        Returns:
            Created AuditEvent instance
        """
        audit_event = AuditEvent(
            organization_id=organization_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            diff_json=diff_json,
            ip_address=ip_address,
        )
        self.db.add(audit_event)
        await self.db.flush()
        return audit_event

    async def log_organization_create(
        self,
        organization_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Log organization creation during onboarding."""
        return await self.log(
            organization_id=organization_id,
            user_id=user_id,
            action=AuditAction.ORG_CREATE,
            entity_type="organization",
            entity_id=organization_id,
        )

    async def log_organization_update(
        self,
        organization_id: UUID,
        user_id: UUID,
        diff: Optional[dict[str, Any]] = None,
    ) -> AuditEvent:
        """Log organization update.

        Args:
            organization_id: Organization ID
            user_id: ID of user who updated
            diff: Before/after diff

        Returns:
            Created AuditEvent instance
        """
        return await self.log(
            organization_id=organization_id,
            user_id=user_id,
            action=AuditAction.ORG_UPDATE,
            entity_type="organization",
            entity_id=organization_id,
            diff_json=diff,
        )
