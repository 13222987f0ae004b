"""SQLAlchemy models."""

from dutylog.models.audit_event import AuditEvent
from dutylog.models.base import Base, BaseModel
from dutylog.models.enums import AuditAction, EventStatus, InvitationStatus, Theme, UserRole
from dutylog.models.event import Event, event_tags
from dutylog.models.identity import Identity
from dutylog.models.invitation import Invitation
from dutylog.models.organization import Organization
from dutylog.models.tag import Tag
from dutylog.models.user import User

__all__ = [
    "Base",
    "BaseModel",
    "UserRole",
    "Theme",
    "EventStatus",
    "InvitationStatus",
    "AuditAction",
    "Identity",
    "Organization",
    "User",
    "Event",
    "event_tags",
    "Tag",
    "Invitation",
    "AuditEvent",
]
