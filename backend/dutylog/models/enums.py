"""Enumerations for roles, lifecycle states and audit actions."""

from enum import Enum


class UserRole(str, Enum):
    """User role within an organization.

    ADMIN manages tags, invitations, members and sees every submitted event.
    USER logs and manages their own events.
    """

    ADMIN = "admin"
    USER = "user"


class Theme(str, Enum):
    """UI theme preference stored on the profile."""

    LIGHT = "light"
    DARK = "dark"


class EventStatus(str, Enum):
    """Event lifecycle.

    - DRAFT: editable and deletable by its officer
    - SUBMITTED: visible organization-wide, only admins may change it
    """

    DRAFT = "draft"
    SUBMITTED = "submitted"


class InvitationStatus(str, Enum):
    """Invitation lifecycle. ACCEPTED and EXPIRED are terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class AuditAction(str, Enum):
    """Audit action enumeration for tracking administrative actions."""

    # Organization
    ORG_CREATE = "organization.create"
    ORG_UPDATE = "organization.update"

    # User
    USER_CREATE = "user.create"
    USER_UPDATE = "user.update"
    USER_DELETE = "user.delete"
    USER_ROLE_CHANGE = "user.role_change"

    # Invitation
    INVITATION_CREATE = "invitation.create"
    INVITATION_ACCEPT = "invitation.accept"
    INVITATION_EXPIRE = "invitation.expire"
    INVITATION_REVOKE = "invitation.revoke"

    # Tag
    TAG_CREATE = "tag.create"
    TAG_UPDATE = "tag.update"
    TAG_DELETE = "tag.delete"

    # Event
    EVENT_DELETE = "event.delete"
    EVENT_BULK_DELETE = "event.bulk_delete"
