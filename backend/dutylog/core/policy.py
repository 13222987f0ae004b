"""Authorization and multi-tenancy rules.

Pure decision functions: they never touch the database. Callers load the
principal's profile and the target resources, pass them in explicitly, and
either inspect the returned ``Decision`` or call ``Decision.enforce()`` to
raise the corresponding ``AppError``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from dutylog.core.errors import AppError, ErrorCode, ValidationFailed
from dutylog.core.time_utils import (
    as_utc,
    parse_iso_date,
    start_of_day,
    start_of_next_day,
    utcnow,
)
from dutylog.models.enums import EventStatus, InvitationStatus, UserRole


class ProfileLike(Protocol):
    id: UUID
    organization_id: UUID
    role: UserRole
    email: str


@dataclass(frozen=True)
class Principal:
    """Authenticated identity resolved from a bearer credential.

    ``profile`` is None until the application profile has been loaded, and
    stays None for identities that have not onboarded yet.
    """

    id: UUID
    email: str
    profile: Any | None = None

    def with_profile(self, profile: Any | None) -> Principal:
        return replace(self, profile=profile)

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.role == UserRole.ADMIN


@dataclass(frozen=True)
class Decision:
    """Outcome of a policy check: Allow, or Deny with a taxonomy reason."""

    allowed: bool
    reason: ErrorCode | None = None
    message: str | None = None

    @classmethod
    def allow(cls) -> Decision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: ErrorCode, message: str) -> Decision:
        return cls(allowed=False, reason=reason, message=message)

    def __bool__(self) -> bool:
        return self.allowed

    def enforce(self) -> None:
        """Raise ``AppError`` when the decision is a denial."""
        if not self.allowed:
            raise AppError(self.reason, self.message)


ALLOW = Decision.allow()


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    BULK_DELETE_EVENTS = "bulk_delete_events"
    MANAGE_TAGS = "manage_tags"
    MANAGE_INVITATIONS = "manage_invitations"
    MANAGE_USERS = "manage_users"
    CHANGE_ROLE = "change_role"
    REMOVE_USER = "remove_user"
    RENAME_ORGANIZATION = "rename_organization"


ADMIN_ACTIONS = frozenset(
    {
        Action.BULK_DELETE_EVENTS,
        Action.MANAGE_TAGS,
        Action.MANAGE_INVITATIONS,
        Action.MANAGE_USERS,
        Action.CHANGE_ROLE,
        Action.REMOVE_USER,
        Action.RENAME_ORGANIZATION,
    }
)

_EVENT_DENIAL_VERBS = {Action.UPDATE: "update", Action.DELETE: "delete"}


# ---------------------------------------------------------------------------
# Tenant boundary
# ---------------------------------------------------------------------------


def authorize(principal: Principal, action: Action, resource: Any | None = None) -> Decision:
    """Decide whether ``principal`` may perform ``action`` on ``resource``.

    Rules, first failing rule wins:
    1. The principal must have a profile (Unauthenticated).
    2. A resource carrying ``organization_id`` must be in the principal's
       organization (CrossTenant).
    3. Admin-only actions require the admin role (InsufficientRole).
    4. Non-admins may only update/delete events they own (NotOwner), and only
       while the event is still a draft (InsufficientRole).
    """
    profile = principal.profile
    if profile is None:
        return Decision.deny(ErrorCode.UNAUTHENTICATED, "User profile not found")

    resource_org = getattr(resource, "organization_id", None)
    if resource_org is not None and resource_org != profile.organization_id:
        return Decision.deny(
            ErrorCode.CROSS_TENANT, "Resource belongs to another organization"
        )

    is_admin = profile.role == UserRole.ADMIN
    if action in ADMIN_ACTIONS and not is_admin:
        return Decision.deny(ErrorCode.INSUFFICIENT_ROLE, "Admin access required")

    if action in _EVENT_DENIAL_VERBS and hasattr(resource, "officer_id") and not is_admin:
        verb = _EVENT_DENIAL_VERBS[action]
        if resource.officer_id != principal.id:
            return Decision.deny(ErrorCode.NOT_OWNER, f"Forbidden: Cannot {verb} this event")
        if resource.status != EventStatus.DRAFT:
            return Decision.deny(
                ErrorCode.INSUFFICIENT_ROLE,
                f"Forbidden: Users can only {verb} draft events",
            )

    return ALLOW


# ---------------------------------------------------------------------------
# Event visibility
# ---------------------------------------------------------------------------


class Visibility(str, Enum):
    """Which rows an event listing may see before optional narrowing."""

    OWN = "own"  # officer_id = principal
    OFFICERS = "officers"  # officer_id IN requested officers
    ADMIN_DEFAULT = "admin_default"  # own drafts OR any submitted


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_uuid_list(value: str | None, name: str) -> tuple[UUID, ...]:
    try:
        return tuple(UUID(part) for part in _split_csv(value))
    except ValueError:
        raise ValidationFailed(f"Invalid {name}: expected comma-separated UUIDs") from None


def _parse_int(value: str | int | None, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"Invalid {name}: must be an integer") from None


@dataclass(frozen=True)
class EventQuery:
    """Validated ``GET /api/events`` query parameters."""

    status: EventStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    officer_ids: tuple[UUID, ...] = ()
    tag_ids: tuple[UUID, ...] = ()
    page: int = 1
    limit: int = 50

    @classmethod
    def from_params(
        cls,
        *,
        status: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        officer_ids: str | None = None,
        tag_ids: str | None = None,
        page: str | int | None = None,
        limit: str | int | None = None,
        default_limit: int = 50,
        max_limit: int = 100,
    ) -> EventQuery:
        """Parse raw query strings, clamping pagination into range.

        Raises:
            ValidationFailed: on malformed status, dates, ids or integers
        """
        parsed_status = None
        if status:
            try:
                parsed_status = EventStatus(status)
            except ValueError:
                raise ValidationFailed(
                    'Invalid status. Must be "draft" or "submitted"'
                ) from None

        try:
            parsed_start = parse_iso_date(start_date) if start_date else None
            parsed_end = parse_iso_date(end_date) if end_date else None
        except ValueError:
            raise ValidationFailed("Invalid date: expected YYYY-MM-DD") from None

        page_value = _parse_int(page, "page")
        limit_value = _parse_int(limit, "limit")

        return cls(
            status=parsed_status,
            start_date=parsed_start,
            end_date=parsed_end,
            officer_ids=_parse_uuid_list(officer_ids, "officer_ids"),
            tag_ids=_parse_uuid_list(tag_ids, "tag_ids"),
            page=max(1, page_value if page_value is not None else 1),
            limit=min(max(1, limit_value if limit_value is not None else default_limit), max_limit),
        )


@dataclass(frozen=True)
class EventFilter:
    """Database-agnostic description of an event listing query."""

    organization_id: UUID
    principal_id: UUID
    visibility: Visibility
    officer_ids: tuple[UUID, ...] = ()
    status: EventStatus | None = None
    starts_at: datetime | None = None
    ends_before: datetime | None = None
    tag_ids: tuple[UUID, ...] = ()
    page: int = 1
    limit: int = 50

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pagination(self, total: int) -> dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "totalPages": math.ceil(total / self.limit) if total else 0,
        }


def build_event_filter(principal: Principal, query: EventQuery) -> EventFilter:
    """Compute the listing filter for ``principal``.

    - Non-admins only see their own events.
    - Admins filtering by officers see those officers' events.
    - Admins otherwise see their own drafts plus every submitted event; other
      officers' drafts never appear.
    """
    authorize(principal, Action.READ).enforce()
    profile = principal.profile

    if profile.role != UserRole.ADMIN:
        visibility = Visibility.OWN
        officer_ids: tuple[UUID, ...] = ()
    elif query.officer_ids:
        visibility = Visibility.OFFICERS
        officer_ids = query.officer_ids
    else:
        visibility = Visibility.ADMIN_DEFAULT
        officer_ids = ()

    return EventFilter(
        organization_id=profile.organization_id,
        principal_id=principal.id,
        visibility=visibility,
        officer_ids=officer_ids,
        status=query.status,
        starts_at=start_of_day(query.start_date) if query.start_date else None,
        ends_before=start_of_next_day(query.end_date) if query.end_date else None,
        tag_ids=query.tag_ids,
        page=query.page,
        limit=query.limit,
    )


# ---------------------------------------------------------------------------
# Admin invariant guard
# ---------------------------------------------------------------------------


def can_change_role(
    actor: ProfileLike, target: ProfileLike, new_role: UserRole, admin_count: int
) -> Decision:
    """Role changes keep at least one admin and never target the actor."""
    if actor.organization_id != target.organization_id:
        return Decision.deny(
            ErrorCode.CROSS_TENANT, "Cannot modify users from other organizations"
        )
    if actor.role != UserRole.ADMIN:
        return Decision.deny(ErrorCode.INSUFFICIENT_ROLE, "Admin access required")
    if actor.id == target.id:
        return Decision.deny(ErrorCode.SELF_ACTION, "Cannot change your own role")
    if target.role == UserRole.ADMIN and new_role == UserRole.USER and admin_count <= 1:
        return Decision.deny(
            ErrorCode.LAST_ADMIN,
            "Cannot demote the last admin. Promote another user to admin first.",
        )
    return ALLOW


def can_remove_user(actor: ProfileLike, target: ProfileLike) -> Decision:
    """Only non-admin members other than the actor can be removed."""
    if actor.organization_id != target.organization_id:
        return Decision.deny(
            ErrorCode.CROSS_TENANT, "Cannot remove users from other organizations"
        )
    if actor.role != UserRole.ADMIN:
        return Decision.deny(ErrorCode.INSUFFICIENT_ROLE, "Admin access required")
    if actor.id == target.id:
        return Decision.deny(ErrorCode.SELF_ACTION, "Cannot remove yourself")
    if target.role == UserRole.ADMIN:
        return Decision.deny(
            ErrorCode.TARGET_IS_ADMIN,
            "Cannot remove an admin. Please demote them to user first.",
        )
    return ALLOW


# ---------------------------------------------------------------------------
# Invitation lifecycle
# ---------------------------------------------------------------------------


def normalize_email(email: str) -> str:
    return email.strip().lower()


def invitation_expiry(now: datetime | None = None, days: int = 7) -> datetime:
    return (now or utcnow()) + timedelta(days=days)


def is_expired(invitation: Any, now: datetime | None = None) -> bool:
    return as_utc(invitation.expires_at) < (now or utcnow())


def check_invitation_active(invitation: Any, now: datetime | None = None) -> Decision:
    """A pending invitation past its expiry can no longer be viewed or accepted."""
    if invitation.status != InvitationStatus.PENDING:
        return Decision.deny(ErrorCode.NOT_FOUND, "Invalid or expired invitation")
    if is_expired(invitation, now):
        return Decision.deny(ErrorCode.EXPIRED, "This invitation has expired")
    return ALLOW


def can_accept_invitation(
    principal: Principal, invitation: Any, now: datetime | None = None
) -> Decision:
    """The invited email, and only an identity without a profile, may accept."""
    decision = check_invitation_active(invitation, now)
    if not decision:
        return decision
    if normalize_email(principal.email or "") != normalize_email(invitation.email):
        return Decision.deny(
            ErrorCode.EMAIL_MISMATCH,
            "Email mismatch. Please log in with the invited email address.",
        )
    if principal.profile is not None:
        return Decision.deny(
            ErrorCode.ALREADY_MEMBER, "User already belongs to an organization"
        )
    return ALLOW


def can_resend_invitation(
    principal: Principal, invitation: Any, now: datetime | None = None
) -> Decision:
    """Resending is limited to the organization's still-valid pending invitations."""
    decision = authorize(principal, Action.MANAGE_INVITATIONS, invitation)
    if not decision:
        return decision
    if invitation.status != InvitationStatus.PENDING:
        return Decision.deny(
            ErrorCode.NOT_FOUND, "Invitation not found or already accepted"
        )
    if is_expired(invitation, now):
        return Decision.deny(
            ErrorCode.EXPIRED,
            "Cannot resend expired invitation. Please create a new one.",
        )
    return ALLOW


@dataclass
class InvitationCandidate:
    """What the create-invitation check needs to know about the target email."""

    email: str
    has_profile: bool = False
    pending_invitation: Any | None = None


def can_create_invitation(principal: Principal, candidate: InvitationCandidate) -> Decision:
    decision = authorize(principal, Action.MANAGE_INVITATIONS)
    if not decision:
        return decision
    if candidate.has_profile:
        return Decision.deny(
            ErrorCode.ALREADY_MEMBER, "User already belongs to an organization"
        )
    if candidate.pending_invitation is not None:
        return Decision.deny(
            ErrorCode.DUPLICATE_PENDING, "Invitation already sent to this email"
        )
    return ALLOW
