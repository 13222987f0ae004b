"""Unit tests for authorization, visibility and invitation policies."""

from datetime import UTC, date, datetime, timedelta
from types import SimpleNamespace
from uuid import uuid4

import pytest

from dutylog.core.errors import AppError, ErrorCode, ValidationFailed
from dutylog.core.policy import (
    Action,
    EventQuery,
    InvitationCandidate,
    Principal,
    Visibility,
    authorize,
    build_event_filter,
    can_accept_invitation,
    can_change_role,
    can_create_invitation,
    can_remove_user,
    can_resend_invitation,
    check_invitation_active,
    invitation_expiry,
    normalize_email,
)
from dutylog.models.enums import EventStatus, InvitationStatus, UserRole

ORG_A = uuid4()
ORG_B = uuid4()


def make_profile(role=UserRole.USER, organization_id=ORG_A, email="someone@example.com"):
    return SimpleNamespace(id=uuid4(), organization_id=organization_id, role=role, email=email)


def make_principal(profile=None, email="someone@example.com"):
    if profile is None:
        return Principal(id=uuid4(), email=email)
    return Principal(id=profile.id, email=profile.email, profile=profile)


def make_event(officer_id, status=EventStatus.DRAFT, organization_id=ORG_A):
    return SimpleNamespace(organization_id=organization_id, officer_id=officer_id, status=status)


def make_invitation(
    email="new@example.com",
    status=InvitationStatus.PENDING,
    expires_at=None,
    organization_id=ORG_A,
):
    return SimpleNamespace(
        organization_id=organization_id,
        email=email,
        status=status,
        expires_at=expires_at or datetime.now(UTC) + timedelta(days=7),
    )


class TestAuthorize:
    def test_profile_required(self):
        decision = authorize(make_principal(), Action.READ)
        assert not decision
        assert decision.reason == ErrorCode.UNAUTHENTICATED

    def test_cross_tenant_resource_denied_even_for_admin(self):
        admin = make_principal(make_profile(UserRole.ADMIN))
        tag = SimpleNamespace(organization_id=ORG_B)

        decision = authorize(admin, Action.MANAGE_TAGS, tag)

        assert decision.reason == ErrorCode.CROSS_TENANT

    @pytest.mark.parametrize(
        "action",
        [
            Action.MANAGE_TAGS,
            Action.MANAGE_INVITATIONS,
            Action.MANAGE_USERS,
            Action.BULK_DELETE_EVENTS,
            Action.RENAME_ORGANIZATION,
        ],
    )
    def test_admin_actions_require_admin(self, action):
        officer = make_principal(make_profile(UserRole.USER))
        admin = make_principal(make_profile(UserRole.ADMIN))

        assert authorize(officer, action).reason == ErrorCode.INSUFFICIENT_ROLE
        assert authorize(admin, action)

    def test_officer_can_update_own_draft(self):
        officer = make_principal(make_profile())
        assert authorize(officer, Action.UPDATE, make_event(officer.id))

    def test_officer_cannot_update_someone_elses_event(self):
        officer = make_principal(make_profile())
        decision = authorize(officer, Action.UPDATE, make_event(uuid4()))

        assert decision.reason == ErrorCode.NOT_OWNER
        assert decision.message == "Forbidden: Cannot update this event"

    def test_officer_cannot_delete_submitted_event(self):
        officer = make_principal(make_profile())
        event = make_event(officer.id, EventStatus.SUBMITTED)

        decision = authorize(officer, Action.DELETE, event)

        assert decision.reason == ErrorCode.INSUFFICIENT_ROLE
        assert decision.message == "Forbidden: Users can only delete draft events"

    def test_admin_can_update_any_event_in_organization(self):
        admin = make_principal(make_profile(UserRole.ADMIN))
        event = make_event(uuid4(), EventStatus.SUBMITTED)
        assert authorize(admin, Action.UPDATE, event)

    def test_enforce_raises_app_error(self):
        with pytest.raises(AppError) as exc_info:
            authorize(make_principal(), Action.READ).enforce()
        assert exc_info.value.status_code == 401


class TestEventQuery:
    def test_defaults(self):
        query = EventQuery.from_params()
        assert query.page == 1
        assert query.limit == 50
        assert query.officer_ids == ()

    def test_pagination_is_clamped(self):
        query = EventQuery.from_params(page="0", limit="500")
        assert query.page == 1
        assert query.limit == 100

        query = EventQuery.from_params(page="-3", limit="0")
        assert query.page == 1
        assert query.limit == 1

    def test_parses_csv_ids_and_dates(self):
        a, b = uuid4(), uuid4()
        query = EventQuery.from_params(
            officer_ids=f"{a}, {b}",
            start_date="2026-01-01",
            end_date="2026-01-31T12:00:00Z",
            status="submitted",
        )
        assert query.officer_ids == (a, b)
        assert query.start_date == date(2026, 1, 1)
        assert query.end_date == date(2026, 1, 31)
        assert query.status == EventStatus.SUBMITTED

    @pytest.mark.parametrize(
        "params",
        [
            {"status": "archived"},
            {"start_date": "yesterday"},
            {"tag_ids": "not-a-uuid"},
            {"page": "two"},
        ],
    )
    def test_rejects_malformed_params(self, params):
        with pytest.raises(ValidationFailed):
            EventQuery.from_params(**params)


class TestBuildEventFilter:
    def test_officer_sees_own_events_only(self):
        officer = make_principal(make_profile())
        flt = build_event_filter(officer, EventQuery.from_params(officer_ids=str(uuid4())))

        assert flt.visibility == Visibility.OWN
        assert flt.officer_ids == ()
        assert flt.organization_id == ORG_A

    def test_admin_default_visibility(self):
        admin = make_principal(make_profile(UserRole.ADMIN))
        flt = build_event_filter(admin, EventQuery.from_params())
        assert flt.visibility == Visibility.ADMIN_DEFAULT

    def test_admin_filtering_by_officers(self):
        admin = make_principal(make_profile(UserRole.ADMIN))
        officer_id = uuid4()
        flt = build_event_filter(admin, EventQuery.from_params(officer_ids=str(officer_id)))

        assert flt.visibility == Visibility.OFFICERS
        assert flt.officer_ids == (officer_id,)

    def test_end_date_is_inclusive(self):
        admin = make_principal(make_profile(UserRole.ADMIN))
        flt = build_event_filter(
            admin, EventQuery.from_params(start_date="2026-03-01", end_date="2026-03-01")
        )
        assert flt.starts_at == datetime(2026, 3, 1, tzinfo=UTC)
        assert flt.ends_before == datetime(2026, 3, 2, tzinfo=UTC)

    def test_pagination_metadata(self):
        admin = make_principal(make_profile(UserRole.ADMIN))
        flt = build_event_filter(admin, EventQuery.from_params(page="2", limit="100"))

        assert flt.offset == 100
        assert flt.pagination(120) == {"page": 2, "limit": 100, "total": 120, "totalPages": 2}
        assert flt.pagination(0)["totalPages"] == 0


class TestAdminGuards:
    def test_cannot_change_own_role(self):
        actor = make_profile(UserRole.ADMIN)
        decision = can_change_role(actor, actor, UserRole.USER, admin_count=2)

        assert decision.reason == ErrorCode.SELF_ACTION
        assert decision.message == "Cannot change your own role"

    def test_last_admin_cannot_be_demoted(self):
        actor = make_profile(UserRole.ADMIN)
        target = make_profile(UserRole.ADMIN)

        decision = can_change_role(actor, target, UserRole.USER, admin_count=1)

        assert decision.reason == ErrorCode.LAST_ADMIN

    def test_demotion_allowed_with_two_admins(self):
        actor = make_profile(UserRole.ADMIN)
        target = make_profile(UserRole.ADMIN)
        assert can_change_role(actor, target, UserRole.USER, admin_count=2)

    def test_promotion_allowed(self):
        actor = make_profile(UserRole.ADMIN)
        target = make_profile(UserRole.USER)
        assert can_change_role(actor, target, UserRole.ADMIN, admin_count=1)

    def test_role_change_across_organizations(self):
        actor = make_profile(UserRole.ADMIN)
        target = make_profile(UserRole.USER, organization_id=ORG_B)

        decision = can_change_role(actor, target, UserRole.ADMIN, admin_count=1)

        assert decision.reason == ErrorCode.CROSS_TENANT

    def test_remove_user_rules(self):
        actor = make_profile(UserRole.ADMIN)

        assert can_remove_user(actor, make_profile(UserRole.USER))
        assert can_remove_user(actor, actor).reason == ErrorCode.SELF_ACTION
        assert can_remove_user(actor, make_profile(UserRole.ADMIN)).reason == (
            ErrorCode.TARGET_IS_ADMIN
        )


class TestInvitationPolicies:
    def test_normalize_email(self):
        assert normalize_email("  New.User@Example.COM ") == "new.user@example.com"

    def test_expiry_is_seven_days_out(self):
        now = datetime(2026, 1, 1, tzinfo=UTC)
        assert invitation_expiry(now) == datetime(2026, 1, 8, tzinfo=UTC)

    def test_expired_pending_invitation(self):
        invitation = make_invitation(expires_at=datetime.now(UTC) - timedelta(minutes=1))
        assert check_invitation_active(invitation).reason == ErrorCode.EXPIRED

    def test_accepted_invitation_is_not_found(self):
        invitation = make_invitation(status=InvitationStatus.ACCEPTED)
        assert check_invitation_active(invitation).reason == ErrorCode.NOT_FOUND

    def test_accept_requires_matching_email(self):
        invitation = make_invitation(email="new@example.com")

        assert can_accept_invitation(make_principal(email="NEW@example.com"), invitation)
        decision = can_accept_invitation(make_principal(email="other@example.com"), invitation)
        assert decision.reason == ErrorCode.EMAIL_MISMATCH

    def test_accept_rejects_existing_member(self):
        profile = make_profile(email="new@example.com")
        decision = can_accept_invitation(make_principal(profile), make_invitation())
        assert decision.reason == ErrorCode.ALREADY_MEMBER

    def test_create_rejects_member_and_duplicate(self):
        admin = make_principal(make_profile(UserRole.ADMIN))

        assert can_create_invitation(admin, InvitationCandidate(email="a@example.com"))
        member = InvitationCandidate(email="a@example.com", has_profile=True)
        assert can_create_invitation(admin, member).reason == ErrorCode.ALREADY_MEMBER
        duplicate = InvitationCandidate(email="a@example.com", pending_invitation=object())
        assert can_create_invitation(admin, duplicate).reason == ErrorCode.DUPLICATE_PENDING

    def test_resend_expired_invitation(self):
        admin = make_principal(make_profile(UserRole.ADMIN))
        invitation = make_invitation(expires_at=datetime.now(UTC) - timedelta(days=1))

        decision = can_resend_invitation(admin, invitation)

        assert decision.reason == ErrorCode.EXPIRED
        assert decision.message == "Cannot resend expired invitation. Please create a new one."
