"""Integration tests for invitation flow.

Tests the complete invitation lifecycle: create, view, accept, resend and
revoke, with expiry handling, delivery failures and audit logging.
"""

from datetime import UTC, datetime, timedelta

import pytest
from conftest import PASSWORD, Actor, FakeMailer, create_member, signup
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.models.audit_event import AuditEvent
from dutylog.models.enums import AuditAction, InvitationStatus, UserRole
from dutylog.models.invitation import Invitation
from dutylog.models.user import User


async def send_invite(client: AsyncClient, admin: Actor, email: str, role: str = "user"):
    return await client.post(
        "/api/invitations/send", headers=admin.headers, json={"email": email, "role": role}
    )


async def expire_invitation(db: AsyncSession, email: str) -> None:
    await db.execute(
        update(Invitation)
        .where(Invitation.email == email)
        .values(expires_at=datetime.now(UTC) - timedelta(hours=1))
    )
    await db.commit()


async def invitation_status(db: AsyncSession, email: str) -> InvitationStatus:
    result = await db.execute(
        select(Invitation.status).where(Invitation.email == email)
    )
    return result.scalar_one()


@pytest.mark.asyncio
class TestSendInvitation:
    async def test_send_invitation(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, admin: Actor
    ):
        response = await send_invite(client, admin, "  New.Officer@Example.com ", "admin")

        assert response.status_code == 201
        invitation = response.json()["invitation"]
        assert invitation["email"] == "new.officer@example.com"
        assert invitation["role"] == "admin"
        assert invitation["status"] == "pending"
        assert invitation["invited_by"]["id"] == str(admin.user_id)
        assert "token" not in invitation

        expires_at = datetime.fromisoformat(invitation["expires_at"].replace("Z", "+00:00"))
        assert timedelta(days=6) < expires_at - datetime.now(UTC) <= timedelta(days=7)

        assert len(mailer.sent) == 1
        assert mailer.sent[0]["to"] == "new.officer@example.com"
        assert mailer.sent[0]["organization"] == "Metro Police"
        assert "/accept-invite/" in mailer.sent[0]["link"]

        audit = await db.scalar(
            select(AuditEvent).where(AuditEvent.action == AuditAction.INVITATION_CREATE)
        )
        assert audit is not None
        assert str(audit.entity_id) == invitation["id"]

    async def test_list_pending(self, client: AsyncClient, admin: Actor):
        await send_invite(client, admin, "one@example.com")
        await send_invite(client, admin, "two@example.com")

        response = await client.get("/api/invitations/list", headers=admin.headers)

        assert response.status_code == 200
        emails = {i["email"] for i in response.json()["invitations"]}
        assert emails == {"one@example.com", "two@example.com"}

    async def test_duplicate_pending(self, client: AsyncClient, admin: Actor):
        await send_invite(client, admin, "dup@example.com")

        response = await send_invite(client, admin, "DUP@example.com")

        assert response.status_code == 400
        assert response.json() == {"error": "Invitation already sent to this email"}

    async def test_expired_invitation_does_not_block_reinvite(
        self, client: AsyncClient, db: AsyncSession, admin: Actor
    ):
        await send_invite(client, admin, "again@example.com")
        await expire_invitation(db, "again@example.com")

        response = await send_invite(client, admin, "again@example.com")

        assert response.status_code == 201
        count = await db.scalar(
            select(func.count()).select_from(Invitation).where(
                Invitation.email == "again@example.com"
            )
        )
        assert count == 2

    async def test_existing_member(self, client: AsyncClient, admin: Actor, officer: Actor):
        response = await send_invite(client, admin, officer.email)

        assert response.status_code == 400
        assert response.json() == {"error": "User already belongs to an organization"}

    async def test_already_registered_identity(
        self, client: AsyncClient, mailer: FakeMailer, admin: Actor
    ):
        await signup(client, "registered@example.com")

        response = await send_invite(client, admin, "registered@example.com")

        assert response.status_code == 400
        assert response.json() == {"error": "This user already has an account in the system"}
        assert mailer.sent == []

        # the invitation row is withdrawn again
        listing = await client.get("/api/invitations/list", headers=admin.headers)
        assert listing.json()["invitations"] == []

    async def test_delivery_failure_withdraws_invitation(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, admin: Actor
    ):
        mailer.fail = True

        response = await send_invite(client, admin, "unreachable@example.com")

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to send invitation"
        assert await db.scalar(select(func.count()).select_from(Invitation)) == 0

    @pytest.mark.parametrize(
        ("payload", "message"),
        [
            ({}, "Email is required"),
            ({"email": "not-an-email"}, "Invalid email address"),
            ({"email": "ok@example.com", "role": "captain"}, 'Invalid role. Must be "admin" or "user"'),
        ],
    )
    async def test_validation(self, client: AsyncClient, admin: Actor, payload, message):
        response = await client.post(
            "/api/invitations/send", headers=admin.headers, json=payload
        )

        assert response.status_code == 400
        assert response.json() == {"error": message}

    async def test_officer_cannot_invite(self, client: AsyncClient, officer: Actor):
        response = await send_invite(client, officer, "friend@example.com")

        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}


@pytest.mark.asyncio
class TestViewInvitation:
    async def test_public_lookup_is_idempotent(
        self, client: AsyncClient, mailer: FakeMailer, admin: Actor
    ):
        await send_invite(client, admin, "new@example.com")
        token = mailer.token_for("new@example.com")

        first = await client.get(f"/api/invitations/accept/{token}")
        second = await client.get(f"/api/invitations/accept/{token}")

        assert first.status_code == 200
        assert first.json() == second.json()
        invitation = first.json()["invitation"]
        assert invitation["email"] == "new@example.com"
        assert invitation["organization"]["name"] == "Metro Police"

    async def test_unknown_token(self, client: AsyncClient):
        response = await client.get("/api/invitations/accept/no-such-token")

        assert response.status_code == 404
        assert response.json() == {"error": "Invalid or expired invitation"}

    async def test_expired_lookup_marks_invitation_expired(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, admin: Actor
    ):
        await send_invite(client, admin, "late@example.com")
        token = mailer.token_for("late@example.com")
        await expire_invitation(db, "late@example.com")

        response = await client.get(f"/api/invitations/accept/{token}")
        assert response.status_code == 400
        assert response.json() == {"error": "This invitation has expired"}

        assert await invitation_status(db, "late@example.com") == InvitationStatus.EXPIRED

        response = await client.get(f"/api/invitations/accept/{token}")
        assert response.status_code == 404


@pytest.mark.asyncio
class TestAcceptInvitation:
    async def test_accept_creates_profile(
        self, client: AsyncClient, db: AsyncSession, mailer: FakeMailer, admin: Actor
    ):
        await send_invite(client, admin, "new@example.com", "admin")
        token = mailer.token_for("new@example.com")
        invitee = await signup(client, "new@example.com")

        response = await client.post(
            f"/api/invitations/accept/{token}",
            headers=invitee.headers,
            json={"fullName": "Nina New"},
        )

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["id"] == str(invitee.user_id)
        assert user["organization_id"] == str(admin.organization_id)
        assert user["role"] == "admin"
        assert user["full_name"] == "Nina New"

        assert await invitation_status(db, "new@example.com") == InvitationStatus.ACCEPTED
        profile = await db.scalar(select(User).where(User.id == invitee.user_id))
        assert profile.role == UserRole.ADMIN

        audit = await db.scalar(
            select(AuditEvent).where(AuditEvent.action == AuditAction.INVITATION_ACCEPT)
        )
        assert audit is not None

        # the token is single use
        response = await client.post(
            f"/api/invitations/accept/{token}",
            headers=invitee.headers,
            json={"fullName": "Nina New"},
        )
        assert response.status_code == 404

    async def test_email_mismatch(self, client: AsyncClient, mailer: FakeMailer, admin: Actor):
        await send_invite(client, admin, "new@example.com")
        token = mailer.token_for("new@example.com")
        stranger = await signup(client, "stranger@example.com")

        response = await client.post(
            f"/api/invitations/accept/{token}",
            headers=stranger.headers,
            json={"fullName": "Sam Stranger"},
        )

        assert response.status_code == 400
        assert response.json() == {
            "error": "Email mismatch. Please log in with the invited email address."
        }

    async def test_full_name_required(self, client: AsyncClient, mailer: FakeMailer, admin: Actor):
        await send_invite(client, admin, "new@example.com")
        token = mailer.token_for("new@example.com")
        invitee = await signup(client, "new@example.com")

        response = await client.post(
            f"/api/invitations/accept/{token}", headers=invitee.headers, json={"fullName": " "}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Full name is required"}

    async def test_accept_requires_authentication(
        self, client: AsyncClient, mailer: FakeMailer, admin: Actor
    ):
        await send_invite(client, admin, "new@example.com")
        token = mailer.token_for("new@example.com")

        response = await client.post(
            f"/api/invitations/accept/{token}", json={"fullName": "Nina New"}
        )

        assert response.status_code == 401

    async def test_invited_member_can_log_in(
        self, client: AsyncClient, mailer: FakeMailer, admin: Actor
    ):
        member = await create_member(client, mailer, admin, "member@example.com")

        response = await client.post(
            "/api/auth/login", json={"email": member.email, "password": PASSWORD}
        )
        assert response.status_code == 200

        response = await client.get("/api/profile", headers=member.headers)
        assert response.json()["profile"]["role"] == "user"


@pytest.mark.asyncio
class TestResendAndRevoke:
    async def test_resend(self, client: AsyncClient, mailer: FakeMailer, admin: Actor):
        invitation = (await send_invite(client, admin, "new@example.com")).json()["invitation"]

        response = await client.post(
            f"/api/invitations/resend/{invitation['id']}", headers=admin.headers
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Invitation email resent successfully",
        }
        assert len(mailer.sent) == 2
        assert mailer.sent[0]["link"] == mailer.sent[1]["link"]

    async def test_resend_expired(
        self, client: AsyncClient, db: AsyncSession, admin: Actor
    ):
        invitation = (await send_invite(client, admin, "new@example.com")).json()["invitation"]
        await expire_invitation(db, "new@example.com")

        response = await client.post(
            f"/api/invitations/resend/{invitation['id']}", headers=admin.headers
        )

        assert response.status_code == 400
        assert response.json() == {
            "error": "Cannot resend expired invitation. Please create a new one."
        }

    async def test_resend_delivery_failure(
        self, client: AsyncClient, mailer: FakeMailer, admin: Actor
    ):
        invitation = (await send_invite(client, admin, "new@example.com")).json()["invitation"]
        mailer.fail = True

        response = await client.post(
            f"/api/invitations/resend/{invitation['id']}", headers=admin.headers
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to resend invitation email"

    async def test_revoke(self, client: AsyncClient, admin: Actor):
        invitation = (await send_invite(client, admin, "new@example.com")).json()["invitation"]

        response = await client.delete(
            f"/api/invitations/{invitation['id']}", headers=admin.headers
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Invitation revoked successfully"

        listing = await client.get("/api/invitations/list", headers=admin.headers)
        assert listing.json()["invitations"] == []

        response = await client.delete(
            f"/api/invitations/{invitation['id']}", headers=admin.headers
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Invitation not found"}

    async def test_revoke_other_organizations_invitation(
        self, client: AsyncClient, admin: Actor, other_admin: Actor
    ):
        invitation = (await send_invite(client, admin, "new@example.com")).json()["invitation"]

        response = await client.delete(
            f"/api/invitations/{invitation['id']}", headers=other_admin.headers
        )

        assert response.status_code == 404
