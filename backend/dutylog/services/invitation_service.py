"""Invitation service for user invitation management.

Handles invitation creation and delivery, listing, token lookup, acceptance,
resend and revocation.
- Opaque tokens from secrets.token_urlsafe(32), stored so links can be resent
- 7-day expiry, applied lazily when invitations are read
- Single-use: accepted and expired are terminal states
- One pending invitation per (organization, email), backed by a partial
  unique index
"""
import logging
import secrets
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import delete, exists, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.core.config import get_settings
from dutylog.core.email import EmailDeliveryError, Mailer, invitation_link
from dutylog.core.errors import AppError, ErrorCode, NotFoundError, StoreError, ValidationFailed
from dutylog.core.metrics import observe_invitation
from dutylog.core.policy import (
    Action,
    InvitationCandidate,
    Principal,
    authorize,
    can_accept_invitation,
    can_create_invitation,
    can_resend_invitation,
    check_invitation_active,
    invitation_expiry,
    normalize_email,
)
from dutylog.core.saga import Saga
from dutylog.core.structured_logging import log_json
from dutylog.core.time_utils import utcnow
from dutylog.models.enums import AuditAction, InvitationStatus, UserRole
from dutylog.models.invitation import Invitation
from dutylog.models.user import User
from dutylog.services.audit_service import AuditService
from dutylog.services.auth_service import AuthService, IdentityAlreadyRegistered

logger = logging.getLogger(__name__)
settings = get_settings()


class InvitationService:
    """Service for managing user invitations."""

    def __init__(self, db: AsyncSession):
        """Initialize invitation service.

        Args:
            db: Database session
        """
        self.db = db
        self.audit_service = AuditService(db)

    async def _expire_stale(self, organization_id: UUID, email: str | None = None) -> int:
        """Flip pending invitations past their expiry to EXPIRED.

        Returns:
            Number of invitations expired
        """
        stmt = (
            update(Invitation)
            .where(
                Invitation.organization_id == organization_id,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at < utcnow(),
            )
            .values(status=InvitationStatus.EXPIRED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if email is not None:
            stmt = stmt.where(Invitation.email == email)
        result = await self.db.execute(stmt)
        count = result.rowcount or 0
        if count:
            log_json(
                logger,
                logging.INFO,
                "invitations_expired",
                organization_id=str(organization_id),
                count=count,
            )
        return count

    async def _get_pending_invitation(self, email: str, organization_id: UUID) -> Invitation | None:
        """Get pending invitation by email within organization.

        Args:
            email: Normalized invitation email
            organization_id: Organization ID

        Returns:
            Invitation instance if pending invitation found, None otherwise
        """
        result = await self.db.execute(
            select(Invitation).where(
                Invitation.email == email,
                Invitation.organization_id == organization_id,
                Invitation.status == InvitationStatus.PENDING,
            )
        )
        return result.scalar_one_or_none()

    async def _delete_invitation(self, invitation_id: UUID) -> None:
        await self.db.execute(delete(Invitation).where(Invitation.id == invitation_id))
        await self.db.commit()

    async def create_invitation(
        self,
        principal: Principal,
        email: str | None,
        role: str | None,
        mailer: Mailer,
        ip_address: str | None = None,
    ) -> Invitation:
        """Create an invitation and email its link.

        The invitation row is committed before delivery; if delivery fails
        the row is deleted again by compensation.

        Args:
            principal: Acting admin
            email: Address to invite (trimmed and lower-cased)
            role: Role to assign, "admin" or "user"
            mailer: Email sender used for delivery
            ip_address: IP address of the admin (for audit)

        Returns:
            Created Invitation instance

        Raises:
            ValidationFailed: Missing or malformed email, invalid role
            AppError: INSUFFICIENT_ROLE, ALREADY_MEMBER, DUPLICATE_PENDING,
                ALREADY_REGISTERED
            StoreError: If the email could not be sent
        """
        authorize(principal, Action.MANAGE_INVITATIONS).enforce()

        if not email or not email.strip():
            raise ValidationFailed("Email is required")
        normalized = normalize_email(email)
        try:
            validate_email(normalized, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationFailed("Invalid email address") from None

        try:
            invited_role = UserRole(role or UserRole.USER.value)
        except ValueError:
            raise ValidationFailed('Invalid role. Must be "admin" or "user"') from None

        organization_id = principal.profile.organization_id
        await self._expire_stale(organization_id, email=normalized)

        has_profile = await self.db.scalar(select(exists().where(User.email == normalized)))
        candidate = InvitationCandidate(
            email=normalized,
            has_profile=bool(has_profile),
            pending_invitation=await self._get_pending_invitation(normalized, organization_id),
        )
        can_create_invitation(principal, candidate).enforce()

        organization_name = principal.profile.organization.name
        token = secrets.token_urlsafe(32)

        async with Saga("send_invitation") as saga:
            invitation = Invitation(
                organization_id=organization_id,
                email=normalized,
                role=invited_role,
                token=token,
                status=InvitationStatus.PENDING,
                invited_by_user_id=principal.id,
                expires_at=invitation_expiry(days=settings.invitation_expire_days),
            )
            invitation.inviter = principal.profile
            self.db.add(invitation)
            try:
                await self.db.flush()
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise AppError(
                    ErrorCode.DUPLICATE_PENDING, "Invitation already sent to this email"
                ) from None

            invitation_id = invitation.id
            saga.on_failure("create_invitation", lambda: self._delete_invitation(invitation_id))

            try:
                await AuthService(self.db).invite_user_by_email(
                    normalized, token, organization_name, mailer
                )
            except IdentityAlreadyRegistered:
                observe_invitation("already_registered")
                raise AppError(
                    ErrorCode.ALREADY_REGISTERED,
                    "This user already has an account in the system",
                ) from None
            except EmailDeliveryError as e:
                observe_invitation("delivery_failed")
                raise StoreError("Failed to send invitation", cause=e) from e

        await self.audit_service.log(
            organization_id=organization_id,
            action=AuditAction.INVITATION_CREATE,
            entity_type="invitation",
            entity_id=invitation_id,
            user_id=principal.id,
            ip_address=ip_address,
            diff_json={
                "email": normalized,
                "role": invited_role.value,
                "expires_at": invitation.expires_at.isoformat(),
            },
        )
        observe_invitation("created")
        log_json(logger, logging.INFO, "invitation_sent", invitation_id=str(invitation_id))
        return invitation

    async def list_invitations(self, principal: Principal) -> list[Invitation]:
        """List the organization's pending invitations, newest first.

        Stale invitations are expired before the read.
        """
        authorize(principal, Action.MANAGE_INVITATIONS).enforce()
        organization_id = principal.profile.organization_id

        await self._expire_stale(organization_id)

        result = await self.db.execute(
            select(Invitation)
            .where(
                Invitation.organization_id == organization_id,
                Invitation.status == InvitationStatus.PENDING,
            )
            .order_by(Invitation.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_by_token(self, token: str) -> Invitation:
        """Look up a pending invitation by its token.

        An invitation found past its expiry is flipped to EXPIRED and
        committed before the error is raised.

        Raises:
            NotFoundError: If no pending invitation has this token
            AppError: EXPIRED
        """
        result = await self.db.execute(
            select(Invitation).where(
                Invitation.token == token,
                Invitation.status == InvitationStatus.PENDING,
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFoundError("Invalid or expired invitation")

        decision = check_invitation_active(invitation)
        if decision.reason == ErrorCode.EXPIRED:
            invitation.status = InvitationStatus.EXPIRED
            await self.audit_service.log(
                organization_id=invitation.organization_id,
                action=AuditAction.INVITATION_EXPIRE,
                entity_type="invitation",
                entity_id=invitation.id,
            )
            await self.db.commit()
            observe_invitation("expired")
        decision.enforce()
        return invitation

    async def accept_invitation(
        self,
        principal: Principal,
        token: str,
        full_name: str | None,
    ) -> User:
        """Accept an invitation and create the caller's profile.

        The profile is committed first; marking the invitation accepted is a
        second step whose failure is logged and does not undo the profile.

        Args:
            principal: Authenticated identity, normally without a profile
            token: Invitation token from the emailed link
            full_name: Display name for the new profile

        Returns:
            Created User instance

        Raises:
            NotFoundError: Unknown token
            AppError: EXPIRED, EMAIL_MISMATCH or ALREADY_MEMBER
            ValidationFailed: Blank full name
        """
        invitation = await self.get_by_token(token)
        can_accept_invitation(principal, invitation).enforce()

        if not full_name or not full_name.strip():
            raise ValidationFailed("Full name is required")

        user = User(
            id=principal.id,
            organization_id=invitation.organization_id,
            email=normalize_email(invitation.email),
            full_name=full_name.strip(),
            role=invitation.role,
        )
        self.db.add(user)
        try:
            await self.db.flush()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise StoreError("Failed to create user profile", cause=e) from e

        invitation_id = invitation.id
        user_id = user.id
        try:
            invitation.status = InvitationStatus.ACCEPTED
            await self.audit_service.log(
                organization_id=user.organization_id,
                action=AuditAction.INVITATION_ACCEPT,
                entity_type="invitation",
                entity_id=invitation_id,
                user_id=user.id,
                diff_json={"email": user.email, "role": user.role.value},
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            log_json(
                logger,
                logging.ERROR,
                "invitation_accept_status_failed",
                invitation_id=str(invitation_id),
                user_id=str(user_id),
                error=str(e),
            )
            await self.db.refresh(user)

        observe_invitation("accepted")
        log_json(logger, logging.INFO, "invitation_accepted", invitation_id=str(invitation_id))
        return user

    async def resend_invitation(
        self,
        principal: Principal,
        invitation_id: UUID,
        mailer: Mailer,
    ) -> None:
        """Send the invitation email again; the expiry is unchanged.

        Raises:
            NotFoundError: Not a pending invitation of the caller's organization
            AppError: EXPIRED
            StoreError: If the email could not be sent
        """
        authorize(principal, Action.MANAGE_INVITATIONS).enforce()

        result = await self.db.execute(
            select(Invitation).where(
                Invitation.id == invitation_id,
                Invitation.organization_id == principal.profile.organization_id,
                Invitation.status == InvitationStatus.PENDING,
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFoundError("Invitation not found or already accepted")

        can_resend_invitation(principal, invitation).enforce()

        try:
            await mailer.send_invitation(
                invitation.email,
                principal.profile.organization.name,
                invitation_link(invitation.token),
            )
        except EmailDeliveryError as e:
            raise StoreError("Failed to resend invitation email", cause=e) from e

        observe_invitation("resent")

    async def revoke_invitation(self, principal: Principal, invitation_id: UUID) -> None:
        """Delete an invitation of the caller's organization.

        Raises:
            NotFoundError: If the invitation is not in the caller's organization
        """
        authorize(principal, Action.MANAGE_INVITATIONS).enforce()

        result = await self.db.execute(
            select(Invitation).where(
                Invitation.id == invitation_id,
                Invitation.organization_id == principal.profile.organization_id,
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFoundError("Invitation not found")

        await self.audit_service.log(
            organization_id=invitation.organization_id,
            action=AuditAction.INVITATION_REVOKE,
            entity_type="invitation",
            entity_id=invitation.id,
            user_id=principal.id,
            diff_json={"email": invitation.email, "status": invitation.status.value},
        )
        await self.db.execute(delete(Invitation).where(Invitation.id == invitation.id))
        observe_invitation("revoked")
