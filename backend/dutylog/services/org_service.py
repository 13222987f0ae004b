"""Organization service: onboarding and organization settings."""
import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.core.errors import AppError, ErrorCode, NotFoundError, StoreError, ValidationFailed
from dutylog.core.policy import Action, Principal, authorize, normalize_email
from dutylog.core.saga import Saga
from dutylog.core.structured_logging import log_json
from dutylog.models.enums import UserRole
from dutylog.models.organization import Organization
from dutylog.models.user import User
from dutylog.schemas.auth import SetupProfileRequest
from dutylog.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class OrgService:
    """Service for organization onboarding and settings."""

    def __init__(self, db: AsyncSession):
        """Initialize organization service.

        Args:
            db: Database session
        """
        self.db = db
        self.audit_service = AuditService(db)

    async def setup_profile(
        self,
        principal: Principal,
        payload: SetupProfileRequest,
    ) -> tuple[User, Organization]:
        """Create an organization and its first admin for a fresh identity.

        The organization is committed first; if the profile insert then
        fails the organization is deleted again by compensation.

        Args:
            principal: Authenticated identity without a profile
            payload: Onboarding form data

        Returns:
            Tuple of (admin User, Organization)

        Raises:
            ValidationFailed: If a required field is missing
            AppError: IDENTITY_MISMATCH if ``userId`` or ``email`` is not the caller's,
                ALREADY_MEMBER if the caller already has a profile
            StoreError: If the profile could not be created
        """
        if not (
            payload.user_id
            and payload.email
            and payload.full_name
            and payload.full_name.strip()
            and payload.organization_name
            and payload.organization_name.strip()
        ):
            raise ValidationFailed("Missing required fields")

        if str(payload.user_id) != str(principal.id):
            log_json(
                logger,
                logging.WARNING,
                "setup_profile_identity_mismatch",
                provided=payload.user_id,
            )
            raise AppError(ErrorCode.IDENTITY_MISMATCH, "User ID mismatch")

        if normalize_email(payload.email) != normalize_email(principal.email or ""):
            raise AppError(ErrorCode.IDENTITY_MISMATCH, "Email does not match your account")

        if principal.profile is not None:
            raise AppError(ErrorCode.ALREADY_MEMBER, "User already belongs to an organization")

        async with Saga("setup_profile") as saga:
            org = Organization(name=payload.organization_name.strip())
            self.db.add(org)
            try:
                await self.db.flush()
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise StoreError("Failed to create organization", cause=e) from e

            org_id = org.id
            saga.on_failure("create_organization", lambda: self._delete_organization(org_id))

            user = User(
                id=principal.id,
                organization_id=org_id,
                email=normalize_email(payload.email),
                full_name=payload.full_name.strip(),
                role=UserRole.ADMIN,
            )
            self.db.add(user)
            try:
                await self.db.flush()
            except IntegrityError as e:
                await self.db.rollback()
                log_json(
                    logger,
                    logging.ERROR,
                    "profile_create_failed",
                    organization_id=str(org_id),
                    error=str(e.orig),
                )
                raise StoreError("Failed to create user profile", cause=e) from e

            await self.audit_service.log_organization_create(org_id, user.id)
            await self.db.commit()

        log_json(
            logger,
            logging.INFO,
            "organization_onboarded",
            organization_id=str(org_id),
            user_id=str(user.id),
        )
        return user, org

    async def _delete_organization(self, organization_id) -> None:
        await self.db.execute(delete(Organization).where(Organization.id == organization_id))
        await self.db.commit()

    async def rename_organization(self, principal: Principal, name) -> Organization:
        """Rename the caller's organization (admin only).

        Args:
            principal: Acting principal with profile
            name: New name; must be a non-blank string

        Returns:
            Updated Organization instance
        """
        authorize(principal, Action.RENAME_ORGANIZATION).enforce()

        if name is None:
            raise ValidationFailed("No valid fields to update")
        if not isinstance(name, str) or not name.strip():
            raise ValidationFailed("Organization name must be a non-empty string")

        result = await self.db.execute(
            select(Organization).where(Organization.id == principal.profile.organization_id)
        )
        org = result.scalar_one_or_none()
        if org is None:
            raise NotFoundError("Organization not found")

        old_name = org.name
        org.name = name.strip()
        await self.db.flush()

        await self.audit_service.log_organization_update(
            org.id,
            principal.id,
            diff={"name": {"old": old_name, "new": org.name}},
        )
        log_json(logger, logging.INFO, "organization_updated", organization_id=str(org.id))
        return org
