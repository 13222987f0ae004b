"""User service: own profile, member management and RBAC changes."""
import logging
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.core.errors import AppError, ErrorCode, NotFoundError, ValidationFailed
from dutylog.core.policy import (
    Action,
    Principal,
    authorize,
    can_change_role,
    can_remove_user,
)
from dutylog.core.structured_logging import log_json
from dutylog.models.enums import AuditAction, UserRole
from dutylog.models.organization import Organization
from dutylog.models.user import User
from dutylog.services.audit_service import AuditService
from dutylog.services.auth_service import AuthService

logger = logging.getLogger(__name__)


def _clean_full_name(value: str) -> str:
    if not value.strip():
        raise ValidationFailed("Full name cannot be empty")
    return value.strip()


class UserService:
    """Service for user management operations."""

    def __init__(self, db: AsyncSession):
        """Initialize user service.

        Args:
            db: Database session
        """
        self.db = db
        self.audit_service = AuditService(db)

    async def get_profile(self, user_id: UUID) -> User | None:
        """Load a profile with its organization, or None for identities without one."""
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_own_profile(self, principal: Principal) -> User:
        authorize(principal, Action.READ).enforce()
        return principal.profile

    async def update_own_profile(
        self,
        principal: Principal,
        updates: dict,
    ) -> User:
        """Update the caller's display fields.

        Args:
            principal: Acting principal with profile
            updates: Subset of ``full_name``, ``badge_no``, ``theme`` that was sent

        Returns:
            Updated User instance
        """
        authorize(principal, Action.UPDATE).enforce()
        user = principal.profile

        if not updates:
            raise ValidationFailed("No valid fields to update")

        if "full_name" in updates:
            if updates["full_name"] is None:
                raise ValidationFailed("Full name cannot be empty")
            user.full_name = _clean_full_name(updates["full_name"])
        if "badge_no" in updates:
            badge_no = updates["badge_no"]
            user.badge_no = (badge_no.strip() or None) if badge_no is not None else None
        if "theme" in updates and updates["theme"] is not None:
            user.theme = updates["theme"]

        await self.db.flush()
        return user

    async def list_users(self, principal: Principal) -> list[User]:
        """List all users in the caller's organization, newest first.

        Args:
            principal: Acting admin

        Returns:
            List of User instances
        """
        authorize(principal, Action.MANAGE_USERS).enforce()

        result = await self.db.execute(
            select(User)
            .where(User.organization_id == principal.profile.organization_id)
            .order_by(User.created_at.desc())
        )
        return list(result.scalars().all())

    async def _get_target(self, user_id: UUID, message: str = "Target user not found") -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(message)
        return user

    async def update_member(
        self,
        principal: Principal,
        user_id: UUID,
        updates: dict,
    ) -> User:
        """Update another member's display fields (admin only).

        Args:
            principal: Acting admin
            user_id: Member to update
            updates: Subset of ``full_name`` and ``badge_no`` that was sent

        Returns:
            Updated User instance

        Raises:
            NotFoundError: If the member does not exist
            AppError: CROSS_TENANT or INSUFFICIENT_ROLE
        """
        authorize(principal, Action.MANAGE_USERS).enforce()
        target = await self._get_target(user_id)
        authorize(principal, Action.MANAGE_USERS, target).enforce()

        if not updates:
            raise ValidationFailed("No valid fields to update")

        changes = {}
        if "full_name" in updates:
            if updates["full_name"] is None:
                raise ValidationFailed("Full name cannot be empty")
            new_name = _clean_full_name(updates["full_name"])
            changes["full_name"] = {"old": target.full_name, "new": new_name}
            target.full_name = new_name
        if "badge_no" in updates:
            badge_no = updates["badge_no"]
            new_badge = (badge_no.strip() or None) if badge_no is not None else None
            changes["badge_no"] = {"old": target.badge_no, "new": new_badge}
            target.badge_no = new_badge

        await self.db.flush()
        await self.audit_service.log(
            organization_id=target.organization_id,
            user_id=principal.id,
            action=AuditAction.USER_UPDATE,
            entity_type="user",
            entity_id=target.id,
            diff_json=changes,
        )
        return target

    async def _lock_organization(self, organization_id: UUID) -> None:
        """Serialize admin-count checks within one organization.

        ``FOR UPDATE`` is a no-op on SQLite.
        """
        await self.db.execute(
            select(Organization.id)
            .where(Organization.id == organization_id)
            .with_for_update()
        )

    async def _count_admins(self, organization_id: UUID) -> int:
        """Count number of admin users in an organization.

        Args:
            organization_id: Organization ID

        Returns:
            Number of admin users
        """
        result = await self.db.execute(
            select(func.count(User.id)).where(
                and_(
                    User.organization_id == organization_id,
                    User.role == UserRole.ADMIN,
                )
            )
        )
        return result.scalar_one()

    async def change_role(
        self,
        principal: Principal,
        user_id: UUID,
        role: str | None,
        ip_address: str | None = None,
    ) -> User:
        """Change a member's role.

        Args:
            principal: Acting admin
            user_id: Member whose role changes
            role: "admin" or "user"
            ip_address: Client IP address (for audit)

        Returns:
            Updated User instance

        Raises:
            ValidationFailed: If the role value is invalid
            NotFoundError: If the member does not exist
            AppError: CROSS_TENANT, INSUFFICIENT_ROLE, SELF_ACTION or LAST_ADMIN
        """
        try:
            new_role = UserRole(role)
        except ValueError:
            raise ValidationFailed('Invalid role. Must be "admin" or "user"') from None

        authorize(principal, Action.CHANGE_ROLE).enforce()
        actor = principal.profile

        await self._lock_organization(actor.organization_id)
        target = await self._get_target(user_id)
        admin_count = await self._count_admins(actor.organization_id)

        can_change_role(actor, target, new_role, admin_count).enforce()

        old_role = target.role
        target.role = new_role
        await self.db.flush()

        await self.audit_service.log(
            organization_id=actor.organization_id,
            user_id=actor.id,
            action=AuditAction.USER_ROLE_CHANGE,
            entity_type="user",
            entity_id=target.id,
            ip_address=ip_address,
            diff_json={
                "user_id": str(target.id),
                "old_role": old_role.value,
                "new_role": new_role.value,
            },
        )
        log_json(
            logger,
            logging.INFO,
            "user_role_changed",
            target_user_id=str(target.id),
            old_role=old_role.value,
            new_role=new_role.value,
        )
        return target

    async def remove_user(
        self,
        principal: Principal,
        user_id: UUID,
        ip_address: str | None = None,
    ) -> dict:
        """Remove a non-admin member by deleting their identity.

        Args:
            principal: Acting admin
            user_id: Member to remove
            ip_address: Client IP address (for audit)

        Returns:
            ``{id, full_name, email}`` of the removed member

        Raises:
            NotFoundError: If the member does not exist
            AppError: CROSS_TENANT, INSUFFICIENT_ROLE, SELF_ACTION or TARGET_IS_ADMIN
        """
        authorize(principal, Action.REMOVE_USER).enforce()
        actor = principal.profile

        target = await self._get_target(user_id, "User not found")
        can_remove_user(actor, target).enforce()

        removed = {"id": target.id, "full_name": target.full_name, "email": target.email}

        await self.audit_service.log(
            organization_id=actor.organization_id,
            user_id=actor.id,
            action=AuditAction.USER_DELETE,
            entity_type="user",
            entity_id=target.id,
            ip_address=ip_address,
            diff_json={"email": target.email, "full_name": target.full_name},
        )

        deleted = await AuthService(self.db).delete_identity(target.id)
        if not deleted:
            raise AppError(ErrorCode.NOT_FOUND, "User not found")

        log_json(logger, logging.INFO, "user_removed", target_user_id=str(removed["id"]))
        return removed
