"""Tag service: organization-scoped labels for events."""
import logging
import re
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.core.errors import ConflictError, NotFoundError, ValidationFailed
from dutylog.core.policy import Action, Principal, authorize
from dutylog.core.structured_logging import log_json
from dutylog.models.enums import AuditAction
from dutylog.models.tag import DEFAULT_TAG_COLOR, Tag
from dutylog.services.audit_service import AuditService

logger = logging.getLogger(__name__)

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _validate_name(name) -> str:
    if not name or not isinstance(name, str) or not name.strip():
        raise ValidationFailed("Tag name is required")
    return name.strip()


def _validate_color(color) -> str | None:
    if color and not HEX_COLOR_RE.match(color):
        raise ValidationFailed("Invalid color format. Use hex format (e.g., #FF0000)")
    return color or None


class TagService:
    """Service for tag CRUD. Listing is open to members, writes are admin only."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit_service = AuditService(db)

    async def list_tags(self, principal: Principal) -> list[Tag]:
        authorize(principal, Action.READ).enforce()
        result = await self.db.execute(
            select(Tag)
            .where(Tag.organization_id == principal.profile.organization_id)
            .order_by(Tag.name)
        )
        return list(result.scalars().all())

    async def _name_taken(
        self, organization_id: UUID, name: str, exclude_id: UUID | None = None
    ) -> bool:
        query = select(Tag.id).where(Tag.organization_id == organization_id, Tag.name == name)
        if exclude_id is not None:
            query = query.where(Tag.id != exclude_id)
        result = await self.db.execute(query)
        return result.first() is not None

    async def _get_tag(self, principal: Principal, tag_id: UUID, action: Action) -> Tag:
        result = await self.db.execute(select(Tag).where(Tag.id == tag_id))
        tag = result.scalar_one_or_none()
        if tag is None:
            raise NotFoundError("Tag not found")
        authorize(principal, action, tag).enforce()
        return tag

    async def create_tag(
        self,
        principal: Principal,
        name,
        color=None,
        description=None,
    ) -> Tag:
        """Create a tag in the caller's organization.

        Args:
            principal: Acting admin
            name: Tag name, trimmed; unique within the organization
            color: Optional ``#RRGGBB`` color
            description: Optional free text

        Returns:
            Created Tag instance

        Raises:
            ValidationFailed: On a blank name or malformed color
            ConflictError: If the name is already used in the organization
        """
        authorize(principal, Action.MANAGE_TAGS).enforce()
        organization_id = principal.profile.organization_id

        clean_name = _validate_name(name)
        clean_color = _validate_color(color) or DEFAULT_TAG_COLOR
        if description is not None and not isinstance(description, str):
            raise ValidationFailed("Description must be a string")

        if await self._name_taken(organization_id, clean_name):
            raise ConflictError("Tag already exists")

        tag = Tag(
            organization_id=organization_id,
            name=clean_name,
            color=clean_color,
            description=(description.strip() or None) if description else None,
        )
        self.db.add(tag)
        try:
            await self.db.flush()
        except IntegrityError:
            raise ConflictError("Tag already exists") from None

        await self.audit_service.log(
            organization_id=organization_id,
            user_id=principal.id,
            action=AuditAction.TAG_CREATE,
            entity_type="tag",
            entity_id=tag.id,
            diff_json={"name": tag.name, "color": tag.color},
        )
        log_json(logger, logging.INFO, "tag_created", tag_id=str(tag.id))
        return tag

    async def update_tag(
        self,
        principal: Principal,
        tag_id: UUID,
        name,
        color=None,
        description=None,
        fields_set: frozenset[str] = frozenset(),
    ) -> Tag:
        """Rename or recolor a tag.

        ``name`` is always required; ``description`` only changes when it was
        sent (``fields_set``).

        Raises:
            ValidationFailed: On a blank name or malformed color
            NotFoundError: If the tag does not exist
            ConflictError: If another tag in the organization has the name
        """
        authorize(principal, Action.MANAGE_TAGS).enforce()
        clean_name = _validate_name(name)
        clean_color = _validate_color(color)

        tag = await self._get_tag(principal, tag_id, Action.MANAGE_TAGS)

        if await self._name_taken(tag.organization_id, clean_name, exclude_id=tag.id):
            raise ConflictError("Tag name already exists")

        changes = {}
        if tag.name != clean_name:
            changes["name"] = {"old": tag.name, "new": clean_name}
            tag.name = clean_name
        if clean_color and tag.color != clean_color:
            changes["color"] = {"old": tag.color, "new": clean_color}
            tag.color = clean_color
        if "description" in fields_set:
            tag.description = (description.strip() or None) if description else None

        try:
            await self.db.flush()
        except IntegrityError:
            raise ConflictError("Tag name already exists") from None

        await self.audit_service.log(
            organization_id=tag.organization_id,
            user_id=principal.id,
            action=AuditAction.TAG_UPDATE,
            entity_type="tag",
            entity_id=tag.id,
            diff_json=changes or None,
        )
        return tag

    async def delete_tag(self, principal: Principal, tag_id: UUID) -> None:
        """Delete a tag; its event links are removed by the database cascade."""
        authorize(principal, Action.MANAGE_TAGS).enforce()
        tag = await self._get_tag(principal, tag_id, Action.MANAGE_TAGS)

        await self.audit_service.log(
            organization_id=tag.organization_id,
            user_id=principal.id,
            action=AuditAction.TAG_DELETE,
            entity_type="tag",
            entity_id=tag.id,
            diff_json={"name": tag.name},
        )
        await self.db.execute(delete(Tag).where(Tag.id == tag.id))
        log_json(logger, logging.INFO, "tag_deleted", tag_id=str(tag_id))

    async def resolve_tags(self, organization_id: UUID, tag_ids) -> list[Tag]:
        """Return the tags among ``tag_ids`` that belong to the organization.

        Unknown or foreign ids are dropped and logged.
        """
        wanted = list(dict.fromkeys(tag_ids or []))
        if not wanted:
            return []

        result = await self.db.execute(
            select(Tag).where(Tag.organization_id == organization_id, Tag.id.in_(wanted))
        )
        tags = list(result.scalars().all())

        found = {t.id for t in tags}
        dropped = [str(t) for t in wanted if t not in found]
        if dropped:
            log_json(logger, logging.WARNING, "event_tags_dropped", tag_ids=dropped)
        return tags
