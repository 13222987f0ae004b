"""AuditEvent model."""

from sqlalchemy import JSON, Column, ForeignKey, String, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import INET, JSONB

from dutylog.models.base import BaseModel
from dutylog.models.enums import AuditAction


class AuditEvent(BaseModel):
    """Immutable audit trail for administrative actions.

    Records are append-only. ``user_id`` is nulled when the acting user is
    removed so the trail outlives its actors.
    """

    __tablename__ = "audit_events"

    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action = Column(
        SQLEnum(
            AuditAction,
            name="audit_action",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Uuid(as_uuid=True), nullable=False)
    diff_json = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    ip_address = Column(String(45).with_variant(INET(), "postgresql"), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditEvent(id={self.id}, action={self.action}, entity_type={self.entity_type})>"
