"""Invitation model."""
from sqlalchemy import Column, ForeignKey, Index, String, Uuid, text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from dutylog.models.base import BaseModel, UTCDateTime
from dutylog.models.enums import InvitationStatus, UserRole


class Invitation(BaseModel):
    """Invitation entity for pending user invitations.

    Invitations are created by admins to invite new users to join their
    organization. Each invitation has a unique token, expires after 7 days,
    and can only be accepted once. At most one PENDING invitation exists per
    (organization, email).
    """

    __tablename__ = "invitations"

    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    email = Column(
        String(255),
        nullable=False
    )
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=UserRole.USER
    )
    token = Column(
        String(128),
        nullable=False,
        unique=True,
        index=True
    )
    status = Column(
        SQLEnum(
            InvitationStatus,
            name="invitation_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=InvitationStatus.PENDING
    )
    invited_by_user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    expires_at = Column(
        UTCDateTime(),
        nullable=False,
        index=True
    )

    organization = relationship("Organization", lazy="selectin")
    inviter = relationship("User", lazy="selectin", foreign_keys=[invited_by_user_id])

    __table_args__ = (
        Index(
            "uq_invitations_pending_org_email",
            "organization_id",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Invitation(id={self.id}, email={self.email}, status={self.status})>"
