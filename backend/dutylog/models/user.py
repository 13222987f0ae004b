"""User (profile) model."""
from sqlalchemy import Column, ForeignKey, String, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from dutylog.models.base import BaseModel
from dutylog.models.enums import Theme, UserRole


class User(BaseModel):
    """Application profile of an identity within one organization.

    The primary key is the identity id, so deleting the identity deletes the
    profile. Every organization keeps at least one ADMIN.
    """

    __tablename__ = "users"

    id = Column(
        Uuid(as_uuid=True),
        ForeignKey("identities.id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False
    )
    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    email = Column(
        String(255),
        nullable=False,
        unique=True
    )
    full_name = Column(
        String(255),
        nullable=False
    )
    badge_no = Column(
        String(64),
        nullable=True
    )
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=UserRole.USER
    )
    theme = Column(
        SQLEnum(Theme, name="user_theme", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=Theme.LIGHT
    )

    organization = relationship("Organization", lazy="selectin")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
