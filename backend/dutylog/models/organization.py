"""Organization model."""
from sqlalchemy import CheckConstraint, Column, String

from dutylog.models.base import BaseModel


class Organization(BaseModel):
    """Organization entity, the tenant boundary.

    Owns users, events, tags, invitations and audit events through their
    ``organization_id``; all of them are removed with the organization at
    the database level.
    """

    __tablename__ = "organizations"

    name = Column(
        String(255),
        nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "LENGTH(name) > 0",
            name="organization_name_not_empty"
        ),
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name})>"
