"""Tag model."""
from sqlalchemy import Column, ForeignKey, String, Text, UniqueConstraint, Uuid

from dutylog.models.base import BaseModel

DEFAULT_TAG_COLOR = "#3B82F6"


class Tag(BaseModel):
    """Organization-scoped label attached to events."""

    __tablename__ = "tags"

    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(100), nullable=False)
    color = Column(String(7), nullable=False, default=DEFAULT_TAG_COLOR)
    description = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_tags_organization_name"),
    )

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name})>"
