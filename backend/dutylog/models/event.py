"""Event model and the event/tag association table."""
from sqlalchemy import Column, ForeignKey, Index, String, Table, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from dutylog.models.base import Base, BaseModel, UTCDateTime
from dutylog.models.enums import EventStatus

event_tags = Table(
    "event_tags",
    Base.metadata,
    Column(
        "event_id",
        Uuid(as_uuid=True),
        ForeignKey("events.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        Uuid(as_uuid=True),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)


class Event(BaseModel):
    """Activity logged by an officer.

    DRAFT events belong to their officer; SUBMITTED events are visible to the
    organization's admins and frozen for the officer. ``officer_name`` is a
    snapshot so history survives the officer's removal.
    """

    __tablename__ = "events"

    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    officer_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    officer_name = Column(String(255), nullable=False)
    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=True)
    notes = Column(Text, nullable=False, default="")
    involved_parties = Column(Text, nullable=True)
    status = Column(
        SQLEnum(EventStatus, name="event_status", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=EventStatus.DRAFT
    )

    tags = relationship(
        "Tag",
        secondary=event_tags,
        lazy="selectin",
        order_by="Tag.name",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_events_organization_start_time", "organization_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, status={self.status}, officer_id={self.officer_id})>"
