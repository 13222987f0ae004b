"""Identity model (the identity provider's user record)."""
from sqlalchemy import Column, String

from dutylog.models.base import BaseModel


class Identity(BaseModel):
    """Authentication identity.

    Holds credentials only. The application profile (``users``) shares the
    identity's primary key and is removed with it.
    """

    __tablename__ = "identities"

    email = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True
    )
    password_hash = Column(
        String(255),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Identity(id={self.id}, email={self.email})>"
