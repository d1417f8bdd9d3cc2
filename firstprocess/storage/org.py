"""
SQLAlchemy model for Organization.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import UUID, Column, DateTime, String
from sqlalchemy.orm import relationship

from firstprocess.storage.base import Base


class Org(Base):  # type: ignore
    """A tenant owning departments, roles and processes."""

    __tablename__ = 'org'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    members = relationship('OrgMember', back_populates='org')
    invitations = relationship('OrgInvitation', back_populates='org')
    subscription = relationship('OrgSubscription', back_populates='org', uselist=False)
