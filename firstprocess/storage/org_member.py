"""
SQLAlchemy model for Organization Membership.
"""

from datetime import UTC, datetime

from sqlalchemy import UUID, Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from firstprocess.storage.base import Base


class OrgMember(Base):  # type: ignore
    """Membership of a user in an organization.

    The composite primary key guarantees a single membership (and therefore a
    single role) per user per organization. Concurrent inserts for the same
    pair fail with a uniqueness violation, which callers treat as success.
    """

    __tablename__ = 'org_member'

    org_id = Column(
        UUID(as_uuid=True),
        ForeignKey('org.id', ondelete='CASCADE'),
        primary_key=True,
    )
    # Identity provider user id; users live outside this database.
    user_id = Column(UUID(as_uuid=True), primary_key=True, index=True)
    role = Column(String(20), nullable=False)
    can_edit = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    org = relationship('Org', back_populates='members')
