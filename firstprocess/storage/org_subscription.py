"""
SQLAlchemy model for an organization's subscription and seat allowances.
"""

from datetime import UTC, datetime

from sqlalchemy import UUID, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from firstprocess.storage.base import Base


class OrgSubscription(Base):  # type: ignore
    __tablename__ = 'org_subscription'

    org_id = Column(
        UUID(as_uuid=True),
        ForeignKey('org.id', ondelete='CASCADE'),
        primary_key=True,
    )
    status = Column(String(32), nullable=False)
    # Owners and editors share the editor tier.
    seats_editor = Column(Integer, nullable=False, default=0)
    seats_viewer = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    org = relationship('Org', back_populates='subscription')
