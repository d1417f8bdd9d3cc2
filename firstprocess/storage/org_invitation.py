"""
SQLAlchemy model for Organization Invitation.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import UUID, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from firstprocess.storage.base import Base


class OrgInvitation(Base):  # type: ignore
    """Organization invitation model.

    Represents a pending offer for an email address to join an organization
    with a given role. An invitation is mutated exactly once, when it is
    accepted, by recording the accepting user and the acceptance time.

    At most one unaccepted invitation may exist per (organization, email);
    the partial unique index enforces it at the database level.
    """

    __tablename__ = 'org_invitation'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    org_id = Column(
        UUID(as_uuid=True),
        ForeignKey('org.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    inviter_id = Column(UUID(as_uuid=True), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    accepted_by_user_id = Column(UUID(as_uuid=True), nullable=True)

    org = relationship('Org', back_populates='invitations')

    __table_args__ = (
        Index(
            'uq_org_invitation_pending_org_email',
            'org_id',
            'email',
            unique=True,
            postgresql_where=accepted_at.is_(None),
            sqlite_where=accepted_at.is_(None),
        ),
    )

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None
