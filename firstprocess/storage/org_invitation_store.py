"""
Store class for managing organization invitations.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.storage.database import a_session_maker
from firstprocess.storage.org_invitation import OrgInvitation


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class InvitationCreateResult:
    invitation: OrgInvitation
    duplicate: bool = False


class OrgInvitationStore:
    """Store for managing organization invitations."""

    @staticmethod
    async def create_invitation(
        org_id: UUID,
        email: str,
        role: str,
        inviter_id: UUID,
    ) -> InvitationCreateResult:
        """Insert a new pending invitation.

        If a concurrent request inserted a pending invitation for the same
        (org, email) first, the partial unique index rejects this insert and
        the existing invitation is returned with ``duplicate=True``.

        Args:
            org_id: Organization UUID
            email: Invitee's email address
            role: Role to assign on acceptance
            inviter_id: User ID of the person creating the invitation

        Returns:
            InvitationCreateResult: The stored invitation and duplicate flag
        """
        email = normalize_email(email)
        async with a_session_maker() as session:
            invitation = OrgInvitation(
                org_id=org_id,
                email=email,
                role=role,
                inviter_id=inviter_id,
            )
            session.add(invitation)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info(
                    'Pending invitation already exists, reusing it',
                    extra={'org_id': str(org_id), 'email': email},
                )
            else:
                await session.refresh(invitation)
                logger.info(
                    'Created organization invitation',
                    extra={
                        'invitation_id': str(invitation.id),
                        'org_id': str(org_id),
                        'email': email,
                        'role': role,
                        'inviter_id': str(inviter_id),
                    },
                )
                return InvitationCreateResult(invitation=invitation)

        existing = await OrgInvitationStore.get_pending_invitation(org_id, email)
        if existing is None:
            # The conflicting row was accepted in between; nothing to reuse.
            raise RuntimeError(
                f'Failed to create or retrieve pending invitation for {email}'
            )
        return InvitationCreateResult(invitation=existing, duplicate=True)

    @staticmethod
    async def get_invitation_by_id(invitation_id: UUID) -> Optional[OrgInvitation]:
        async with a_session_maker() as session:
            result = await session.execute(
                select(OrgInvitation).filter(OrgInvitation.id == invitation_id)
            )
            return result.scalars().first()

    @staticmethod
    async def get_pending_invitation(
        org_id: UUID, email: str
    ) -> Optional[OrgInvitation]:
        """Get the unaccepted invitation for an email in an organization.

        Args:
            org_id: Organization UUID
            email: Email address to check

        Returns:
            OrgInvitation or None if no pending invitation exists
        """
        async with a_session_maker() as session:
            result = await session.execute(
                select(OrgInvitation).filter(
                    and_(
                        OrgInvitation.org_id == org_id,
                        OrgInvitation.email == normalize_email(email),
                        OrgInvitation.accepted_at.is_(None),
                    )
                )
            )
            return result.scalars().first()

    @staticmethod
    async def get_pending_invitations(org_id: UUID) -> list[OrgInvitation]:
        async with a_session_maker() as session:
            result = await session.execute(
                select(OrgInvitation).filter(
                    and_(
                        OrgInvitation.org_id == org_id,
                        OrgInvitation.accepted_at.is_(None),
                    )
                )
            )
            return list(result.scalars().all())

    @staticmethod
    async def mark_accepted(
        invitation_id: UUID, user_id: UUID
    ) -> Optional[OrgInvitation]:
        """Record that an invitation was accepted.

        Only an unaccepted invitation is updated, so repeated calls keep the
        first acceptance time and user and still succeed.

        Args:
            invitation_id: The invitation ID
            user_id: The user who accepted it

        Returns:
            The invitation, or None if it does not exist
        """
        async with a_session_maker() as session:
            result = await session.execute(
                update(OrgInvitation)
                .where(
                    and_(
                        OrgInvitation.id == invitation_id,
                        OrgInvitation.accepted_at.is_(None),
                    )
                )
                .values(
                    accepted_at=datetime.now(UTC),
                    accepted_by_user_id=user_id,
                )
            )
            await session.commit()

            if result.rowcount:
                logger.info(
                    'Marked invitation accepted',
                    extra={
                        'invitation_id': str(invitation_id),
                        'accepted_by_user_id': str(user_id),
                    },
                )

            refreshed = await session.execute(
                select(OrgInvitation).filter(OrgInvitation.id == invitation_id)
            )
            return refreshed.scalars().first()
