"""
Store classes for organizations and their subscriptions.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.storage.database import a_session_maker
from firstprocess.storage.org import Org
from firstprocess.storage.org_member import OrgMember
from firstprocess.storage.org_subscription import OrgSubscription


class OrgStore:
    """Store for managing organizations."""

    @staticmethod
    async def get_org_by_id(org_id: UUID) -> Optional[Org]:
        async with a_session_maker() as session:
            result = await session.execute(select(Org).filter(Org.id == org_id))
            return result.scalars().first()

    @staticmethod
    async def persist_org_with_owner(org: Org, org_member: OrgMember) -> Org:
        """
        Persist organization and owner membership in a single transaction.

        Args:
            org: Organization entity to persist
            org_member: Organization member entity to persist

        Returns:
            Org: The persisted organization object
        """
        async with a_session_maker() as session:
            session.add(org)
            await session.flush()
            org_member.org_id = org.id
            session.add(org_member)
            await session.commit()
            await session.refresh(org)

            logger.info(
                'Created organization with owner',
                extra={'org_id': str(org.id), 'owner_id': str(org_member.user_id)},
            )
            return org


class OrgSubscriptionStore:
    """Read access to organization subscriptions.

    Seat decisions always read through here at decision time; nothing is
    cached in front of it.
    """

    @staticmethod
    async def get_subscription(org_id: UUID) -> Optional[OrgSubscription]:
        async with a_session_maker() as session:
            result = await session.execute(
                select(OrgSubscription).filter(OrgSubscription.org_id == org_id)
            )
            return result.scalars().first()

    @staticmethod
    async def upsert_subscription(
        org_id: UUID, status: str, seats_editor: int, seats_viewer: int
    ) -> OrgSubscription:
        async with a_session_maker() as session:
            result = await session.execute(
                select(OrgSubscription).filter(OrgSubscription.org_id == org_id)
            )
            subscription = result.scalars().first()
            if subscription is None:
                subscription = OrgSubscription(org_id=org_id)
                session.add(subscription)
            subscription.status = status
            subscription.seats_editor = seats_editor
            subscription.seats_viewer = seats_viewer
            await session.commit()
            await session.refresh(subscription)
            return subscription
