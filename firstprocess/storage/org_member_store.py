"""
Store class for managing organization memberships.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import IntegrityError

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.constants import ROLE_VIEWER
from firstprocess.storage.database import a_session_maker
from firstprocess.storage.org_member import OrgMember


class DuplicateMembershipError(Exception):
    """Raised when a membership for (org, user) already exists."""

    def __init__(self, org_id: UUID, user_id: UUID):
        self.org_id = org_id
        self.user_id = user_id
        super().__init__(f'User {user_id} is already a member of organization {org_id}')


def can_edit_for_role(role: str) -> bool:
    return role != ROLE_VIEWER


class OrgMemberStore:
    """Store for organization memberships."""

    @staticmethod
    async def get_org_member(org_id: UUID, user_id: UUID) -> Optional[OrgMember]:
        async with a_session_maker() as session:
            result = await session.execute(
                select(OrgMember).filter(
                    and_(OrgMember.org_id == org_id, OrgMember.user_id == user_id)
                )
            )
            return result.scalars().first()

    @staticmethod
    async def get_org_members(org_id: UUID) -> list[OrgMember]:
        async with a_session_maker() as session:
            result = await session.execute(
                select(OrgMember)
                .filter(OrgMember.org_id == org_id)
                .order_by(OrgMember.created_at)
            )
            return list(result.scalars().all())

    @staticmethod
    async def get_membership_for_user(user_id: UUID) -> Optional[OrgMember]:
        """Get the membership that scopes a user's requests.

        A user's organization is always derived from their oldest membership,
        never from request input.
        """
        async with a_session_maker() as session:
            result = await session.execute(
                select(OrgMember)
                .filter(OrgMember.user_id == user_id)
                .order_by(OrgMember.created_at)
                .limit(1)
            )
            return result.scalars().first()

    @staticmethod
    async def add_user_to_org(org_id: UUID, user_id: UUID, role: str) -> OrgMember:
        """Insert a membership row.

        Raises:
            DuplicateMembershipError: If the user is already a member
        """
        async with a_session_maker() as session:
            member = OrgMember(
                org_id=org_id,
                user_id=user_id,
                role=role,
                can_edit=can_edit_for_role(role),
            )
            session.add(member)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateMembershipError(org_id, user_id) from e
            await session.refresh(member)

            logger.info(
                'Added user to organization',
                extra={'org_id': str(org_id), 'user_id': str(user_id), 'role': role},
            )
            return member

    @staticmethod
    async def update_member_role(
        org_id: UUID, user_id: UUID, role: str
    ) -> Optional[OrgMember]:
        async with a_session_maker() as session:
            result = await session.execute(
                select(OrgMember).filter(
                    and_(OrgMember.org_id == org_id, OrgMember.user_id == user_id)
                )
            )
            member = result.scalars().first()
            if not member:
                return None

            old_role = member.role
            member.role = role
            member.can_edit = can_edit_for_role(role)
            await session.commit()
            await session.refresh(member)

            logger.info(
                'Updated member role',
                extra={
                    'org_id': str(org_id),
                    'user_id': str(user_id),
                    'old_role': old_role,
                    'new_role': role,
                },
            )
            return member

    @staticmethod
    async def remove_user_from_org(org_id: UUID, user_id: UUID) -> bool:
        async with a_session_maker() as session:
            result = await session.execute(
                delete(OrgMember).where(
                    and_(OrgMember.org_id == org_id, OrgMember.user_id == user_id)
                )
            )
            await session.commit()
            return result.rowcount > 0
