"""Service for managing organization members and seat usage."""

from uuid import UUID

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.constants import ALL_ROLES, ROLE_OWNER
from firstprocess.server.routes.org_invitation_models import SeatLimitExceededError
from firstprocess.server.routes.org_models import (
    InvalidRoleError,
    LastOwnerError,
    OrgMemberNotFoundError,
)
from firstprocess.server.seats import SeatUsage, tier_for_role
from firstprocess.storage.org_member import OrgMember
from firstprocess.storage.org_member_store import OrgMemberStore
from firstprocess.storage.org_store import OrgSubscriptionStore


class OrgMemberService:
    """Service for organization member operations."""

    @staticmethod
    async def get_org_members(org_id: UUID) -> list[OrgMember]:
        return await OrgMemberStore.get_org_members(org_id)

    @staticmethod
    async def get_seat_usage(org_id: UUID) -> SeatUsage:
        """Seat usage of current members; pending invitations are not included."""
        subscription = await OrgSubscriptionStore.get_subscription(org_id)
        members = await OrgMemberStore.get_org_members(org_id)
        return SeatUsage.compute(subscription, [m.role for m in members])

    @staticmethod
    def _is_last_owner(members: list[OrgMember], user_id: UUID) -> bool:
        owners = [m for m in members if m.role == ROLE_OWNER]
        return len(owners) == 1 and owners[0].user_id == user_id

    @staticmethod
    async def update_member_role(
        org_id: UUID, target_user_id: UUID, role: str
    ) -> OrgMember:
        """Change a member's role.

        A seat check applies only when the role moves to a different tier;
        owner and editor share the editor tier.

        Raises:
            InvalidRoleError: If the role is unknown
            OrgMemberNotFoundError: If the target is not a member
            LastOwnerError: If the last owner would be demoted
            SeatLimitExceededError: If the target tier is full
        """
        role = role.strip().lower()
        if role not in ALL_ROLES:
            raise InvalidRoleError(role)

        members = await OrgMemberStore.get_org_members(org_id)
        target = next((m for m in members if m.user_id == target_user_id), None)
        if target is None:
            raise OrgMemberNotFoundError(str(org_id), str(target_user_id))

        if target.role == role:
            return target

        if target.role == ROLE_OWNER and OrgMemberService._is_last_owner(
            members, target_user_id
        ):
            raise LastOwnerError()

        new_tier = tier_for_role(role)
        if new_tier != tier_for_role(target.role):
            subscription = await OrgSubscriptionStore.get_subscription(org_id)
            usage = SeatUsage.compute(subscription, [m.role for m in members])
            if not usage.has_free_seat(role):
                logger.warning(
                    'Role change rejected: seat limit reached',
                    extra={
                        'org_id': str(org_id),
                        'user_id': str(target_user_id),
                        'role': role,
                    },
                )
                raise SeatLimitExceededError(new_tier)

        updated = await OrgMemberStore.update_member_role(org_id, target_user_id, role)
        if updated is None:
            raise OrgMemberNotFoundError(str(org_id), str(target_user_id))
        return updated

    @staticmethod
    async def remove_org_member(org_id: UUID, target_user_id: UUID) -> None:
        """Remove a member from an organization.

        Raises:
            OrgMemberNotFoundError: If the target is not a member
            LastOwnerError: If the target is the last owner
        """
        members = await OrgMemberStore.get_org_members(org_id)
        target = next((m for m in members if m.user_id == target_user_id), None)
        if target is None:
            raise OrgMemberNotFoundError(str(org_id), str(target_user_id))

        if target.role == ROLE_OWNER and OrgMemberService._is_last_owner(
            members, target_user_id
        ):
            raise LastOwnerError()

        if not await OrgMemberStore.remove_user_from_org(org_id, target_user_id):
            raise OrgMemberNotFoundError(str(org_id), str(target_user_id))

        logger.info(
            'Removed member from organization',
            extra={'org_id': str(org_id), 'user_id': str(target_user_id)},
        )
