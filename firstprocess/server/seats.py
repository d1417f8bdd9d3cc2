"""Seat accounting for organization subscriptions.

Owners and editors consume editor-tier seats; viewers consume viewer-tier
seats. Limits apply only while the subscription has an active status; with no
subscription, or any other status, seats are unlimited.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from firstprocess.server.constants import (
    ACTIVE_SUBSCRIPTION_STATUSES,
    ROLE_EDITOR,
    ROLE_OWNER,
    ROLE_VIEWER,
    TIER_EDITOR,
    TIER_VIEWER,
)
from firstprocess.storage.org_subscription import OrgSubscription


def tier_for_role(role: str) -> str:
    if role in (ROLE_OWNER, ROLE_EDITOR):
        return TIER_EDITOR
    if role == ROLE_VIEWER:
        return TIER_VIEWER
    raise ValueError(f'Invalid role: {role}')


def has_active_subscription(subscription: Optional[OrgSubscription]) -> bool:
    return (
        subscription is not None
        and subscription.status in ACTIVE_SUBSCRIPTION_STATUSES
    )


@dataclass(frozen=True)
class SeatUsage:
    has_active_sub: bool
    used_editors: int
    used_viewers: int
    seats_editor: Optional[int]
    seats_viewer: Optional[int]

    @classmethod
    def compute(
        cls,
        subscription: Optional[OrgSubscription],
        roles: Iterable[str],
    ) -> 'SeatUsage':
        """Build seat usage from a subscription and the roles holding seats.

        Args:
            subscription: The organization's subscription, if any
            roles: Roles of current members, plus pending invitations when
                the caller counts those toward usage

        Returns:
            SeatUsage: Usage per tier; limits are None when not enforced
        """
        used_editors = 0
        used_viewers = 0
        for role in roles:
            if tier_for_role(role) == TIER_EDITOR:
                used_editors += 1
            else:
                used_viewers += 1

        active = has_active_subscription(subscription)
        return cls(
            has_active_sub=active,
            used_editors=used_editors,
            used_viewers=used_viewers,
            seats_editor=(subscription.seats_editor or 0) if active else None,
            seats_viewer=(subscription.seats_viewer or 0) if active else None,
        )

    def limit_for(self, tier: str) -> Optional[int]:
        return self.seats_editor if tier == TIER_EDITOR else self.seats_viewer

    def used_for(self, tier: str) -> int:
        return self.used_editors if tier == TIER_EDITOR else self.used_viewers

    def has_free_seat(self, role: str) -> bool:
        """Whether one more seat of the role's tier fits the subscription."""
        if not self.has_active_sub:
            return True
        tier = tier_for_role(role)
        return self.used_for(tier) < self.limit_for(tier)
