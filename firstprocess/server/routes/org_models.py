"""
Pydantic models and custom exceptions for organization members and seats.
"""

from uuid import UUID

from pydantic import BaseModel

from firstprocess.server.seats import SeatUsage
from firstprocess.storage.org_member import OrgMember


class OrgMemberError(Exception):
    """Base exception for membership errors."""

    pass


class OrgMemberNotFoundError(OrgMemberError):
    def __init__(self, org_id: str, user_id: str):
        self.org_id = org_id
        self.user_id = user_id
        super().__init__(f'User {user_id} is not a member of organization {org_id}')


class LastOwnerError(OrgMemberError):
    """Raised when an action would leave the organization without an owner."""

    def __init__(self, message: str = 'An organization must keep at least one owner'):
        super().__init__(message)


class InvalidRoleError(OrgMemberError):
    def __init__(self, role: str):
        self.role = role
        super().__init__(f'Invalid role: {role}')


class OrgMemberUpdate(BaseModel):
    role: str


class OrgMemberResponse(BaseModel):
    user_id: UUID
    role: str
    can_edit: bool

    @classmethod
    def from_org_member(cls, member: OrgMember) -> 'OrgMemberResponse':
        return cls(user_id=member.user_id, role=member.role, can_edit=member.can_edit)


class OrgMemberList(BaseModel):
    items: list[OrgMemberResponse]


class SeatTier(BaseModel):
    used: int
    limit: int | None = None


class SeatsResponse(BaseModel):
    org_id: UUID
    has_active_sub: bool
    editors: SeatTier
    viewers: SeatTier

    @classmethod
    def from_usage(cls, org_id: UUID, usage: SeatUsage) -> 'SeatsResponse':
        return cls(
            org_id=org_id,
            has_active_sub=usage.has_active_sub,
            editors=SeatTier(used=usage.used_editors, limit=usage.seats_editor),
            viewers=SeatTier(used=usage.used_viewers, limit=usage.seats_viewer),
        )
