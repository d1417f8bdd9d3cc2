"""
Permission-based authorization dependencies for API endpoints.

Roles (owner, editor, viewer) are mapped to permissions via ROLE_PERMISSIONS.
The organization a request acts on is always derived from the caller's own
membership; no endpoint accepts an organization id from the client.

Usage:
    from firstprocess.server.auth.authorization import (
        OrgContext,
        Permission,
        require_permission,
    )

    @router.post('/api/invites')
    async def create_invitation(
        ctx: OrgContext = Depends(require_permission(Permission.INVITE_MEMBERS)),
    ):
        # Only owners and editors reach this point
        ...
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from fastapi import Depends, HTTPException, status

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.auth.user_auth import (
    AuthenticatedUser,
    get_authenticated_user,
)
from firstprocess.storage.org_member_store import OrgMemberStore


class Permission(str, Enum):
    """Permissions that can be assigned to roles."""

    # Organization Members
    VIEW_MEMBERS = 'view_members'
    INVITE_MEMBERS = 'invite_members'
    CHANGE_MEMBER_ROLE = 'change_member_role'
    REMOVE_MEMBER = 'remove_member'

    # Billing
    VIEW_SEATS = 'view_seats'


class RoleName(str, Enum):
    """Role names used in the system."""

    OWNER = 'owner'
    EDITOR = 'editor'
    VIEWER = 'viewer'


ROLE_PERMISSIONS: dict[RoleName, frozenset[Permission]] = {
    RoleName.OWNER: frozenset(
        [
            Permission.VIEW_MEMBERS,
            Permission.INVITE_MEMBERS,
            Permission.CHANGE_MEMBER_ROLE,
            Permission.REMOVE_MEMBER,
            Permission.VIEW_SEATS,
        ]
    ),
    RoleName.EDITOR: frozenset(
        [
            Permission.VIEW_MEMBERS,
            Permission.INVITE_MEMBERS,
            Permission.VIEW_SEATS,
        ]
    ),
    RoleName.VIEWER: frozenset(
        [
            Permission.VIEW_MEMBERS,
            Permission.VIEW_SEATS,
        ]
    ),
}


@dataclass(frozen=True)
class OrgContext:
    """The caller and the organization their request is scoped to."""

    user: AuthenticatedUser
    org_id: UUID
    role: str


def get_role_permissions(role_name: str) -> frozenset[Permission]:
    try:
        role_enum = RoleName(role_name)
        return ROLE_PERMISSIONS.get(role_enum, frozenset())
    except ValueError:
        return frozenset()


def has_permission(role_name: str, permission: Permission) -> bool:
    return permission in get_role_permissions(role_name)


def require_permission(permission: Permission):
    """
    Factory function that creates a dependency to require a specific permission.

    The dependency:
    1. Resolves the authenticated user from the session (401 otherwise)
    2. Loads the user's membership to find their organization and role
    3. Checks the role grants the permission (403 otherwise)

    Args:
        permission: The permission required to access the endpoint

    Returns:
        Dependency function returning an OrgContext
    """

    async def permission_checker(
        user: AuthenticatedUser = Depends(get_authenticated_user),
    ) -> OrgContext:
        membership = await OrgMemberStore.get_membership_for_user(user.id)

        if not membership:
            logger.warning(
                'User not a member of any organization',
                extra={'user_id': str(user.id)},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='You are not a member of an organization',
            )

        if not has_permission(membership.role, permission):
            logger.warning(
                'Insufficient permissions',
                extra={
                    'user_id': str(user.id),
                    'org_id': str(membership.org_id),
                    'user_role': membership.role,
                    'required_permission': permission.value,
                },
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f'Requires {permission.value} permission',
            )

        return OrgContext(user=user, org_id=membership.org_id, role=membership.role)

    return permission_checker
