"""API routes for organization members and seats.

Every route acts on the caller's own organization.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.auth.authorization import (
    OrgContext,
    Permission,
    require_permission,
)
from firstprocess.server.routes.org_invitation_models import (
    OkResponse,
    SeatLimitExceededError,
)
from firstprocess.server.routes.org_models import (
    InvalidRoleError,
    LastOwnerError,
    OrgMemberList,
    OrgMemberNotFoundError,
    OrgMemberResponse,
    OrgMemberUpdate,
    SeatsResponse,
)
from firstprocess.server.services.org_member_service import OrgMemberService

org_router = APIRouter(prefix='/api/org')


@org_router.get('/members', response_model=OrgMemberList)
async def list_members(
    ctx: OrgContext = Depends(require_permission(Permission.VIEW_MEMBERS)),
):
    members = await OrgMemberService.get_org_members(ctx.org_id)
    return OrgMemberList(
        items=[OrgMemberResponse.from_org_member(m) for m in members]
    )


@org_router.patch('/members/{user_id}', response_model=OrgMemberResponse)
async def update_member_role(
    user_id: UUID,
    update_data: OrgMemberUpdate,
    ctx: OrgContext = Depends(require_permission(Permission.CHANGE_MEMBER_ROLE)),
):
    """Change a member's role.

    Raises:
        HTTPException 400: Unknown role
        HTTPException 403: Caller is not an owner
        HTTPException 404: Target is not a member
        HTTPException 409: Last owner, or no seat in the target tier
    """
    try:
        member = await OrgMemberService.update_member_role(
            ctx.org_id, user_id, update_data.role
        )
    except InvalidRoleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except OrgMemberNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (LastOwnerError, SeatLimitExceededError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    logger.info(
        'Member role changed',
        extra={
            'org_id': str(ctx.org_id),
            'user_id': str(user_id),
            'role': member.role,
            'changed_by': str(ctx.user.id),
        },
    )
    return OrgMemberResponse.from_org_member(member)


@org_router.delete('/members/{user_id}', response_model=OkResponse)
async def remove_member(
    user_id: UUID,
    ctx: OrgContext = Depends(require_permission(Permission.REMOVE_MEMBER)),
):
    """Remove a member from the organization.

    Raises:
        HTTPException 403: Caller is not an owner
        HTTPException 404: Target is not a member
        HTTPException 409: Target is the last owner
    """
    try:
        await OrgMemberService.remove_org_member(ctx.org_id, user_id)
    except OrgMemberNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except LastOwnerError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return OkResponse()


@org_router.get('/seats', response_model=SeatsResponse)
async def get_seats(
    ctx: OrgContext = Depends(require_permission(Permission.VIEW_SEATS)),
):
    usage = await OrgMemberService.get_seat_usage(ctx.org_id)
    return SeatsResponse.from_usage(ctx.org_id, usage)
