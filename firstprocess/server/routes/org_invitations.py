"""API routes for organization invitations."""

from fastapi import APIRouter, Depends, HTTPException, status

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.auth.authorization import (
    OrgContext,
    Permission,
    require_permission,
)
from firstprocess.server.auth.identity import (
    IdentityService,
    IdentityServiceError,
    get_identity_service,
)
from firstprocess.server.auth.user_auth import (
    AuthenticatedUser,
    get_authenticated_user,
)
from firstprocess.server.routes.org_invitation_models import (
    EmailMismatchError,
    InvalidInvitationRoleError,
    InvitationAccept,
    InvitationAlreadyAcceptedError,
    InvitationCreate,
    InvitationCreateResponse,
    InvitationNotFoundError,
    InvitationResend,
    InvitationResendResponse,
    OkResponse,
    SeatLimitExceededError,
)
from firstprocess.server.services.org_invitation_service import OrgInvitationService

invitation_router = APIRouter(prefix='/api/invites')


@invitation_router.post('', response_model=InvitationCreateResponse)
async def create_invitation(
    invitation_data: InvitationCreate,
    ctx: OrgContext = Depends(require_permission(Permission.INVITE_MEMBERS)),
    identity: IdentityService = Depends(get_identity_service),
):
    """Invite an email address to the caller's organization.

    Inviting an address that already has a pending invitation returns that
    invitation with ``duplicate`` set instead of creating a second one.

    Raises:
        HTTPException 400: Invalid role
        HTTPException 401: Not signed in
        HTTPException 403: Caller may not invite
        HTTPException 409: No seat available for the role's tier
    """
    try:
        result = await OrgInvitationService.create_invitation(
            org_id=ctx.org_id,
            email=str(invitation_data.email),
            role=invitation_data.role,
            inviter=ctx.user,
            identity=identity,
        )
    except InvalidInvitationRoleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SeatLimitExceededError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        logger.exception(
            'Unexpected error creating invitation',
            extra={'org_id': str(ctx.org_id), 'error': str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='An unexpected error occurred',
        )

    return InvitationCreateResponse(
        inviteId=result.invitation.id, duplicate=result.duplicate
    )


@invitation_router.post('/accept', response_model=OkResponse)
async def accept_invitation(
    accept_data: InvitationAccept,
    user: AuthenticatedUser = Depends(get_authenticated_user),
):
    """Accept an invitation as the signed-in user.

    Safe to call again after a partial failure; repeating an accept that
    already succeeded also returns ``ok``.

    Raises:
        HTTPException 401: No session cookie
        HTTPException 403: Signed-in email differs from the invitation's
        HTTPException 404: Invitation not found
        HTTPException 409: No seat available for the role's tier
    """
    try:
        await OrgInvitationService.accept_invitation(accept_data.inviteId, user)
    except InvitationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except EmailMismatchError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except SeatLimitExceededError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        logger.exception(
            'Unexpected error accepting invitation',
            extra={
                'invitation_id': str(accept_data.inviteId),
                'user_id': str(user.id),
                'error': str(e),
            },
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='An unexpected error occurred',
        )

    return OkResponse()


@invitation_router.post('/resend', response_model=InvitationResendResponse)
async def resend_invitation(
    resend_data: InvitationResend,
    identity: IdentityService = Depends(get_identity_service),
):
    """Send a fresh link when the one in hand has expired.

    Reachable without a session: the caller is usually stuck precisely because
    their link no longer signs them in. The link always goes to the address on
    record, never to one supplied alongside an invitation id.

    Raises:
        HTTPException 404: Invitation not found
        HTTPException 409: Invitation already accepted
        HTTPException 502: Identity provider refused to issue a link
    """
    try:
        if resend_data.inviteId is not None:
            action = await OrgInvitationService.resend_invitation(
                resend_data.inviteId, identity
            )
        else:
            action = await OrgInvitationService.resend_to_email(
                str(resend_data.email), identity
            )
    except InvitationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvitationAlreadyAcceptedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except IdentityServiceError as e:
        logger.error(
            'Identity provider refused to issue link',
            extra={'status_code': e.status_code, 'error': str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail='Could not issue a new link, please try again',
        )
    except Exception as e:
        logger.exception('Unexpected error resending link', extra={'error': str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='An unexpected error occurred',
        )

    return InvitationResendResponse(emailMode=action.email_mode)
