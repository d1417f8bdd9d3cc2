"""Session bridge, password and logout routes.

These are the only handlers that write authentication cookies.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.auth.identity import (
    IdentityService,
    IdentityServiceError,
    IdentitySession,
    IdentityUnavailableError,
    get_identity_service,
)
from firstprocess.server.auth.redirect import append_query_flag, sanitize_next
from firstprocess.server.auth.user_auth import (
    AuthenticatedUser,
    get_user_with_bearer_fallback,
    resolve_user,
)
from firstprocess.server.config import ServerConfig, get_server_config
from firstprocess.server.constants import (
    ACCESS_TOKEN_COOKIE,
    CODE_VERIFIER_COOKIE,
    OTP_TYPES,
    PASSWORD_MIN_LENGTH,
    REFRESH_TOKEN_COOKIE,
    REFRESH_TOKEN_MAX_AGE,
    SESSION_BRIDGE_PATH,
)
from firstprocess.server.routes.auth_models import InvalidPasswordError, PasswordUpdate
from firstprocess.server.routes.org_invitation_models import OkResponse

AUTH_ERROR_PARAM = 'auth_error'
AUTH_ERROR_LINK_EXPIRED = 'link_expired'
AUTH_ERROR_SESSION_FAILED = 'session_failed'

auth_router = APIRouter()


def set_session_cookies(
    response: RedirectResponse | JSONResponse,
    session: IdentitySession,
    config: ServerConfig,
) -> None:
    cookie_options = {
        'httponly': True,
        'secure': config.cookie_secure,
        'samesite': 'lax',
        'path': '/',
    }
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        session.access_token,
        max_age=session.expires_in,
        **cookie_options,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        session.refresh_token,
        max_age=REFRESH_TOKEN_MAX_AGE,
        **cookie_options,
    )
    response.delete_cookie(CODE_VERIFIER_COOKIE, path='/')


def clear_session_cookies(response: RedirectResponse | JSONResponse) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, CODE_VERIFIER_COOKIE):
        response.delete_cookie(name, path='/')


async def _establish_session(
    request: Request, identity: IdentityService
) -> IdentitySession | None:
    """Turn whichever artifact the query carries into a session.

    Returns None when the query carries no artifact at all.
    """
    params = request.query_params
    code = params.get('code')
    access_token = params.get('access_token')
    refresh_token = params.get('refresh_token')
    token = params.get('token_hash') or params.get('token')
    otp_type = params.get('type')

    if code:
        return await identity.exchange_code(
            code, request.cookies.get(CODE_VERIFIER_COOKIE)
        )
    if access_token and refresh_token:
        return await identity.set_session(access_token, refresh_token)
    if token and otp_type in OTP_TYPES:
        return await identity.verify_otp(token, otp_type)
    return None


@auth_router.get(SESSION_BRIDGE_PATH)
async def session_bridge(
    request: Request,
    identity: IdentityService = Depends(get_identity_service),
    config: ServerConfig = Depends(get_server_config),
):
    """Exchange an authentication artifact for session cookies.

    Accepts ``code``, an ``access_token``/``refresh_token`` pair, or
    ``token``/``token_hash`` with ``type``, plus a ``next`` path. Always
    answers with a redirect to the sanitized ``next``; when no session could
    be established an ``auth_error`` flag is appended so the landing page can
    offer a new link.
    """
    next_path = sanitize_next(request.query_params.get('next'))

    error_kind = None
    session = None
    if request.query_params.get('error'):
        logger.info(
            'Identity provider redirected with an error',
            extra={
                'error': request.query_params.get('error'),
                'error_code': request.query_params.get('error_code'),
            },
        )
        error_kind = AUTH_ERROR_LINK_EXPIRED
    else:
        try:
            session = await _establish_session(request, identity)
            if session is None:
                error_kind = AUTH_ERROR_SESSION_FAILED
        except IdentityUnavailableError:
            error_kind = AUTH_ERROR_SESSION_FAILED
        except IdentityServiceError as e:
            logger.info(
                'Session bridge artifact rejected',
                extra={'status_code': e.status_code, 'error': str(e)},
            )
            error_kind = (
                AUTH_ERROR_LINK_EXPIRED if e.is_rejection else AUTH_ERROR_SESSION_FAILED
            )

    if session is not None:
        logger.info(
            'Session established',
            extra={'user_id': session.user.id, 'next': next_path},
        )
        response = RedirectResponse(next_path, status_code=status.HTTP_302_FOUND)
        set_session_cookies(response, session, config)
        return response

    # A replayed link on an already signed-in browser is not an error.
    try:
        existing = await resolve_user(request, identity)
    except IdentityUnavailableError:
        existing = None
    if existing:
        return RedirectResponse(next_path, status_code=status.HTTP_302_FOUND)

    return RedirectResponse(
        append_query_flag(next_path, AUTH_ERROR_PARAM, error_kind),
        status_code=status.HTTP_302_FOUND,
    )


@auth_router.post('/api/auth/password', response_model=OkResponse)
async def set_password(
    password_data: PasswordUpdate,
    user: AuthenticatedUser = Depends(get_user_with_bearer_fallback),
    identity: IdentityService = Depends(get_identity_service),
):
    """Set the signed-in user's password.

    Accepts the session cookie or an ``Authorization: Bearer`` token, since
    the browser may hold a newer session than the cookies do.

    Raises:
        HTTPException 400: Password too short, or rejected by the provider
        HTTPException 401: No identity from either source
    """
    password = password_data.password
    try:
        if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
            raise InvalidPasswordError()
        await identity.update_password(user.access_token, password)
    except InvalidPasswordError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except IdentityUnavailableError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Identity service unavailable, please retry',
        )
    except IdentityServiceError as e:
        logger.warning(
            'Password update rejected',
            extra={'user_id': str(user.id), 'status_code': e.status_code},
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(
        'Password set', extra={'user_id': str(user.id), 'source': user.source}
    )
    return OkResponse()


@auth_router.post('/api/auth/logout', response_model=OkResponse)
async def logout(
    request: Request,
    identity: IdentityService = Depends(get_identity_service),
):
    """Clear the session cookies and revoke the session when possible."""
    access_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if access_token:
        try:
            await identity.sign_out(access_token)
        except IdentityServiceError as e:
            logger.info('Sign-out not confirmed by provider', extra={'error': str(e)})

    response = JSONResponse({'ok': True})
    clear_session_cookies(response)
    return response
