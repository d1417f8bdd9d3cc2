"""
Resolution of the authenticated user for API requests.

Identity always comes from the identity provider: the access token is read
from the session cookie (or, where allowed, an ``Authorization: Bearer``
header) and exchanged for the user record. Nothing in the request body is
trusted for identity.
"""

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.auth.identity import (
    IdentityService,
    IdentityServiceError,
    IdentityUnavailableError,
    IdentityUser,
    get_identity_service,
)
from firstprocess.server.constants import ACCESS_TOKEN_COOKIE

SOURCE_COOKIE = 'cookie'
SOURCE_BEARER = 'bearer'


@dataclass(frozen=True)
class AuthenticatedUser:
    id: UUID
    email: str
    has_password: bool
    access_token: str
    source: str

    @classmethod
    def from_identity_user(
        cls, user: IdentityUser, access_token: str, source: str
    ) -> 'AuthenticatedUser':
        return cls(
            id=UUID(user.id),
            email=user.normalized_email,
            has_password=user.has_password,
            access_token=access_token,
            source=source,
        )


def get_bearer_token(request: Request) -> str | None:
    header = request.headers.get('authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


async def _user_from_token(
    identity: IdentityService, access_token: str, source: str
) -> AuthenticatedUser | None:
    try:
        user = await identity.get_user(access_token)
    except IdentityUnavailableError:
        raise
    except IdentityServiceError as e:
        logger.info(
            'Access token rejected by identity provider',
            extra={'source': source, 'status_code': e.status_code},
        )
        return None
    return AuthenticatedUser.from_identity_user(user, access_token, source)


async def resolve_user(
    request: Request,
    identity: IdentityService,
    allow_bearer: bool = False,
) -> AuthenticatedUser | None:
    """Resolve the caller from the session cookie, then optionally a bearer token.

    The bearer fallback covers the window where the client already holds a
    fresher session than the one persisted in cookies.
    """
    cookie_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if cookie_token:
        user = await _user_from_token(identity, cookie_token, SOURCE_COOKIE)
        if user:
            return user

    if allow_bearer:
        bearer = get_bearer_token(request)
        if bearer:
            return await _user_from_token(identity, bearer, SOURCE_BEARER)
    return None


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail='Not authenticated',
    )


def _unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail='Identity service unavailable, please retry',
    )


async def get_authenticated_user(
    request: Request,
    identity: IdentityService = Depends(get_identity_service),
) -> AuthenticatedUser:
    """Dependency requiring a cookie session."""
    try:
        user = await resolve_user(request, identity)
    except IdentityUnavailableError:
        raise _unavailable()
    if not user:
        raise _unauthorized()
    return user


async def get_user_with_bearer_fallback(
    request: Request,
    identity: IdentityService = Depends(get_identity_service),
) -> AuthenticatedUser:
    """Dependency accepting a cookie session or a bearer token."""
    try:
        user = await resolve_user(request, identity, allow_bearer=True)
    except IdentityUnavailableError:
        raise _unavailable()
    if not user:
        raise _unauthorized()
    return user
