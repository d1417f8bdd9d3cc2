"""
Client for the external identity provider.

The provider speaks the GoTrue REST dialect: it issues and verifies
authentication artifacts and owns sessions. Nothing here stores a session;
callers decide where tokens end up (cookies on the server, memory on the
client).
"""

from datetime import datetime
from functools import lru_cache
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.config import ServerConfig, get_server_config
from firstprocess.server.constants import DEFAULT_ACCESS_TOKEN_MAX_AGE

DEFAULT_TIMEOUT_SECONDS = 10.0


class IdentityServiceError(Exception):
    """Raised when the identity provider rejects a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_rejection(self) -> bool:
        """True when the provider refused the artifact rather than failing."""
        return self.status_code is not None and 400 <= self.status_code < 500


class IdentityUnavailableError(IdentityServiceError):
    """Raised when the identity provider cannot be reached."""


class IdentityUser(BaseModel):
    id: str
    email: str | None = None
    email_confirmed_at: datetime | None = None
    user_metadata: dict[str, Any] = {}

    @property
    def has_password(self) -> bool:
        return self.user_metadata.get('has_password') is True

    @property
    def normalized_email(self) -> str:
        return (self.email or '').strip().lower()


class IdentitySession(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int = DEFAULT_ACCESS_TOKEN_MAX_AGE
    token_type: str = 'bearer'
    user: IdentityUser


class IdentityService:
    """Async client for the identity provider's REST API."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_role_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip('/')
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self._transport = transport
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: ServerConfig) -> 'IdentityService':
        return cls(
            base_url=config.identity_url,
            anon_key=config.identity_anon_key,
            service_role_key=config.identity_service_role_key,
        )

    def _headers(self, bearer: str | None = None, admin: bool = False) -> dict:
        if admin:
            if not self.service_role_key:
                raise IdentityServiceError('IDENTITY_SERVICE_ROLE_KEY not configured')
            return {
                'apikey': self.service_role_key,
                'Authorization': f'Bearer {self.service_role_key}',
            }
        headers = {'apikey': self.anon_key}
        if bearer:
            headers['Authorization'] = f'Bearer {bearer}'
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        bearer: str | None = None,
        admin: bool = False,
        params: dict | None = None,
        json: dict | None = None,
    ) -> dict:
        headers = self._headers(bearer=bearer, admin=admin)
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                transport=self._transport,
                timeout=self._timeout,
            ) as client:
                response = await client.request(
                    method, path, headers=headers, params=params, json=json
                )
        except httpx.HTTPError as e:
            logger.error(
                'Identity provider unreachable',
                extra={'path': path, 'error': str(e)},
            )
            raise IdentityUnavailableError(str(e)) from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = (
                body.get('msg')
                or body.get('error_description')
                or body.get('message')
                or body.get('error')
                or f'Identity provider returned HTTP {response.status_code}'
            )
            raise IdentityServiceError(message, status_code=response.status_code)

        if not response.content:
            return {}
        return response.json()

    # -- Session establishment -------------------------------------------

    async def verify_otp(
        self, token: str, otp_type: str, email: str | None = None
    ) -> IdentitySession:
        """Verify an emailed one-time token and return the resulting session.

        With an email the token is treated as the short OTP code; without one
        it is the token hash embedded in email links.
        """
        payload: dict[str, Any] = {'type': otp_type}
        if email:
            payload.update({'token': token, 'email': email.strip().lower()})
        else:
            payload['token_hash'] = token
        data = await self._request('POST', '/auth/v1/verify', json=payload)
        return IdentitySession.model_validate(data)

    async def exchange_code(
        self, code: str, code_verifier: str | None = None
    ) -> IdentitySession:
        data = await self._request(
            'POST',
            '/auth/v1/token',
            params={'grant_type': 'pkce'},
            json={'auth_code': code, 'code_verifier': code_verifier or ''},
        )
        return IdentitySession.model_validate(data)

    async def refresh_session(self, refresh_token: str) -> IdentitySession:
        data = await self._request(
            'POST',
            '/auth/v1/token',
            params={'grant_type': 'refresh_token'},
            json={'refresh_token': refresh_token},
        )
        return IdentitySession.model_validate(data)

    async def set_session(
        self, access_token: str, refresh_token: str
    ) -> IdentitySession:
        """Validate a token pair, refreshing it when the access token is stale.

        Re-establishing a session from the same valid pair returns the same
        tokens, so repeated calls are harmless.
        """
        try:
            user = await self.get_user(access_token)
        except IdentityUnavailableError:
            raise
        except IdentityServiceError:
            return await self.refresh_session(refresh_token)
        return IdentitySession(
            access_token=access_token,
            refresh_token=refresh_token,
            user=user,
        )

    # -- Current user -----------------------------------------------------

    async def get_user(self, access_token: str) -> IdentityUser:
        data = await self._request('GET', '/auth/v1/user', bearer=access_token)
        return IdentityUser.model_validate(data)

    async def update_password(self, access_token: str, password: str) -> IdentityUser:
        data = await self._request(
            'PUT',
            '/auth/v1/user',
            bearer=access_token,
            json={'password': password, 'data': {'has_password': True}},
        )
        return IdentityUser.model_validate(data)

    async def sign_out(self, access_token: str) -> None:
        await self._request('POST', '/auth/v1/logout', bearer=access_token)

    # -- Admin ------------------------------------------------------------

    async def get_user_by_email(self, email: str) -> Optional[IdentityUser]:
        email = email.strip().lower()
        data = await self._request(
            'GET', '/auth/v1/admin/users', admin=True, params={'filter': email}
        )
        for raw_user in data.get('users', []):
            user = IdentityUser.model_validate(raw_user)
            if user.normalized_email == email:
                return user
        return None

    async def generate_link(
        self,
        link_type: str,
        email: str,
        redirect_to: str,
        data: dict | None = None,
    ) -> str:
        """Issue an emailable link of the given type without sending it.

        Args:
            link_type: 'invite', 'recovery' or 'magiclink'
            email: Address the link is bound to
            redirect_to: Where the provider sends the browser after verifying
            data: Optional user metadata to attach (invite links only)

        Returns:
            str: The action link
        """
        payload: dict[str, Any] = {
            'type': link_type,
            'email': email.strip().lower(),
            'redirect_to': redirect_to,
        }
        if data:
            payload['data'] = data
        response = await self._request(
            'POST', '/auth/v1/admin/generate_link', admin=True, json=payload
        )
        action_link = response.get('action_link') or response.get(
            'properties', {}
        ).get('action_link')
        if not action_link:
            raise IdentityServiceError('Identity provider returned no action link')
        return action_link


@lru_cache
def _get_identity_service() -> IdentityService:
    return IdentityService.from_config(get_server_config())


def get_identity_service() -> IdentityService:
    """FastAPI dependency returning the shared identity client."""
    return _get_identity_service()
