"""
Client side of invitation completion.

Once the landing page holds a session, the flow optionally sets a password,
accepts the invitation and sends the browser to the organization home. Every
failure, network errors included, ends in a named terminal state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

import httpx

from firstprocess.client.resend_throttle import ResendThrottle, ResendTooSoonError
from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.auth.identity import IdentitySession
from firstprocess.server.constants import ACCESS_TOKEN_COOKIE, ORG_HOME_PATH

DEFAULT_TIMEOUT_SECONDS = 15.0


class FlowState(str, Enum):
    DONE = 'done'
    NEED_PASSWORD = 'need-password'
    INVALID_PASSWORD = 'invalid-password'
    NEED_SESSION = 'need-session'
    CONFLICT = 'conflict'
    SEATS_FULL = 'seats-full'
    ERROR = 'error'


@dataclass(frozen=True)
class FlowOutcome:
    state: FlowState
    location: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class ResendOutcome:
    ok: bool
    email_mode: Optional[str] = None
    message: Optional[str] = None
    retry_after: float = 0.0


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get('error') or response.reason_phrase
    except ValueError:
        return response.reason_phrase


_STATE_BY_STATUS = {
    401: FlowState.NEED_SESSION,
    403: FlowState.CONFLICT,
    409: FlowState.SEATS_FULL,
}


class InviteFlowClient:
    def __init__(
        self,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        throttle: ResendThrottle | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip('/')
        self._transport = transport
        self._timeout = timeout
        self.throttle = throttle or ResendThrottle()

    def _client(self, session: IdentitySession | None = None) -> httpx.AsyncClient:
        cookies = {ACCESS_TOKEN_COOKIE: session.access_token} if session else None
        return httpx.AsyncClient(
            base_url=self.base_url,
            transport=self._transport,
            timeout=self._timeout,
            cookies=cookies,
        )

    async def set_password(
        self, session: IdentitySession, password: str
    ) -> Optional[FlowOutcome]:
        """Set the password; returns a terminal outcome only on failure."""
        async with self._client(session) as client:
            response = await client.post(
                '/api/auth/password',
                json={'password': password},
                headers={'Authorization': f'Bearer {session.access_token}'},
            )
        if response.status_code == 200:
            return None
        if response.status_code == 400:
            return FlowOutcome(FlowState.INVALID_PASSWORD, message=_error_message(response))
        state = _STATE_BY_STATUS.get(response.status_code, FlowState.ERROR)
        return FlowOutcome(state, message=_error_message(response))

    async def accept(self, session: IdentitySession, invite_id: UUID) -> FlowOutcome:
        async with self._client(session) as client:
            response = await client.post(
                '/api/invites/accept', json={'inviteId': str(invite_id)}
            )
        if response.status_code == 200:
            return FlowOutcome(FlowState.DONE, location=ORG_HOME_PATH)
        state = _STATE_BY_STATUS.get(response.status_code, FlowState.ERROR)
        return FlowOutcome(state, message=_error_message(response))

    async def complete(
        self,
        session: IdentitySession,
        invite_id: UUID,
        password: str | None = None,
    ) -> FlowOutcome:
        """Run set-password (when needed) then acceptance.

        Safe to call again after any outcome; the server side of both steps
        tolerates repetition.
        """
        try:
            if not session.user.has_password:
                if not password:
                    return FlowOutcome(FlowState.NEED_PASSWORD)
                failure = await self.set_password(session, password)
                if failure:
                    return failure
            return await self.accept(session, invite_id)
        except Exception as e:
            logger.warning(
                'Invitation flow failed',
                extra={'invite_id': str(invite_id), 'error': str(e)},
            )
            return FlowOutcome(
                FlowState.ERROR, message='Something went wrong. Please retry.'
            )

    async def resend(
        self, invite_id: UUID | None = None, email: str | None = None
    ) -> ResendOutcome:
        """Ask for a fresh link, at most once per minute per target."""
        target = str(invite_id) if invite_id else (email or '')
        try:
            self.throttle.acquire(target)
        except ResendTooSoonError as e:
            return ResendOutcome(ok=False, message=str(e), retry_after=e.retry_after)

        body = {'inviteId': str(invite_id)} if invite_id else {'email': email}
        try:
            async with self._client() as client:
                response = await client.post('/api/invites/resend', json=body)
        except Exception as e:
            logger.warning('Resend request failed', extra={'error': str(e)})
            return ResendOutcome(ok=False, message='Could not send a new link. Please retry.')

        if response.status_code != 200:
            return ResendOutcome(ok=False, message=_error_message(response))
        return ResendOutcome(ok=True, email_mode=response.json().get('emailMode'))
