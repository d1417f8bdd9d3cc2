"""Tests for the client-side invitation completion flow."""

import json
from uuid import UUID

import httpx
import pytest

from firstprocess.client.invite_flow import FlowState, InviteFlowClient
from firstprocess.client.resend_throttle import ResendThrottle
from firstprocess.server.auth.identity import IdentitySession, IdentityUser

INVITE_ID = UUID('d4444444-4444-4444-4444-444444444444')


def _session(has_password=False) -> IdentitySession:
    return IdentitySession(
        access_token='access-1',
        refresh_token='refresh-1',
        user=IdentityUser(
            id='b2222222-2222-2222-2222-222222222222',
            email='invitee@example.com',
            user_metadata={'has_password': has_password},
        ),
    )


class FakeServer:
    """Records calls and answers with preset statuses."""

    def __init__(self, password_status=200, accept_status=200, accept_error=None):
        self.calls = []
        self.password_status = password_status
        self.accept_status = accept_status
        self.accept_error = accept_error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if request.url.path == '/api/auth/password':
            if self.password_status != 200:
                return httpx.Response(
                    self.password_status, json={'error': 'Password too short'}
                )
            return httpx.Response(200, json={'ok': True})
        if request.url.path == '/api/invites/accept':
            if self.accept_status != 200:
                return httpx.Response(
                    self.accept_status, json={'error': self.accept_error}
                )
            return httpx.Response(200, json={'ok': True})
        if request.url.path == '/api/invites/resend':
            return httpx.Response(200, json={'ok': True, 'emailMode': 'invite'})
        return httpx.Response(404, json={'error': 'Not Found'})


def _client(server) -> InviteFlowClient:
    return InviteFlowClient(
        'https://app.example.com', transport=httpx.MockTransport(server)
    )


class TestComplete:
    @pytest.mark.asyncio
    async def test_sets_password_then_accepts(self):
        server = FakeServer()

        outcome = await _client(server).complete(
            _session(), INVITE_ID, password='long-enough'
        )

        assert outcome.state == FlowState.DONE
        assert outcome.location == '/org'
        password_call, accept_call = server.calls
        assert password_call.headers['authorization'] == 'Bearer access-1'
        assert json.loads(accept_call.content) == {'inviteId': str(INVITE_ID)}
        assert 'fp-access-token=access-1' in accept_call.headers['cookie']

    @pytest.mark.asyncio
    async def test_skips_password_when_already_set(self):
        server = FakeServer()

        outcome = await _client(server).complete(_session(has_password=True), INVITE_ID)

        assert outcome.state == FlowState.DONE
        assert [call.url.path for call in server.calls] == ['/api/invites/accept']

    @pytest.mark.asyncio
    async def test_asks_for_password(self):
        server = FakeServer()

        outcome = await _client(server).complete(_session(), INVITE_ID)

        assert outcome.state == FlowState.NEED_PASSWORD
        assert server.calls == []

    @pytest.mark.asyncio
    async def test_invalid_password(self):
        outcome = await _client(FakeServer(password_status=400)).complete(
            _session(), INVITE_ID, password='short'
        )

        assert outcome.state == FlowState.INVALID_PASSWORD
        assert outcome.message == 'Password too short'

    @pytest.mark.parametrize(
        'status_code,state',
        [
            (401, FlowState.NEED_SESSION),
            (403, FlowState.CONFLICT),
            (404, FlowState.ERROR),
            (409, FlowState.SEATS_FULL),
        ],
    )
    @pytest.mark.asyncio
    async def test_accept_failures(self, status_code, state):
        server = FakeServer(accept_status=status_code, accept_error='nope')

        outcome = await _client(server).complete(_session(has_password=True), INVITE_ID)

        assert outcome.state == state
        assert outcome.message == 'nope'

    @pytest.mark.asyncio
    async def test_full_seats_surface_upgrade_message(self):
        message = 'No editor seats available. Upgrade your plan to add more.'
        server = FakeServer(accept_status=409, accept_error=message)

        outcome = await _client(server).complete(_session(has_password=True), INVITE_ID)

        assert outcome.state == FlowState.SEATS_FULL
        assert outcome.message == message
        assert outcome.location is None

    @pytest.mark.asyncio
    async def test_network_error_is_terminal(self):
        def handler(request):
            raise httpx.ConnectError('offline', request=request)

        client = InviteFlowClient(
            'https://app.example.com', transport=httpx.MockTransport(handler)
        )

        outcome = await client.complete(_session(has_password=True), INVITE_ID)

        assert outcome.state == FlowState.ERROR


class TestResend:
    @pytest.mark.asyncio
    async def test_resend_reports_mode(self):
        outcome = await _client(FakeServer()).resend(invite_id=INVITE_ID)

        assert outcome.ok is True
        assert outcome.email_mode == 'invite'

    @pytest.mark.asyncio
    async def test_resend_is_throttled(self):
        server = FakeServer()
        client = InviteFlowClient(
            'https://app.example.com',
            transport=httpx.MockTransport(server),
            throttle=ResendThrottle(min_interval=60, clock=lambda: 0.0),
        )

        await client.resend(invite_id=INVITE_ID)
        second = await client.resend(invite_id=INVITE_ID)

        assert second.ok is False
        assert second.retry_after == pytest.approx(60)
        assert len(server.calls) == 1
