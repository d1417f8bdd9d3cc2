"""Tests for organization invitations API router."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from firstprocess.server.app import create_app
from firstprocess.server.auth.identity import IdentityServiceError, get_identity_service
from firstprocess.server.auth.user_auth import (
    AuthenticatedUser,
    get_authenticated_user,
)
from firstprocess.server.routes.org_invitation_models import (
    EmailMismatchError,
    InvalidInvitationRoleError,
    InvitationAlreadyAcceptedError,
    InvitationNotFoundError,
    SeatLimitExceededError,
)
from firstprocess.server.services.org_invitation_service import (
    RESEND_ACTIONS,
    AccountKind,
)
from firstprocess.storage.org_invitation import OrgInvitation
from firstprocess.storage.org_invitation_store import InvitationCreateResult

ORG_ID = UUID('c1111111-1111-1111-1111-111111111111')
USER_ID = UUID('a1111111-1111-1111-1111-111111111111')
INVITE_ID = UUID('d4444444-4444-4444-4444-444444444444')

SERVICE_PATH = 'firstprocess.server.routes.org_invitations.OrgInvitationService'
MEMBERSHIP_PATH = (
    'firstprocess.server.auth.authorization.OrgMemberStore.get_membership_for_user'
)


def _user() -> AuthenticatedUser:
    return AuthenticatedUser(
        id=USER_ID,
        email='owner@example.com',
        has_password=True,
        access_token='token',
        source='cookie',
    )


def _membership(role: str):
    membership = MagicMock()
    membership.org_id = ORG_ID
    membership.role = role
    return membership


@pytest.fixture
def app(mock_identity):
    app = create_app()
    app.dependency_overrides[get_identity_service] = lambda: mock_identity
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def signed_in(app):
    app.dependency_overrides[get_authenticated_user] = _user
    return app


class TestCreateInvitationEndpoint:
    def test_owner_creates_invitation(self, client, signed_in):
        invitation = MagicMock(spec=OrgInvitation)
        invitation.id = INVITE_ID

        with (
            patch(MEMBERSHIP_PATH, new_callable=AsyncMock, return_value=_membership('owner')),
            patch(
                f'{SERVICE_PATH}.create_invitation',
                new_callable=AsyncMock,
                return_value=InvitationCreateResult(invitation=invitation),
            ) as mock_create,
        ):
            response = client.post(
                '/api/invites', json={'email': 'new@example.com', 'role': 'viewer'}
            )

        assert response.status_code == 200
        assert response.json() == {
            'ok': True,
            'inviteId': str(INVITE_ID),
            'duplicate': False,
        }
        kwargs = mock_create.call_args.kwargs
        assert kwargs['org_id'] == ORG_ID
        assert kwargs['role'] == 'viewer'

    def test_duplicate_is_reported(self, client, signed_in):
        invitation = MagicMock(spec=OrgInvitation)
        invitation.id = INVITE_ID

        with (
            patch(MEMBERSHIP_PATH, new_callable=AsyncMock, return_value=_membership('editor')),
            patch(
                f'{SERVICE_PATH}.create_invitation',
                new_callable=AsyncMock,
                return_value=InvitationCreateResult(invitation=invitation, duplicate=True),
            ),
        ):
            response = client.post('/api/invites', json={'email': 'new@example.com'})

        assert response.status_code == 200
        assert response.json()['duplicate'] is True

    def test_viewer_cannot_invite(self, client, signed_in):
        with patch(
            MEMBERSHIP_PATH, new_callable=AsyncMock, return_value=_membership('viewer')
        ):
            response = client.post('/api/invites', json={'email': 'new@example.com'})

        assert response.status_code == 403
        assert 'error' in response.json()

    def test_unauthenticated(self, client):
        response = client.post('/api/invites', json={'email': 'new@example.com'})

        assert response.status_code == 401
        assert response.json() == {'error': 'Not authenticated'}

    def test_invalid_email_is_bad_request(self, client, signed_in):
        with patch(
            MEMBERSHIP_PATH, new_callable=AsyncMock, return_value=_membership('owner')
        ):
            response = client.post('/api/invites', json={'email': 'not-an-email'})

        assert response.status_code == 400
        assert 'error' in response.json()

    @pytest.mark.parametrize(
        'error,status_code',
        [
            (InvalidInvitationRoleError('owner'), 400),
            (SeatLimitExceededError('editor'), 409),
            (RuntimeError('database down'), 500),
        ],
    )
    def test_error_mapping(self, client, signed_in, error, status_code):
        with (
            patch(MEMBERSHIP_PATH, new_callable=AsyncMock, return_value=_membership('owner')),
            patch(
                f'{SERVICE_PATH}.create_invitation',
                new_callable=AsyncMock,
                side_effect=error,
            ),
        ):
            response = client.post('/api/invites', json={'email': 'new@example.com'})

        assert response.status_code == status_code
        assert set(response.json()) == {'error'}

    def test_seat_error_message_is_actionable(self, client, signed_in):
        with (
            patch(MEMBERSHIP_PATH, new_callable=AsyncMock, return_value=_membership('owner')),
            patch(
                f'{SERVICE_PATH}.create_invitation',
                new_callable=AsyncMock,
                side_effect=SeatLimitExceededError('editor'),
            ),
        ):
            response = client.post('/api/invites', json={'email': 'new@example.com'})

        assert 'Upgrade' in response.json()['error']


class TestAcceptInvitationEndpoint:
    def test_accept_success(self, client, signed_in):
        with patch(
            f'{SERVICE_PATH}.accept_invitation', new_callable=AsyncMock
        ) as mock_accept:
            response = client.post(
                '/api/invites/accept', json={'inviteId': str(INVITE_ID)}
            )

        assert response.status_code == 200
        assert response.json() == {'ok': True}
        invitation_id, user = mock_accept.call_args.args
        assert invitation_id == INVITE_ID
        assert user.id == USER_ID

    def test_accept_requires_session(self, client):
        with patch(
            f'{SERVICE_PATH}.accept_invitation', new_callable=AsyncMock
        ) as mock_accept:
            response = client.post(
                '/api/invites/accept', json={'inviteId': str(INVITE_ID)}
            )

        assert response.status_code == 401
        mock_accept.assert_not_called()

    def test_accept_ignores_bearer_only(self, client, mock_identity):
        response = client.post(
            '/api/invites/accept',
            json={'inviteId': str(INVITE_ID)},
            headers={'Authorization': 'Bearer token'},
        )

        assert response.status_code == 401
        mock_identity.get_user.assert_not_called()

    @pytest.mark.parametrize(
        'error,status_code,message',
        [
            (InvitationNotFoundError(), 404, 'Invite not found'),
            (EmailMismatchError(), 403, 'Invite email mismatch'),
            (SeatLimitExceededError('viewer'), 409, None),
        ],
    )
    def test_accept_error_mapping(self, client, signed_in, error, status_code, message):
        with patch(
            f'{SERVICE_PATH}.accept_invitation',
            new_callable=AsyncMock,
            side_effect=error,
        ):
            response = client.post(
                '/api/invites/accept', json={'inviteId': str(INVITE_ID)}
            )

        assert response.status_code == status_code
        if message:
            assert response.json() == {'error': message}

    def test_accept_invalid_invite_id(self, client, signed_in):
        response = client.post('/api/invites/accept', json={'inviteId': 'nope'})

        assert response.status_code == 400


class TestResendEndpoint:
    def test_resend_by_invite_id(self, client):
        with patch(
            f'{SERVICE_PATH}.resend_invitation',
            new_callable=AsyncMock,
            return_value=RESEND_ACTIONS[AccountKind.HAS_PASSWORD],
        ):
            response = client.post(
                '/api/invites/resend', json={'inviteId': str(INVITE_ID)}
            )

        assert response.status_code == 200
        assert response.json() == {'ok': True, 'emailMode': 'magic-link'}

    def test_resend_by_email(self, client):
        with patch(
            f'{SERVICE_PATH}.resend_to_email',
            new_callable=AsyncMock,
            return_value=RESEND_ACTIONS[AccountKind.NO_PASSWORD],
        ) as mock_resend:
            response = client.post(
                '/api/invites/resend', json={'email': 'someone@example.com'}
            )

        assert response.status_code == 200
        assert response.json()['emailMode'] == 'password-reset'
        assert mock_resend.call_args.args[0] == 'someone@example.com'

    def test_resend_requires_target(self, client):
        response = client.post('/api/invites/resend', json={})

        assert response.status_code == 400

    @pytest.mark.parametrize(
        'error,status_code',
        [
            (InvitationNotFoundError(), 404),
            (InvitationAlreadyAcceptedError(), 409),
            (IdentityServiceError('rate limited', status_code=429), 502),
        ],
    )
    def test_resend_error_mapping(self, client, error, status_code):
        with patch(
            f'{SERVICE_PATH}.resend_invitation',
            new_callable=AsyncMock,
            side_effect=error,
        ):
            response = client.post(
                '/api/invites/resend', json={'inviteId': str(INVITE_ID)}
            )

        assert response.status_code == status_code
        assert 'error' in response.json()
