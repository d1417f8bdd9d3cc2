"""Tests for organization members API router."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from firstprocess.server.app import create_app
from firstprocess.server.auth.identity import get_identity_service
from firstprocess.server.auth.user_auth import (
    AuthenticatedUser,
    get_authenticated_user,
)
from firstprocess.server.routes.org_invitation_models import SeatLimitExceededError
from firstprocess.server.routes.org_models import (
    InvalidRoleError,
    LastOwnerError,
    OrgMemberNotFoundError,
)
from firstprocess.server.seats import SeatUsage

ORG_ID = UUID('c1111111-1111-1111-1111-111111111111')
USER_ID = UUID('a1111111-1111-1111-1111-111111111111')
TARGET_ID = UUID('b2222222-2222-2222-2222-222222222222')

SERVICE_PATH = 'firstprocess.server.routes.org_members.OrgMemberService'
MEMBERSHIP_PATH = (
    'firstprocess.server.auth.authorization.OrgMemberStore.get_membership_for_user'
)


def _member(user_id, role):
    member = MagicMock()
    member.org_id = ORG_ID
    member.user_id = user_id
    member.role = role
    member.can_edit = role != 'viewer'
    return member


@pytest.fixture
def client(mock_identity):
    app = create_app()
    app.dependency_overrides[get_identity_service] = lambda: mock_identity
    app.dependency_overrides[get_authenticated_user] = lambda: AuthenticatedUser(
        id=USER_ID,
        email='owner@example.com',
        has_password=True,
        access_token='token',
        source='cookie',
    )
    return TestClient(app)


def _as(role):
    return patch(
        MEMBERSHIP_PATH, new_callable=AsyncMock, return_value=_member(USER_ID, role)
    )


class TestListMembers:
    def test_viewer_can_list(self, client):
        with (
            _as('viewer'),
            patch(
                f'{SERVICE_PATH}.get_org_members',
                new_callable=AsyncMock,
                return_value=[_member(USER_ID, 'owner'), _member(TARGET_ID, 'viewer')],
            ),
        ):
            response = client.get('/api/org/members')

        assert response.status_code == 200
        items = response.json()['items']
        assert [item['role'] for item in items] == ['owner', 'viewer']
        assert items[1]['can_edit'] is False


class TestUpdateMemberRole:
    def test_owner_changes_role(self, client):
        with (
            _as('owner'),
            patch(
                f'{SERVICE_PATH}.update_member_role',
                new_callable=AsyncMock,
                return_value=_member(TARGET_ID, 'viewer'),
            ) as mock_update,
        ):
            response = client.patch(
                f'/api/org/members/{TARGET_ID}', json={'role': 'viewer'}
            )

        assert response.status_code == 200
        assert response.json()['role'] == 'viewer'
        mock_update.assert_awaited_once_with(ORG_ID, TARGET_ID, 'viewer')

    def test_editor_cannot_change_roles(self, client):
        with _as('editor'):
            response = client.patch(
                f'/api/org/members/{TARGET_ID}', json={'role': 'viewer'}
            )

        assert response.status_code == 403

    @pytest.mark.parametrize(
        'error,status_code',
        [
            (InvalidRoleError('admin'), 400),
            (OrgMemberNotFoundError(str(ORG_ID), str(TARGET_ID)), 404),
            (LastOwnerError(), 409),
            (SeatLimitExceededError('editor'), 409),
        ],
    )
    def test_error_mapping(self, client, error, status_code):
        with (
            _as('owner'),
            patch(
                f'{SERVICE_PATH}.update_member_role',
                new_callable=AsyncMock,
                side_effect=error,
            ),
        ):
            response = client.patch(
                f'/api/org/members/{TARGET_ID}', json={'role': 'editor'}
            )

        assert response.status_code == status_code
        assert response.json() == {'error': str(error)}


class TestRemoveMember:
    def test_owner_removes_member(self, client):
        with (
            _as('owner'),
            patch(f'{SERVICE_PATH}.remove_org_member', new_callable=AsyncMock),
        ):
            response = client.delete(f'/api/org/members/{TARGET_ID}')

        assert response.status_code == 200
        assert response.json() == {'ok': True}

    def test_last_owner(self, client):
        with (
            _as('owner'),
            patch(
                f'{SERVICE_PATH}.remove_org_member',
                new_callable=AsyncMock,
                side_effect=LastOwnerError(),
            ),
        ):
            response = client.delete(f'/api/org/members/{USER_ID}')

        assert response.status_code == 409
        assert 'owner' in response.json()['error']


class TestSeats:
    def test_seats_summary(self, client):
        usage = SeatUsage(
            has_active_sub=True,
            used_editors=2,
            used_viewers=0,
            seats_editor=5,
            seats_viewer=3,
        )
        with (
            _as('viewer'),
            patch(
                f'{SERVICE_PATH}.get_seat_usage',
                new_callable=AsyncMock,
                return_value=usage,
            ),
        ):
            response = client.get('/api/org/seats')

        assert response.status_code == 200
        assert response.json() == {
            'org_id': str(ORG_ID),
            'has_active_sub': True,
            'editors': {'used': 2, 'limit': 5},
            'viewers': {'used': 0, 'limit': 3},
        }


class TestUnexpectedErrors:
    @pytest.fixture
    def lenient_client(self, client):
        return TestClient(client.app, raise_server_exceptions=False)

    def test_store_failure_renders_error_body(self, lenient_client):
        with (
            _as('owner'),
            patch(
                f'{SERVICE_PATH}.update_member_role',
                new_callable=AsyncMock,
                side_effect=RuntimeError('db down'),
            ),
        ):
            response = lenient_client.patch(
                f'/api/org/members/{TARGET_ID}', json={'role': 'viewer'}
            )

        assert response.status_code == 500
        assert response.headers['content-type'] == 'application/json'
        assert response.json() == {'error': 'An unexpected error occurred'}

    def test_membership_lookup_failure_renders_error_body(self, lenient_client):
        with patch(
            MEMBERSHIP_PATH, new_callable=AsyncMock, side_effect=RuntimeError('db down')
        ):
            response = lenient_client.get('/api/org/seats')

        assert response.status_code == 500
        assert response.json() == {'error': 'An unexpected error occurred'}
