"""Tests for application wiring and error rendering."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from firstprocess.server.app import create_app
from firstprocess.server.auth.identity import IdentityService, get_identity_service


@pytest.fixture
def client():
    app = create_app()
    app.dependency_overrides[get_identity_service] = lambda: MagicMock(
        spec=IdentityService
    )
    return TestClient(app)


def test_health_check(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.json() == {'status': 'ok'}


def test_unknown_route_uses_error_shape(client):
    response = client.get('/api/does-not-exist')

    assert response.status_code == 404
    assert response.json() == {'error': 'Not Found'}


def test_invalid_body_is_400_with_error(client):
    response = client.post('/api/invites/resend', json={})

    assert response.status_code == 400
    assert set(response.json()) == {'error'}


def test_missing_session_is_401_with_error(client):
    response = client.post(
        '/api/invites/accept',
        json={'inviteId': 'd1111111-1111-1111-1111-111111111111'},
    )

    assert response.status_code == 401
    assert response.json() == {'error': 'Not authenticated'}
