"""Shared fixtures: an in-memory SQLite database wired into every store."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from firstprocess.server.auth.identity import IdentityService
from firstprocess.server.auth.user_auth import AuthenticatedUser
from firstprocess.server.constants import ROLE_OWNER
from firstprocess.storage import Org, OrgMember
from firstprocess.storage.base import Base
from firstprocess.storage.org_store import OrgStore

OWNER_ID = UUID('a1111111-1111-1111-1111-111111111111')
ORG_ID = UUID('c1111111-1111-1111-1111-111111111111')
OWNER_EMAIL = 'owner@example.com'

STORE_MODULES = (
    'firstprocess.storage.org_invitation_store',
    'firstprocess.storage.org_member_store',
    'firstprocess.storage.org_store',
)


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        'sqlite+aiosqlite:///:memory:',
        poolclass=StaticPool,
        connect_args={'check_same_thread': False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session_maker(async_engine):
    """Point every store's ``a_session_maker`` at the test engine."""
    maker = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    patchers = [patch(f'{module}.a_session_maker', maker) for module in STORE_MODULES]
    for patcher in patchers:
        patcher.start()
    yield maker
    for patcher in patchers:
        patcher.stop()


@pytest.fixture
async def org_id(session_maker) -> UUID:
    """An organization with a single owner."""
    await OrgStore.persist_org_with_owner(
        Org(id=ORG_ID, name='Acme'),
        OrgMember(user_id=OWNER_ID, role=ROLE_OWNER, can_edit=True),
    )
    return ORG_ID


@pytest.fixture
def owner() -> AuthenticatedUser:
    return AuthenticatedUser(
        id=OWNER_ID,
        email=OWNER_EMAIL,
        has_password=True,
        access_token='owner-token',
        source='cookie',
    )


@pytest.fixture
def mock_identity():
    """Identity service double; every call succeeds unless a test says otherwise."""
    identity = MagicMock(spec=IdentityService)
    identity.get_user_by_email = AsyncMock(return_value=None)
    identity.generate_link = AsyncMock(
        return_value='https://id.example.com/auth/v1/verify?token=link-token'
    )
    identity.get_user = AsyncMock()
    identity.verify_otp = AsyncMock()
    identity.exchange_code = AsyncMock()
    identity.set_session = AsyncMock()
    identity.update_password = AsyncMock()
    identity.sign_out = AsyncMock()
    return identity
