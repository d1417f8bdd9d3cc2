"""
Database engine and session makers.

The engine is created lazily so importing a store never opens a connection.
"""

from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from firstprocess.server.config import get_server_config


@lru_cache
def get_engine() -> AsyncEngine:
    config = get_server_config()
    return create_async_engine(config.database_url, pool_pre_ping=True)


@lru_cache
def _get_async_session_maker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)


def a_session_maker(**kwargs) -> AsyncSession:
    """Open a new async session; keyword arguments are forwarded."""
    return _get_async_session_maker()(**kwargs)
