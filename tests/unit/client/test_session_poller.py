"""Tests for the bounded session poller."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from firstprocess.client.session_poller import SessionPoller


class TestPoll:
    @pytest.mark.asyncio
    async def test_returns_first_session(self):
        fetch = AsyncMock(side_effect=[None, None, 'session'])
        poller = SessionPoller(fetch, max_attempts=5, delay=0)

        assert await poller.poll() == 'session'
        assert poller.attempts == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        fetch = AsyncMock(return_value=None)
        poller = SessionPoller(fetch, max_attempts=4, delay=0)

        assert await poller.poll() is None
        assert fetch.await_count == 4

    @pytest.mark.asyncio
    async def test_errors_count_as_attempts(self):
        fetch = AsyncMock(side_effect=[RuntimeError('network'), 'session'])
        poller = SessionPoller(fetch, max_attempts=3, delay=0)

        assert await poller.poll() == 'session'

    @pytest.mark.asyncio
    async def test_persistent_errors_end_empty(self):
        fetch = AsyncMock(side_effect=RuntimeError('network'))
        poller = SessionPoller(fetch, max_attempts=3, delay=0)

        assert await poller.poll() is None
        assert fetch.await_count == 3


class TestStart:
    @pytest.mark.asyncio
    async def test_result_delivered(self):
        on_result = MagicMock()
        poller = SessionPoller(AsyncMock(return_value='session'), delay=0)

        poller.start(on_result)
        await asyncio.sleep(0.05)

        on_result.assert_called_once_with('session')

    @pytest.mark.asyncio
    async def test_dispose_stops_polling(self):
        fetch = AsyncMock(return_value=None)
        on_result = MagicMock()
        poller = SessionPoller(fetch, max_attempts=100, delay=0.01)

        dispose = poller.start(on_result)
        await asyncio.sleep(0.03)
        dispose()
        attempts_at_dispose = fetch.await_count
        await asyncio.sleep(0.1)

        assert fetch.await_count <= attempts_at_dispose + 1
        assert fetch.await_count < 100
        on_result.assert_not_called()

    @pytest.mark.asyncio
    async def test_dispose_after_completion_is_harmless(self):
        on_result = MagicMock()
        poller = SessionPoller(AsyncMock(return_value='session'), delay=0)

        dispose = poller.start(on_result)
        await asyncio.sleep(0.05)
        dispose()

        on_result.assert_called_once()
