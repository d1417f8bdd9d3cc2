"""Bounded polling for a session that is still being established."""

import asyncio
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from firstprocess.core.logger import firstprocess_logger as logger
from firstprocess.server.constants import (
    SESSION_POLL_DELAY_SECONDS,
    SESSION_POLL_MAX_ATTEMPTS,
)

T = TypeVar('T')


class SessionPoller(Generic[T]):
    """Polls ``fetch_session`` until it yields a session or attempts run out.

    ``start`` schedules the polling as a task and returns a dispose callback;
    calling it cancels the task, after which ``on_result`` is never invoked.
    """

    def __init__(
        self,
        fetch_session: Callable[[], Awaitable[Optional[T]]],
        max_attempts: int = SESSION_POLL_MAX_ATTEMPTS,
        delay: float = SESSION_POLL_DELAY_SECONDS,
    ):
        self.fetch_session = fetch_session
        self.max_attempts = max_attempts
        self.delay = delay
        self.attempts = 0

    async def _fetch(self) -> Optional[T]:
        self.attempts += 1
        return await self.fetch_session()

    async def poll(self) -> Optional[T]:
        """Return the session, or None once every attempt came back empty."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.delay),
            retry=retry_if_result(lambda session: session is None)
            | retry_if_exception_type(Exception),
            retry_error_callback=lambda retry_state: None,
            reraise=False,
        )
        session = await retrying(self._fetch)
        if session is None:
            logger.info(
                'No session after polling', extra={'attempts': self.attempts}
            )
        return session

    def start(self, on_result: Callable[[Optional[T]], None]) -> Callable[[], None]:
        """Start polling in the background; must be called from a running loop."""

        async def run() -> None:
            session = await self.poll()
            on_result(session)

        task = asyncio.get_running_loop().create_task(run())

        def dispose() -> None:
            if not task.done():
                task.cancel()

        return dispose
