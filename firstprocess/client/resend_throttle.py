"""Client-side pacing for resend requests."""

import time
from typing import Callable

from firstprocess.server.constants import RESEND_MIN_INTERVAL_SECONDS


class ResendTooSoonError(Exception):
    def __init__(self, target: str, retry_after: float):
        self.target = target
        self.retry_after = retry_after
        super().__init__(
            f'Please wait {int(retry_after) + 1} seconds before requesting another link'
        )


class ResendThrottle:
    """Allows one resend per target within ``min_interval`` seconds.

    Targets are invitation ids or lowercased email addresses.
    """

    def __init__(
        self,
        min_interval: float = RESEND_MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = min_interval
        self.clock = clock
        self._last_sent: dict[str, float] = {}

    @staticmethod
    def _key(target: str) -> str:
        return target.strip().lower()

    def retry_after(self, target: str) -> float:
        last = self._last_sent.get(self._key(target))
        if last is None:
            return 0.0
        return max(0.0, self.min_interval - (self.clock() - last))

    def acquire(self, target: str) -> None:
        """Record a resend for ``target``.

        Raises:
            ResendTooSoonError: If the previous resend was too recent
        """
        wait = self.retry_after(target)
        if wait > 0:
            raise ResendTooSoonError(target, wait)
        self._last_sent[self._key(target)] = self.clock()
