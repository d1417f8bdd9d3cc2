"""Tests for client-side resend pacing."""

import pytest

from firstprocess.client.resend_throttle import ResendThrottle, ResendTooSoonError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_second_request_within_interval_is_refused():
    clock = FakeClock()
    throttle = ResendThrottle(min_interval=60, clock=clock)
    throttle.acquire('invite-1')

    clock.now += 59
    with pytest.raises(ResendTooSoonError) as exc_info:
        throttle.acquire('invite-1')

    assert exc_info.value.retry_after == pytest.approx(1)


def test_request_allowed_after_interval():
    clock = FakeClock()
    throttle = ResendThrottle(min_interval=60, clock=clock)
    throttle.acquire('invite-1')

    clock.now += 60
    throttle.acquire('invite-1')


def test_targets_are_independent():
    throttle = ResendThrottle(min_interval=60, clock=FakeClock())
    throttle.acquire('a@x.com')

    throttle.acquire('b@x.com')


def test_email_targets_ignore_case():
    throttle = ResendThrottle(min_interval=60, clock=FakeClock())
    throttle.acquire('A@X.com')

    with pytest.raises(ResendTooSoonError):
        throttle.acquire(' a@x.com')


def test_retry_after_for_unknown_target():
    assert ResendThrottle(clock=FakeClock()).retry_after('nobody') == 0.0
