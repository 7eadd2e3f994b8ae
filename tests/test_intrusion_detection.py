import types
from datetime import datetime, timedelta

import pytest

import civic_portal.security.intrusion_detection as id_mod
from civic_portal.security.intrusion_detection import VerificationThrottle


class FrozenDateTime:
    """Helper to monkeypatch datetime.utcnow()"""
    def __init__(self, start):
        self._now = start

    def advance(self, **kwargs):
        self._now += timedelta(**kwargs)

    def utcnow(self):
        return self._now


@pytest.fixture
def frozen_datetime(monkeypatch):
    fd = FrozenDateTime(datetime(2025, 10, 23, 12, 0, 0))
    monkeypatch.setattr(id_mod, 'datetime', types.SimpleNamespace(utcnow=fd.utcnow))
    return fd


def test_lockout_after_max_attempts(frozen_datetime):
    throttle = VerificationThrottle(max_attempts=3, window_minutes=15, lockout_minutes=5)
    key = 'voter:123456'

    assert throttle.record_failed_attempt(key) == 0
    assert throttle.record_failed_attempt(key) == 0
    assert throttle.retry_after(key) == 0

    assert throttle.record_failed_attempt(key) == 300
    assert throttle.retry_after(key) == 300


def test_lockout_expires(frozen_datetime):
    throttle = VerificationThrottle(max_attempts=2, window_minutes=15, lockout_minutes=5)
    key = 'client:1.2.3.4'
    throttle.record_failed_attempt(key)
    throttle.record_failed_attempt(key)

    frozen_datetime.advance(minutes=4, seconds=59)
    assert throttle.retry_after(key) == 1

    frozen_datetime.advance(seconds=1)
    assert throttle.retry_after(key) == 0


def test_attempts_outside_window_do_not_count(frozen_datetime):
    throttle = VerificationThrottle(max_attempts=2, window_minutes=10)
    key = 'voter:234567'
    throttle.record_failed_attempt(key)
    frozen_datetime.advance(minutes=11)
    throttle.record_failed_attempt(key)
    assert throttle.retry_after(key) == 0


def test_expired_keys_are_swept_on_later_failures(frozen_datetime):
    throttle = VerificationThrottle(max_attempts=3, window_minutes=15, lockout_minutes=5)
    throttle.record_failed_attempt('a')
    throttle.record_failed_attempt('b')
    throttle.record_failed_attempt('b')
    throttle.record_failed_attempt('b')
    assert throttle.retry_after('b') > 0

    frozen_datetime.advance(minutes=16)
    throttle.record_failed_attempt('c')
    assert 'a' not in throttle.failed_attempts
    assert 'b' not in throttle.locks
    assert throttle.retry_after('b') == 0
    assert list(throttle.failed_attempts) == ['c']


def test_distinct_keys_do_not_accumulate(frozen_datetime):
    throttle = VerificationThrottle(max_attempts=5, window_minutes=15)
    for i in range(300):
        throttle.record_failed_attempt(f'voter:{i}')
    assert len(throttle.failed_attempts) == 300

    frozen_datetime.advance(minutes=15, seconds=1)
    throttle.record_failed_attempt('voter:fresh')
    assert list(throttle.failed_attempts) == ['voter:fresh']


def test_expired_lock_is_dropped_on_lookup(frozen_datetime):
    throttle = VerificationThrottle(max_attempts=1, lockout_minutes=5)
    throttle.record_failed_attempt('voter:1')
    frozen_datetime.advance(minutes=5)
    assert throttle.retry_after('voter:1') == 0
    assert 'voter:1' not in throttle.locks


def test_keys_are_isolated(frozen_datetime):
    throttle = VerificationThrottle(max_attempts=2)
    throttle.record_failed_attempt('voter:1')
    throttle.record_failed_attempt('voter:2')
    throttle.record_failed_attempt('voter:1')

    assert throttle.retry_after('voter:1') > 0
    assert throttle.retry_after('voter:2') == 0


def test_reset_clears_lockout(frozen_datetime):
    throttle = VerificationThrottle(max_attempts=1)
    throttle.record_failed_attempt('voter:1')
    assert throttle.retry_after('voter:1') > 0
    throttle.reset('voter:1')
    assert throttle.retry_after('voter:1') == 0


def test_from_config():
    throttle = VerificationThrottle.from_config({
        'VERIFY_MAX_ATTEMPTS': 4, 'VERIFY_WINDOW_MINUTES': 1, 'VERIFY_LOCKOUT_MINUTES': 2,
    })
    assert throttle.max_attempts == 4
    assert throttle.window == timedelta(minutes=1)
    assert throttle.lockout_duration == timedelta(minutes=2)
