# civic_portal/security/intrusion_detection.py

import threading
from datetime import datetime, timedelta

# Throttles identity verification by tracking failed attempts per key
# (voter id or client address). The address substring rule is guessable,
# so repeated misses trigger a short lockout.


class VerificationThrottle:
    def __init__(self, max_attempts=5, window_minutes=15, lockout_minutes=5):
        """
        max_attempts: failures within `window_minutes` that trigger lockout
        window_minutes: sliding window to count failures
        lockout_minutes: duration of the lockout once max_attempts is reached
        """
        self.failed_attempts = {}  # key -> list[datetime]
        self.max_attempts = max_attempts
        self.window = timedelta(minutes=window_minutes)
        self.lockout_duration = timedelta(minutes=lockout_minutes)
        self.locks = {}  # key -> locked_until datetime
        self._lock = threading.Lock()
        self._last_pruned = None

    @classmethod
    def from_config(cls, config):
        return cls(
            max_attempts=config.get('VERIFY_MAX_ATTEMPTS', 5),
            window_minutes=config.get('VERIFY_WINDOW_MINUTES', 15),
            lockout_minutes=config.get('VERIFY_LOCKOUT_MINUTES', 5),
        )

    def _now(self):
        # extracted for easier monkeypatching in tests
        return datetime.utcnow()

    def _prune(self, now):
        # caller holds self._lock
        for key, attempts in list(self.failed_attempts.items()):
            pruned = [t for t in attempts if now - t <= self.window]
            if pruned:
                self.failed_attempts[key] = pruned
            else:
                del self.failed_attempts[key]
        for key, locked_until in list(self.locks.items()):
            if now >= locked_until:
                del self.locks[key]
        self._last_pruned = now

    def record_failed_attempt(self, key):
        """
        Record a failure for `key`.

        Returns the number of seconds the key stays locked (0 when not locked).
        Keys with no failure inside the window are swept at most once per window.
        """
        with self._lock:
            now = self._now()
            if self._last_pruned is None or now - self._last_pruned >= self.window:
                self._prune(now)

            locked_until = self.locks.get(key)
            if locked_until and now < locked_until:
                return int((locked_until - now).total_seconds())
            self.locks.pop(key, None)

            attempts = [t for t in self.failed_attempts.get(key, []) if now - t <= self.window]
            attempts.append(now)

            if len(attempts) >= self.max_attempts:
                self.locks[key] = now + self.lockout_duration
                self.failed_attempts.pop(key, None)
                return int(self.lockout_duration.total_seconds())
            self.failed_attempts[key] = attempts
            return 0

    def retry_after(self, key):
        """Seconds left on the lockout for `key`, 0 if it may try now."""
        with self._lock:
            now = self._now()
            locked_until = self.locks.get(key)
            if locked_until is None:
                return 0
            if now < locked_until:
                return max(1, int((locked_until - now).total_seconds()))
            del self.locks[key]
            return 0

    def reset(self, key):
        with self._lock:
            self.failed_attempts.pop(key, None)
            self.locks.pop(key, None)
