"""Rate limiting.

Two limiters live here, both on the ``limits`` package that slowapi is built on:

* ``limiter`` - slowapi per-route limits for the unauthenticated write
  endpoints (register, forgot-password, reset-password).
* ``LoginRateLimiter`` - the fixed-window login attempt counter consumed by
  ``AccountManager.login``. It is keyed by client address, process-wide and
  rejects immediately once the window is full.
"""

import threading
import time

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from portal.config import get_settings

limiter = Limiter(key_func=get_remote_address)


class LoginRateLimiter:
    """Fixed-window attempt counter per key, backed by in-memory ``limits`` storage."""

    def __init__(self, max_attempts: int, window_seconds: int) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_attempts = max_attempts
        self.window_seconds = int(window_seconds)
        self._item = RateLimitItemPerSecond(max_attempts, self.window_seconds, namespace="login")
        self._storage = MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)
        # Increment and read-back must pair up per caller
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """Record one attempt for ``key``. Returns False when over the limit."""
        with self._lock:
            return self._strategy.hit(self._item, key)

    def retry_after(self, key: str) -> float:
        """Seconds until the current window for ``key`` rolls over."""
        stats = self._strategy.get_window_stats(self._item, key)
        if stats.remaining >= self.max_attempts:
            return 0.0
        return max(0.0, stats.reset_time - time.time())

    def reset(self) -> None:
        self._storage.reset()


_login_rate_limiter: LoginRateLimiter | None = None


def get_login_rate_limiter() -> LoginRateLimiter:
    """Get singleton login rate limiter instance."""
    global _login_rate_limiter
    if _login_rate_limiter is None:
        settings = get_settings()
        _login_rate_limiter = LoginRateLimiter(
            max_attempts=settings.LOGIN_RATE_LIMIT_ATTEMPTS,
            window_seconds=settings.LOGIN_RATE_LIMIT_WINDOW_MINUTES * 60,
        )
    return _login_rate_limiter
