"""In-process sliding-window rate limiter.

Windows live in this process only. Multiple server instances each enforce
their own limit, so treat this as a soft limit; a shared counter store
implementing the same ``check_and_consume`` contract is needed for
cross-instance enforcement.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 60_000
DEFAULT_MAX_REQUESTS = 10


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateLimitWindow:
    """Request count for one identity, reset lazily once ``reset_at_ms`` passes."""

    count: int
    reset_at_ms: int


class InMemoryRateLimiter:
    """Per-identity counter that allows ``max_requests`` calls per ``window_ms``."""

    def __init__(
        self,
        window_ms: int | None = None,
        max_requests: int | None = None,
        clock: Callable[[], int] = _now_ms,
    ):
        """
        Initialize the limiter.

        Args:
            window_ms: Window length (defaults to RATE_LIMIT_WINDOW_MS env var, then 60000)
            max_requests: Allowed calls per window (defaults to RATE_LIMIT_MAX_REQUESTS env var, then 10)
            clock: Millisecond clock, injectable for tests
        """
        self.window_ms = window_ms or int(os.getenv("RATE_LIMIT_WINDOW_MS", DEFAULT_WINDOW_MS))
        self.max_requests = max_requests or int(os.getenv("RATE_LIMIT_MAX_REQUESTS", DEFAULT_MAX_REQUESTS))
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    def check_and_consume(self, identity: str, bypass: bool = False) -> bool:
        """
        Count a request for ``identity`` and report whether it is allowed.

        Privileged callers (``bypass=True``) are always allowed and leave no
        bookkeeping behind. A denied call does not extend the window.
        """
        if bypass:
            return True

        now = self._clock()
        with self._lock:
            window = self._windows.get(identity)

            if window is None or now > window.reset_at_ms:
                self._windows[identity] = RateLimitWindow(count=1, reset_at_ms=now + self.window_ms)
                return True

            if window.count >= self.max_requests:
                logger.warning(f"⏳ [RateLimiter] Limit of {self.max_requests} reached for {identity}")
                return False

            window.count += 1
            return True

    def remaining(self, identity: str) -> int:
        """Requests left in the identity's current window."""
        with self._lock:
            window = self._windows.get(identity)
            if window is None or self._clock() > window.reset_at_ms:
                return self.max_requests
            return max(0, self.max_requests - window.count)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
