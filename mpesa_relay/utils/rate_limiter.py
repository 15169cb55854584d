"""
Rate limiting for inbound payment requests
"""
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    started_at: float
    count: int = 0


class RateLimiter:
    """
    Fixed window rate limiter keyed by client.

    Each client gets ``max_requests`` calls per ``window_seconds``. Excess
    calls are rejected outright; nothing is queued.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter

        Args:
            max_requests: Maximum number of requests allowed per window
            window_seconds: Window length in seconds
            clock: Monotonic time source (injectable for tests)
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self.last_request_time: Optional[float] = None

    def _cleanup_expired_windows(self, current_time: float) -> None:
        """Drop windows that have already rolled over"""
        expired = [
            key for key, window in self._windows.items()
            if current_time - window.started_at >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]

    def allow(self, client_key: str) -> bool:
        """
        Record a request for ``client_key`` and report whether it may proceed
        """
        current_time = self._clock()
        self._cleanup_expired_windows(current_time)

        window = self._windows.get(client_key)
        if window is None:
            window = self._windows[client_key] = _Window(started_at=current_time)

        self.last_request_time = current_time
        if window.count >= self.max_requests:
            logger.warning("[RATE_LIMIT] Rejected request from %s (%d in window)", client_key, window.count)
            return False

        window.count += 1
        return True

    def retry_after(self, client_key: str) -> int:
        """Seconds until the client's current window resets"""
        window = self._windows.get(client_key)
        if window is None:
            return 0
        remaining = self.window_seconds - (self._clock() - window.started_at)
        return max(0, int(remaining + 0.999))

    def get_stats(self) -> dict:
        """Get current rate limiter statistics"""
        current_time = self._clock()
        self._cleanup_expired_windows(current_time)

        return {
            'tracked_clients': len(self._windows),
            'limit': self.max_requests,
            'window_seconds': self.window_seconds,
            'last_request_time': self.last_request_time
        }
