"""Short-lived in-process memory of alerts already sent.

Repeated saves of an issue that already sits in an alerting state would
otherwise re-send the same alert. The cache is per process and expires
entries after a TTL; a TTL of 0 disables it.
"""

import time
from typing import Callable


class AlertDeduper:
    """Remembers alert keys for ``ttl_seconds``."""

    def __init__(self, ttl_seconds: int = 0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sent: dict[str, float] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def _expire(self, now: float) -> None:
        expired = [k for k, at in self._sent.items() if now - at >= self.ttl_seconds]
        for key in expired:
            del self._sent[key]

    def seen(self, key: str) -> bool:
        """Whether an alert with this key was recorded within the TTL."""
        if not self.enabled:
            return False
        self._expire(self._clock())
        return key in self._sent

    def record(self, key: str) -> None:
        if self.enabled:
            self._sent[key] = self._clock()
