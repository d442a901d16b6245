"""Process-wide de-duplication of alert notifications."""

import time
from typing import Callable, Dict, Optional


class AlertRateLimiter:
    """
    Remembers when each alert key last fired and suppresses repeats inside a window.

    Best effort only: state lives in process memory and is lost on restart.
    Stale keys are pruned on every check, and when the map still exceeds
    ``max_keys`` the oldest entries are evicted.
    """

    def __init__(
        self,
        window_seconds: float = 3600,
        max_keys: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        self._last_alert: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._last_alert)

    def last_alert_time(self, key: str) -> Optional[float]:
        return self._last_alert.get(key)

    def should_alert(self, key: str) -> bool:
        """Whether ``key`` is outside its cooldown. Does not record anything."""
        self.prune()
        last = self._last_alert.get(key)
        if last is None:
            return True
        return self._clock() - last > self.window_seconds

    def record(self, key: str) -> None:
        self._last_alert[key] = self._clock()
        if len(self._last_alert) > self.max_keys:
            self._evict_oldest()

    def try_acquire(self, key: str) -> bool:
        """Check and record in one step; True means the caller should alert."""
        if not self.should_alert(key):
            return False
        self.record(key)
        return True

    def prune(self) -> int:
        now = self._clock()
        stale = [k for k, t in self._last_alert.items() if now - t > self.window_seconds]
        for key in stale:
            del self._last_alert[key]
        return len(stale)

    def reset(self) -> None:
        self._last_alert.clear()

    def _evict_oldest(self) -> None:
        overflow = len(self._last_alert) - self.max_keys
        for key, _ in sorted(self._last_alert.items(), key=lambda item: item[1])[:overflow]:
            del self._last_alert[key]
