# signed_image_proxy/api/rate_limit.py
from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable


class SlidingWindowLimiter:
    """Per-key limit of ``max_events`` within the trailing ``window_seconds``."""

    def __init__(self, max_events: int, window_seconds: int = 60, clock: Callable[[], float] = time.time) -> None:
        self.max_events = max_events
        self.window_seconds = window_seconds
        self._clock = clock
        self._events: dict[str, deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            # at most once per window, so the cost stays proportional to traffic
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now

            q = self._events.get(key)
            if q is None:
                q = self._events[key] = deque()
            while q and q[0] <= cutoff:
                q.popleft()
            if len(q) >= self.max_events:
                return False
            q.append(now)
            return True

    def _sweep(self, cutoff: float) -> None:
        """Forget keys with no event inside the window."""
        idle = [key for key, q in self._events.items() if not q or q[-1] <= cutoff]
        for key in idle:
            del self._events[key]

    def __len__(self) -> int:
        return len(self._events)
