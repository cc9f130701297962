"""In-memory per-IP sliding window counter."""
from __future__ import annotations

from collections import deque
from typing import Deque, Dict, Optional


class SlidingWindow:
    """Tracks request timestamps (epoch milliseconds) per client IP.

    State is memory only and starts empty on every process start.
    """

    def __init__(self) -> None:
        self._requests: Dict[str, Deque[float]] = {}

    @staticmethod
    def _prune(q: Deque[float], now: float, window_ms: float) -> None:
        while q and now - q[0] > window_ms:
            q.popleft()

    def record(self, ip: str, now: float, window_ms: float) -> int:
        """Append ``now`` for ``ip`` and return the count inside the window."""

        q = self._requests.setdefault(ip, deque())
        q.append(now)
        self._prune(q, now, window_ms)
        return len(q)

    def count(self, ip: str, now: Optional[float] = None, window_ms: Optional[float] = None) -> int:
        q = self._requests.get(ip)
        if not q:
            return 0
        if now is None or window_ms is None:
            return len(q)
        return sum(1 for t in q if now - t <= window_ms)

    def sweep(self, now: float, window_ms: float) -> int:
        """Prune every tracked IP and forget the ones left empty."""

        removed = 0
        for ip, q in list(self._requests.items()):
            self._prune(q, now, window_ms)
            if not q and self._requests.get(ip) is q:
                del self._requests[ip]
                removed += 1
        return removed

    @property
    def active_ips(self) -> int:
        return len(self._requests)
