"""
Sliding Window Rate Limiter
===========================
In-memory sliding window limiter with a global and a per-sender budget.
"""

import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from .models import RateLimitConfig, RateLimitInfo


class SlidingWindowRateLimiter:
    """
    Sliding window limiter for inbound messages.

    The global budget is checked first, then the sender budget. Only
    allowed messages are recorded.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._global: Deque[float] = deque()
        self._senders: Dict[str, Deque[float]] = {}

    @staticmethod
    def _prune(timestamps: Deque[float], cutoff: float) -> None:
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()

    def _retry_after(self, timestamps: Deque[float], now: float) -> float:
        if not timestamps:
            return 0.0
        return max(0.0, timestamps[0] + self.config.window_seconds - now)

    def check(self, sender: str) -> RateLimitInfo:
        """
        Check and record a message from ``sender``.

        Args:
            sender: Sender identity

        Returns:
            RateLimitInfo with decision and remaining sender quota
        """
        now = self._clock()
        cutoff = now - self.config.window_seconds

        self._prune(self._global, cutoff)
        if len(self._global) >= self.config.global_per_window:
            return RateLimitInfo(
                allowed=False,
                remaining=0,
                limit=self.config.global_per_window,
                reason="global",
                retry_after=self._retry_after(self._global, now),
            )

        sender_window = self._senders.setdefault(sender, deque())
        self._prune(sender_window, cutoff)
        if len(sender_window) >= self.config.per_sender_per_window:
            return RateLimitInfo(
                allowed=False,
                remaining=0,
                limit=self.config.per_sender_per_window,
                reason="sender",
                retry_after=self._retry_after(sender_window, now),
            )

        sender_window.append(now)
        self._global.append(now)
        return RateLimitInfo(
            allowed=True,
            remaining=self.config.per_sender_per_window - len(sender_window),
            limit=self.config.per_sender_per_window,
        )

    def reset(self, sender: Optional[str] = None) -> None:
        """Forget recorded messages for one sender, or everything."""
        if sender is None:
            self._global.clear()
            self._senders.clear()
        else:
            self._senders.pop(sender, None)
