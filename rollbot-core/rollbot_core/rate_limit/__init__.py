"""
Rate Limiting
=============
Per-sender and global limits for inbound chat messages.
"""

from .models import RateLimitConfig, RateLimitInfo, RateLimitResult
from .sliding_window import SlidingWindowRateLimiter

__all__ = [
    "RateLimitConfig",
    "RateLimitInfo",
    "RateLimitResult",
    "SlidingWindowRateLimiter",
]
