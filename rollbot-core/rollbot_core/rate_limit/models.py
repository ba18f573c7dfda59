"""
Rate Limit Models
=================
Configuration and results for inbound message rate limiting.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class RateLimitResult(str, Enum):
    """Rate limit decision result."""
    ALLOWED = "allowed"
    BLOCKED = "blocked"


@dataclass
class RateLimitConfig:
    """Per-sender and global message budgets."""
    per_sender_per_window: int = 30
    global_per_window: int = 500
    window_seconds: int = 60

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "RateLimitConfig":
        raw = raw or {}
        return cls(
            per_sender_per_window=int(raw.get("perSenderPerWindow", 30)),
            global_per_window=int(raw.get("globalPerWindow", 500)),
            window_seconds=int(raw.get("windowSeconds", 60)),
        )


@dataclass
class RateLimitInfo:
    """Rate limit check result."""
    allowed: bool
    remaining: int
    limit: int
    reason: Optional[str] = None         # "global" or "sender" when blocked
    retry_after: Optional[float] = None  # Seconds until retry allowed

    @property
    def result(self) -> RateLimitResult:
        return RateLimitResult.ALLOWED if self.allowed else RateLimitResult.BLOCKED
