"""
OTP Audit Logger
================
Event bus subscriber that writes every OTP lifecycle event to the log.
Codes are never logged.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from ..logging_setup import mask_jid
from .events import OtpEvent, OtpEventBus, OtpEventType, Subscription

logger = structlog.get_logger(__name__)

WARNING_EVENTS = frozenset({
    OtpEventType.FAILED,
    OtpEventType.JAILED,
    OtpEventType.ATTEMPT_WHILE_JAILED,
    OtpEventType.VERIFY_BLOCKED,
})


def _iso(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class OtpAuditLogger:
    """Logs OTP events at info level, security-relevant ones at warning."""

    def __init__(self):
        self._subscription: Optional[Subscription] = None

    def attach(self, bus: OtpEventBus) -> Subscription:
        self._subscription = bus.subscribe(self.handle)
        return self._subscription

    def detach(self, bus: OtpEventBus) -> None:
        if self._subscription is not None:
            bus.unsubscribe(self._subscription)
            self._subscription = None

    def handle(self, event: OtpEvent) -> None:
        fields = {"jid": mask_jid(event.jid)}
        data = event.data
        if "expires_at" in data:
            fields["expires_at"] = _iso(data["expires_at"])
        if "until" in data:
            fields["until"] = _iso(data["until"])
        if "ok" in data:
            fields["ok"] = data["ok"]
        if "details" in data:
            fields["details"] = data["details"]

        name = f"otp_{event.type.value}"
        if event.type in WARNING_EVENTS:
            logger.warning(name, **fields)
        else:
            logger.info(name, **fields)
