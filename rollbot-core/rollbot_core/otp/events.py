"""
OTP Lifecycle Events
====================
Event types emitted by the OTP store and a small synchronous event bus.

Handlers are invoked in registration order right after the state mutation
that produced the event. A failing handler is logged and skipped; it never
affects the store or the other handlers.
"""

import itertools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

import structlog

from ..logging_setup import mask_jid

logger = structlog.get_logger(__name__)


class OtpEventType(str, Enum):
    """Named lifecycle events."""
    GENERATED = "generated"
    VERIFIED = "verified"
    FAILED = "failed"
    EXPIRED = "expired"
    DELETED = "deleted"
    JAILED = "jailed"
    UNJAILED = "unjailed"
    ATTEMPT_WHILE_JAILED = "attemptWhileJailed"
    VERIFY_BLOCKED = "verifyBlocked"


@dataclass(frozen=True)
class OtpEvent:
    """A single lifecycle event for one identity."""
    type: OtpEventType
    jid: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_payload(self, include_secret: bool = False) -> Dict[str, Any]:
        """Serializable payload; the code is dropped unless asked for."""
        data = dict(self.data)
        if not include_secret:
            data.pop("code", None)
        return {"jid": self.jid, **data}


EventHandler = Callable[[OtpEvent], None]


@dataclass(frozen=True)
class Subscription:
    """Handle returned by ``OtpEventBus.subscribe``."""
    id: int
    handler: EventHandler
    event_types: Optional[FrozenSet[OtpEventType]] = None

    def accepts(self, event: OtpEvent) -> bool:
        return self.event_types is None or event.type in self.event_types


class OtpEventBus:
    """Explicit list of registered handlers."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._ids = itertools.count(1)

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Optional[Iterable[OtpEventType]] = None,
    ) -> Subscription:
        """
        Register a handler.

        Args:
            handler: Callable receiving an ``OtpEvent``
            event_types: Restrict to these types (all types when None)

        Returns:
            Subscription handle for ``unsubscribe``
        """
        subscription = Subscription(
            id=next(self._ids),
            handler=handler,
            event_types=frozenset(event_types) if event_types is not None else None,
        )
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        try:
            self._subscriptions.remove(subscription)
            return True
        except ValueError:
            return False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def emit(self, event: OtpEvent) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.accepts(event):
                continue
            try:
                subscription.handler(event)
            except Exception as e:
                logger.warning(
                    "otp_event_handler_failed",
                    event_type=event.type.value,
                    jid=mask_jid(event.jid),
                    error=str(e),
                )
