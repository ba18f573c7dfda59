"""
Event Forwarder
===============
Forwards OTP lifecycle events to a webhook without blocking the store.

Each event becomes one tracked asyncio task. ``aclose()`` unsubscribes and
waits for the tasks still in flight, so no delivery outlives the forwarder.
"""

import asyncio
from typing import Iterable, Optional, Set

import structlog

from ..otp.events import OtpEvent, OtpEventBus, OtpEventType, Subscription
from .client import WebhookClient

logger = structlog.get_logger(__name__)


class EventForwarder:
    """Subscribes to an ``OtpEventBus`` and posts every event to a webhook."""

    def __init__(
        self,
        client: WebhookClient,
        bus: OtpEventBus,
        event_types: Optional[Iterable[OtpEventType]] = None,
    ):
        self.client = client
        self.bus = bus
        self._pending: Set[asyncio.Task] = set()
        self._subscription: Optional[Subscription] = bus.subscribe(self.handle, event_types)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def handle(self, event: OtpEvent) -> None:
        if not self.client.enabled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("event_forward_skipped_no_loop", event_type=event.type.value)
            return

        payload = event.to_payload()
        payload["timestamp"] = event.timestamp
        task = loop.create_task(self.client.deliver_event(event.type.value, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def aclose(self) -> None:
        """Stop forwarding and wait for in-flight deliveries."""
        if self._subscription is not None:
            self.bus.unsubscribe(self._subscription)
            self._subscription = None
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
