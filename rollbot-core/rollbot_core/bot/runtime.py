"""
Bot Runtime
===========
Wires settings into a ready-to-use handler and owns component lifecycles.

Usage:
    runtime = BotRuntime.from_settings(load_settings("config.json"))
    await runtime.start()
    await runtime.handler.dispatch(message, transport)
    await runtime.stop()
"""

import time
from typing import Callable, Optional

import httpx
import structlog

from ..access.policy import AccessPolicy
from ..otp.audit import OtpAuditLogger
from ..otp.events import OtpEventBus
from ..otp.reaper import OtpReaper
from ..otp.store import EncryptedOtpStore
from ..pairing.admin_channel import AdminChannelStore
from ..pairing.service import PairingService
from ..rate_limit.sliding_window import SlidingWindowRateLimiter
from ..settings import BotSettings
from ..webhook.client import WebhookClient
from ..webhook.forwarder import EventForwarder
from .handler import Hook, MessageHandler

logger = structlog.get_logger(__name__)


class BotRuntime:
    """Holds the wired components of one bot process."""

    def __init__(
        self,
        settings: BotSettings,
        handler: MessageHandler,
        store: EncryptedOtpStore,
        webhook: WebhookClient,
        forwarder: EventForwarder,
        audit: OtpAuditLogger,
        reaper: OtpReaper,
    ):
        self.settings = settings
        self.handler = handler
        self.store = store
        self.webhook = webhook
        self.forwarder = forwarder
        self.audit = audit
        self.reaper = reaper

    @classmethod
    def from_settings(
        cls,
        settings: BotSettings,
        on_logout: Optional[Hook] = None,
        on_shutdown: Optional[Hook] = None,
        webhook_transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
        cleanup_interval: float = 60.0,
    ) -> "BotRuntime":
        """
        Build every component from ``settings``.

        Raises:
            ConfigurationError: If access rules contain an invalid pattern
        """
        policy = AccessPolicy(settings.access)
        bus = OtpEventBus()
        audit = OtpAuditLogger()
        audit.attach(bus)

        store = EncryptedOtpStore(
            settings.otp,
            data_dir=settings.data_dir,
            key_hex=settings.otp_store_key,
            events=bus,
            clock=clock,
        )
        webhook = WebhookClient(settings.pairing_webhook, transport=webhook_transport)
        forwarder = EventForwarder(webhook, bus)
        admin_channels = AdminChannelStore(settings.config_path, initial=settings.admin_channel)
        pairing = PairingService(
            policy,
            store,
            webhook,
            admin_channels,
            default_alphabet=settings.otp.alphabet,
            silent_fail=settings.silent_fail,
            clock=clock,
        )
        handler = MessageHandler(
            settings,
            policy,
            store,
            pairing,
            rate_limiter=SlidingWindowRateLimiter(settings.rate_limit, clock=clock),
            admin_channels=admin_channels,
            on_logout=on_logout,
            on_shutdown=on_shutdown,
            clock=clock,
        )
        reaper = OtpReaper(store, interval=cleanup_interval)
        return cls(settings, handler, store, webhook, forwarder, audit, reaper)

    async def start(self) -> None:
        """Load persisted OTP state and start the cleanup sweep."""
        if self.store.persistent:
            await self.store.load()
        self.reaper.start()
        logger.info(
            "bot_runtime_started",
            persistent_otp=self.store.persistent,
            webhook=self.webhook.enabled,
        )

    async def stop(self) -> None:
        """Stop the sweep, flush pending webhook deliveries and close clients."""
        await self.reaper.stop()
        await self.forwarder.aclose()
        self.audit.detach(self.store.events)
        await self.webhook.aclose()
        logger.info("bot_runtime_stopped")
