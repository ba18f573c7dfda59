"""
Pairing Service
===============
Admin pairing flow: verify a supplied code, or issue a new one-time code and
deliver it through the pairing webhook.

Replies are fixed strings from ``UserMessages``; internal error text is only
logged.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import structlog

from ..access.policy import AccessPolicy
from ..errors import LockoutError, UserMessages, ValidationError
from ..logging_setup import mask_jid
from ..otp.models import CodeAlphabet
from ..otp.store import EncryptedOtpStore
from ..webhook.client import WebhookClient
from .admin_channel import AdminChannelStore

logger = structlog.get_logger(__name__)


class PairingStatus(str, Enum):
    """Result of one pairing request."""
    ACCEPTED = "accepted"
    ACCEPTED_CHANNEL_SET = "accepted_channel_set"
    ACCEPTED_CHANNEL_NOT_SAVED = "accepted_channel_not_saved"
    INVALID_CODE = "invalid_code"
    NOT_ELIGIBLE = "not_eligible"
    DELIVERED = "delivered"
    REVEALED = "revealed"
    UNDELIVERED = "undelivered"
    FAILED = "failed"


@dataclass
class PairingRequest:
    """Inbound ``!adminpair`` request."""
    sender_jid: str
    chat_jid: str
    is_group: bool = False
    code: Optional[str] = None
    is_trusted: bool = False
    is_admin: bool = False


@dataclass
class PairingOutcome:
    """Status plus the reply to send (None means stay silent)."""
    status: PairingStatus
    reply: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status in (
            PairingStatus.ACCEPTED,
            PairingStatus.ACCEPTED_CHANNEL_SET,
            PairingStatus.ACCEPTED_CHANNEL_NOT_SAVED,
        )


class PairingService:
    """
    Orchestrates admin pairing over the access policy, OTP store and webhook.

    Example:
        service = PairingService(policy, store, webhook, admin_channels)
        outcome = await service.handle(PairingRequest(sender_jid=jid, chat_jid=chat))
    """

    def __init__(
        self,
        policy: AccessPolicy,
        store: EncryptedOtpStore,
        webhook: WebhookClient,
        admin_channels: Optional[AdminChannelStore] = None,
        default_alphabet: Optional[CodeAlphabet] = None,
        silent_fail: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.policy = policy
        self.store = store
        self.webhook = webhook
        self.admin_channels = admin_channels
        self.default_alphabet = default_alphabet
        self.silent_fail = silent_fail
        self._clock = clock

    async def handle(self, request: PairingRequest) -> PairingOutcome:
        if request.code:
            return await self._redeem(request)
        return await self._issue(request)

    def _passcode_matches(self, code: str) -> bool:
        # an unset passcode never matches a supplied code
        if not self.policy.config.pairing.passcode:
            return False
        return self.policy.check_pairing_passcode(code)

    async def _redeem(self, request: PairingRequest) -> PairingOutcome:
        sender = request.sender_jid
        accepted = self._passcode_matches(request.code)
        if not accepted:
            accepted = await self.store.verify(sender, request.code)
        if not accepted:
            logger.info("pairing_code_rejected", sender=mask_jid(sender))
            return PairingOutcome(PairingStatus.INVALID_CODE, UserMessages.PAIRING_INVALID)

        await self.store.delete(sender)
        logger.info("pairing_accepted", sender=mask_jid(sender))

        channels = self.admin_channels
        if channels is None or channels.get() or not request.is_group:
            return PairingOutcome(PairingStatus.ACCEPTED, UserMessages.PAIRING_ACCEPTED)

        if channels.set(request.chat_jid):
            logger.info(
                "admin_channel_auto_configured",
                channel=request.chat_jid,
                by=mask_jid(sender),
            )
            return PairingOutcome(
                PairingStatus.ACCEPTED_CHANNEL_SET,
                f"✅ Pairing accepted. This group ({request.chat_jid}) is now "
                "configured as admin channel.",
            )
        return PairingOutcome(
            PairingStatus.ACCEPTED_CHANNEL_NOT_SAVED,
            "✅ Pairing accepted, but failed to persist admin channel to config.",
        )

    async def _issue(self, request: PairingRequest) -> PairingOutcome:
        sender = request.sender_jid
        if not (request.is_trusted or request.is_admin):
            return PairingOutcome(PairingStatus.NOT_ELIGIBLE, UserMessages.PAIRING_NEEDS_CODE)

        try:
            entry = await self.store.generate(sender, self.default_alphabet)
        except LockoutError as e:
            logger.warning("pairing_generate_locked", sender=mask_jid(sender), until=e.until)
            return PairingOutcome(PairingStatus.FAILED, UserMessages.PAIRING_FAILED)
        except ValidationError as e:
            logger.warning("pairing_generate_failed", sender=mask_jid(sender), error=e.message)
            return PairingOutcome(PairingStatus.FAILED, UserMessages.PAIRING_FAILED)

        result = await self.webhook.deliver_pairing_code(sender, entry.code, entry.expires_at)
        if result.ok:
            return PairingOutcome(PairingStatus.DELIVERED, UserMessages.PAIRING_DELIVERED)

        if request.is_trusted:
            remaining = max(0, int(entry.expires_at - self._clock()))
            logger.info("pairing_code_revealed", sender=mask_jid(sender), reason=result.reason)
            return PairingOutcome(
                PairingStatus.REVEALED,
                f"Pairing code: {entry.code}. Expires in {remaining}s",
            )

        reply = None if self.silent_fail else UserMessages.PAIRING_CONTACT_ADMIN
        return PairingOutcome(PairingStatus.UNDELIVERED, reply)
