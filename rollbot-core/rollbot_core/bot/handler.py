"""
Message Handler
===============
Turns inbound chat messages into replies.

Processing order for each message:
1. Suspicious-input filter
2. Access policy admission
3. Rate limit (global, then per sender)
4. Command parsing and command blacklist
5. Admin authorization and admin channel enforcement
6. Command action
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Protocol

import structlog

from ..access.policy import AccessPolicy
from ..errors import UserMessages
from ..logging_setup import mask_jid
from ..otp.store import EncryptedOtpStore
from ..pairing.admin_channel import AdminChannelStore
from ..pairing.service import PairingRequest, PairingService
from ..rate_limit.sliding_window import SlidingWindowRateLimiter
from ..settings import BotSettings
from .commands import MARCO_REPLY, PING_REPLY, Command, help_text, is_suspicious, parse_command

logger = structlog.get_logger(__name__)

Hook = Callable[[], Awaitable[None]]


@dataclass
class InboundMessage:
    """Message delivered by the chat transport."""
    text: Optional[str]
    from_jid: str
    chat_jid: str
    is_group: bool = False
    timestamp: Optional[float] = None  # Unix seconds


@dataclass
class Reply:
    """Outbound text for one chat."""
    chat_jid: str
    text: str


class Transport(Protocol):
    """Outbound side of the chat network."""

    async def send_text(self, chat_jid: str, text: str) -> None:
        ...


def _iso(ts: float) -> str:
    return (
        datetime.fromtimestamp(ts, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass
class _Context:
    message: InboundMessage
    command: Command
    is_trusted: bool
    is_admin_user: bool
    replies: List[str] = field(default_factory=list)


class MessageHandler:
    """
    Chat message pipeline over the access policy, rate limiter, OTP store
    and pairing service.
    """

    def __init__(
        self,
        settings: BotSettings,
        policy: AccessPolicy,
        store: EncryptedOtpStore,
        pairing: PairingService,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        admin_channels: Optional[AdminChannelStore] = None,
        on_logout: Optional[Hook] = None,
        on_shutdown: Optional[Hook] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.policy = policy
        self.store = store
        self.pairing = pairing
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(settings.rate_limit, clock=clock)
        self.admin_channels = admin_channels or AdminChannelStore(
            settings.config_path, initial=settings.admin_channel
        )
        self.on_logout = on_logout
        self.on_shutdown = on_shutdown
        self._clock = clock

    async def handle(self, message: InboundMessage) -> List[Reply]:
        """Process one message and return the replies to send."""
        texts = await self._process(message)
        replies = []
        for text in texts:
            if len(text) > self.settings.max_reply_length:
                logger.warning(
                    "reply_dropped_too_long",
                    chat=message.chat_jid,
                    length=len(text),
                    limit=self.settings.max_reply_length,
                )
                continue
            replies.append(Reply(chat_jid=message.chat_jid, text=text))
        return replies

    async def dispatch(self, message: InboundMessage, transport: Transport) -> int:
        """Process ``message`` and send its replies. Returns the number sent."""
        replies = await self.handle(message)
        for reply in replies:
            await transport.send_text(reply.chat_jid, reply.text)
        return len(replies)

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def _process(self, message: InboundMessage) -> List[str]:
        text = message.text
        sender = message.from_jid
        if not text or not text.strip():
            return []

        if is_suspicious(text):
            logger.warning("message_rejected_suspicious", sender=mask_jid(sender))
            return []

        group_jid = message.chat_jid if message.is_group else None
        if not self.policy.is_message_allowed(text, sender, message.is_group, group_jid):
            logger.warning("message_rejected_access", sender=mask_jid(sender))
            return []

        limit = self.rate_limiter.check(sender)
        if not limit.allowed:
            logger.warning(
                "message_dropped_rate_limited",
                sender=mask_jid(sender),
                reason=limit.reason,
            )
            return []

        command = parse_command(text, self.settings.commands_enabled)
        if command is None:
            return []
        if self.policy.is_command_blacklisted(command.name):
            logger.info("command_blacklisted", command=command.name, sender=mask_jid(sender))
            return []

        if not command.is_admin:
            return self._simple(command)
        return await self._admin(message, command)

    def _simple(self, command: Command) -> List[str]:
        if command.name == "!ping":
            return [PING_REPLY]
        if command.name == "!marco":
            return [MARCO_REPLY]
        if command.name == "!help":
            return [help_text(self.settings.commands_enabled)]
        return []

    def _deny(self, text: str) -> List[str]:
        return [] if self.settings.silent_fail else [text]

    async def _admin(self, message: InboundMessage, command: Command) -> List[str]:
        sender = message.from_jid
        is_trusted = self.policy.is_trusted_number(sender)
        is_admin_user = self.policy.is_admin(sender) and self.policy.is_admin_command_allowed(
            command.name, sender
        )

        channel = self.admin_channels.get()
        if (
            self.settings.enforce_admin_channel
            and channel
            and message.chat_jid != channel
            and not is_admin_user
        ):
            logger.warning(
                "admin_command_rejected_channel",
                command=command.name,
                chat=message.chat_jid,
            )
            return self._deny(UserMessages.ADMIN_CHANNEL_ONLY)

        if not (is_trusted or is_admin_user):
            logger.warning(
                "admin_command_rejected",
                command=command.name,
                sender=mask_jid(sender),
            )
            return self._deny(UserMessages.NOT_AUTHORIZED)

        logger.info("admin_command_executing", command=command.name, sender=mask_jid(sender))
        ctx = _Context(
            message=message,
            command=command,
            is_trusted=is_trusted,
            is_admin_user=is_admin_user,
        )
        action = self._actions()[command.name]
        await action(ctx)
        return ctx.replies

    def _actions(self):
        return {
            "!adminpair": self._adminpair,
            "!setadmin": self._setadmin,
            "!unsetadmin": self._unsetadmin,
            "!listjailed": self._listjailed,
            "!unjail": self._unjail,
            "!latency": self._latency,
            "!logout": self._logout,
            "!shutdown": self._shutdown,
        }

    # -------------------------------------------------------------------------
    # Admin actions
    # -------------------------------------------------------------------------

    async def _adminpair(self, ctx: _Context) -> None:
        message = ctx.message
        outcome = await self.pairing.handle(
            PairingRequest(
                sender_jid=message.from_jid,
                chat_jid=message.chat_jid,
                is_group=message.is_group,
                code=ctx.command.arg,
                is_trusted=ctx.is_trusted,
                is_admin=ctx.is_admin_user,
            )
        )
        if outcome.reply:
            ctx.replies.append(outcome.reply)

    async def _setadmin(self, ctx: _Context) -> None:
        chat = ctx.message.chat_jid
        if not ctx.message.is_group:
            ctx.replies.append(UserMessages.ADMIN_CHANNEL_GROUP_ONLY)
            return
        if self.admin_channels.set(chat):
            ctx.replies.append(f"✅ This group ({chat}) has been configured as admin channel.")
        else:
            ctx.replies.append("❌ Failed to persist admin channel to config.")

    async def _unsetadmin(self, ctx: _Context) -> None:
        if self.admin_channels.unset():
            ctx.replies.append("✅ Admin channel unset.")
        else:
            ctx.replies.append(UserMessages.CONFIG_UPDATE_FAILED)

    async def _listjailed(self, ctx: _Context) -> None:
        jailed = self.store.list_jailed()
        if not jailed:
            ctx.replies.append("Jailed entries:\nNo jailed JIDs.")
            return

        lines = [f"{jid} -> {_iso(until)}" for jid, until in sorted(jailed.items())]
        limit = self.settings.max_reply_length
        text = "Jailed entries:"
        for index, line in enumerate(lines):
            remaining = len(lines) - index
            more = f"\n... and {remaining} more"
            # keep room for the overflow line unless this is the last entry
            reserve = 0 if remaining == 1 else len(f"\n... and {remaining - 1} more")
            if len(text) + 1 + len(line) + reserve > limit:
                if len(text) + len(more) <= limit:
                    text += more
                break
            text += "\n" + line
        ctx.replies.append(text)

    async def _unjail(self, ctx: _Context) -> None:
        target = ctx.command.arg
        if not target:
            ctx.replies.append(UserMessages.UNJAIL_USAGE)
            return
        if await self.store.unjail(target):
            ctx.replies.append(f"✅ Unjailed {target}")
        else:
            ctx.replies.append(f"No jailed entry for {target}")

    async def _latency(self, ctx: _Context) -> None:
        sent_at = ctx.message.timestamp
        latency_ms = max(0, int((self._clock() - sent_at) * 1000)) if sent_at else 0
        ctx.replies.append(f"Latency: ~{latency_ms}ms")

    async def _logout(self, ctx: _Context) -> None:
        if self.on_logout is None:
            logger.info("logout_hook_missing")
            return
        await self.on_logout()
        ctx.replies.append("Logged out successfully.")

    async def _shutdown(self, ctx: _Context) -> None:
        if self.on_shutdown is None:
            logger.info("shutdown_hook_missing")
            return
        await self.on_shutdown()
