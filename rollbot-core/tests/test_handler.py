"""
Unit Tests for the Message Handler
==================================
End-to-end message pipeline through BotRuntime with in-memory components.
"""

import httpx
import pytest

ADMIN = "351911111111@s.whatsapp.net"
TRUSTED = "351922222222@s.whatsapp.net"
STRANGER = "447933333333@s.whatsapp.net"
GROUP = "120363000000@g.us"


class FakeTransport:
    """Collects outbound messages."""

    def __init__(self):
        self.sent = []

    async def send_text(self, chat_jid, text):
        self.sent.append((chat_jid, text))


def build_runtime(tmp_path, clock, **overrides):
    from rollbot_core.bot import BotRuntime
    from rollbot_core.settings import BotSettings

    raw = {
        "accessControl": {
            "admin": {"admins": [ADMIN]},
            "pairing": {"trustedNumbers": [TRUSTED]},
        },
        "paths": {"dataDir": str(tmp_path / "data")},
    }
    raw.update(overrides.pop("raw", {}))
    settings = BotSettings.from_dict(raw, config_path=str(tmp_path / "config.json"))
    for name, value in overrides.items():
        setattr(settings, name, value)

    return BotRuntime.from_settings(
        settings,
        webhook_transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        clock=clock,
    )


def message(text, sender=STRANGER, chat=None, is_group=False, timestamp=None):
    from rollbot_core.bot import InboundMessage

    return InboundMessage(
        text=text,
        from_jid=sender,
        chat_jid=chat or sender,
        is_group=is_group,
        timestamp=timestamp,
    )


async def texts(runtime, msg):
    return [reply.text for reply in await runtime.handler.handle(msg)]


class TestCommands:
    """Tests for command parsing and filtering."""

    def test_parse_command(self):
        """Commands are case-insensitive and carry one optional argument."""
        from rollbot_core.bot import parse_command

        assert parse_command("!PING").name == "!ping"
        assert parse_command("!adminpair 123456").arg == "123456"
        assert parse_command("!unjail").arg is None
        assert parse_command("!ping extra") is None
        assert parse_command("!roll 2d6") is None
        assert parse_command("hello") is None
        assert parse_command("!ping", {"ping": False}) is None

    def test_is_suspicious(self):
        """Shell, URL, data blob and overlong inputs are suspicious."""
        from rollbot_core.bot import is_suspicious

        assert is_suspicious("!ping") is False
        assert is_suspicious("!ping; rm -rf /") is True
        assert is_suspicious("run curl now") is True
        assert is_suspicious("see https://example.com") is True
        assert is_suspicious("base64: AAAA") is True
        assert is_suspicious("x" * 501) is True


class TestMessageHandler:
    """Tests for MessageHandler.handle and dispatch."""

    @pytest.mark.asyncio
    async def test_ping_and_marco(self, tmp_path, clock):
        """Simple commands reply inline."""
        runtime = build_runtime(tmp_path, clock)

        assert await texts(runtime, message("!ping")) == ["pong! 🏓"]
        assert await texts(runtime, message("!marco")) == ["polo... or was it Paulo? 🧲🎤"]

    @pytest.mark.asyncio
    async def test_help_lists_enabled(self, tmp_path, clock):
        """Help lists enabled commands only."""
        runtime = build_runtime(tmp_path, clock, raw={"commands": {"enabled": {"marco": False}}})

        [reply] = await texts(runtime, message("!help"))

        assert reply.startswith("Available commands:")
        assert "!ping" in reply
        assert "!marco" not in reply

    @pytest.mark.asyncio
    async def test_non_command_ignored(self, tmp_path, clock):
        """Plain chatter gets no reply."""
        runtime = build_runtime(tmp_path, clock)

        assert await texts(runtime, message("hello there")) == []

    @pytest.mark.asyncio
    async def test_suspicious_dropped(self, tmp_path, clock):
        """Suspicious text never reaches command handling."""
        runtime = build_runtime(tmp_path, clock)

        assert await texts(runtime, message("!ping && whoami")) == []

    @pytest.mark.asyncio
    async def test_access_policy_applied(self, tmp_path, clock):
        """Messages from non-whitelisted groups are dropped."""
        runtime = build_runtime(tmp_path, clock, raw={
            "accessControl": {"mode": "whitelist", "whitelist": {"groups": ["G1"]}},
        })

        assert await texts(runtime, message("!ping", chat="G1", is_group=True)) == ["pong! 🏓"]
        assert await texts(runtime, message("!ping", chat="G2", is_group=True)) == []

    @pytest.mark.asyncio
    async def test_command_blacklist(self, tmp_path, clock):
        """Blacklisted commands are ignored."""
        runtime = build_runtime(tmp_path, clock, raw={
            "accessControl": {"blacklist": {"commands": ["!marco"]}},
        })

        assert await texts(runtime, message("!marco")) == []

    @pytest.mark.asyncio
    async def test_rate_limited(self, tmp_path, clock):
        """Senders over budget are dropped."""
        runtime = build_runtime(tmp_path, clock, raw={"rateLimit": {"perSenderPerWindow": 1}})

        assert await texts(runtime, message("!ping")) == ["pong! 🏓"]
        assert await texts(runtime, message("!ping")) == []

    @pytest.mark.asyncio
    async def test_long_reply_dropped(self, tmp_path, clock):
        """Replies over the cap are not sent."""
        runtime = build_runtime(tmp_path, clock, max_reply_length=5)

        assert await texts(runtime, message("!marco")) == []

    @pytest.mark.asyncio
    async def test_dispatch_sends(self, tmp_path, clock):
        """Dispatch pushes replies through the transport."""
        runtime = build_runtime(tmp_path, clock)
        transport = FakeTransport()

        sent = await runtime.handler.dispatch(message("!ping", chat=GROUP, is_group=True), transport)

        assert sent == 1
        assert transport.sent == [(GROUP, "pong! 🏓")]


class TestAdminCommands:
    """Tests for admin authorization and actions."""

    @pytest.mark.asyncio
    async def test_stranger_denied_silently(self, tmp_path, clock):
        """Unauthorized admin commands are silent by default."""
        runtime = build_runtime(tmp_path, clock)

        assert await texts(runtime, message("!listjailed")) == []

    @pytest.mark.asyncio
    async def test_stranger_denied_with_reply(self, tmp_path, clock):
        """With silentFail off the generic denial is sent."""
        from rollbot_core.errors import UserMessages

        runtime = build_runtime(tmp_path, clock, silent_fail=False)

        assert await texts(runtime, message("!listjailed")) == [UserMessages.NOT_AUTHORIZED]

    @pytest.mark.asyncio
    async def test_admin_channel_enforced(self, tmp_path, clock):
        """Trusted non-admins must use the admin channel when enforced."""
        from rollbot_core.errors import UserMessages

        runtime = build_runtime(
            tmp_path, clock,
            raw={"admin": {"adminChannel": GROUP, "enforceChannel": True}},
            silent_fail=False,
        )

        assert await texts(runtime, message("!listjailed", sender=TRUSTED)) == [
            UserMessages.ADMIN_CHANNEL_ONLY
        ]
        in_channel = message("!listjailed", sender=TRUSTED, chat=GROUP, is_group=True)
        assert await texts(runtime, in_channel) == ["Jailed entries:\nNo jailed JIDs."]
        assert await texts(runtime, message("!listjailed", sender=ADMIN)) == [
            "Jailed entries:\nNo jailed JIDs."
        ]

    @pytest.mark.asyncio
    async def test_listjailed_and_unjail(self, tmp_path, clock):
        """Admins can list and release jailed identities."""
        runtime = build_runtime(tmp_path, clock)
        store = runtime.store
        await store.generate(STRANGER)
        for code in ("a", "b", "c"):
            await store.verify(STRANGER, code)

        [listing] = await texts(runtime, message("!listjailed", sender=ADMIN))
        assert listing.startswith("Jailed entries:\n" + STRANGER + " -> ")
        assert listing.endswith("Z")

        assert await texts(runtime, message(f"!unjail {STRANGER}", sender=ADMIN)) == [
            f"✅ Unjailed {STRANGER}"
        ]
        assert await texts(runtime, message(f"!unjail {STRANGER}", sender=ADMIN)) == [
            f"No jailed entry for {STRANGER}"
        ]
        assert await texts(runtime, message("!unjail", sender=ADMIN)) == ["Usage: !unjail <jid>"]

    @pytest.mark.asyncio
    async def test_listjailed_truncated_to_reply_limit(self, tmp_path, clock):
        """A long jail list is shortened with an overflow line instead of dropped."""
        runtime = build_runtime(
            tmp_path, clock,
            raw={"pairing": {"otpJailThreshold": 1}},
            max_reply_length=120,
        )
        for n in range(5):
            jid = f"35190000000{n}@s.whatsapp.net"
            await runtime.store.generate(jid)
            await runtime.store.verify(jid, "wrong")

        [listing] = await texts(runtime, message("!listjailed", sender=ADMIN))

        assert len(listing) <= 120
        assert listing.startswith("Jailed entries:\n351900000000@s.whatsapp.net -> ")
        assert listing.endswith("\n... and 4 more")
        assert listing.count(" -> ") == 1

    @pytest.mark.asyncio
    async def test_setadmin_requires_group(self, tmp_path, clock):
        """The admin channel can only be set from a group."""
        from rollbot_core.errors import UserMessages

        runtime = build_runtime(tmp_path, clock)

        assert await texts(runtime, message("!setadmin", sender=ADMIN)) == [
            UserMessages.ADMIN_CHANNEL_GROUP_ONLY
        ]
        assert await texts(runtime, message("!setadmin", sender=ADMIN, chat=GROUP, is_group=True)) == [
            f"✅ This group ({GROUP}) has been configured as admin channel."
        ]
        assert runtime.handler.admin_channels.get() == GROUP
        assert await texts(runtime, message("!unsetadmin", sender=ADMIN)) == ["✅ Admin channel unset."]
        assert runtime.handler.admin_channels.get() is None

    @pytest.mark.asyncio
    async def test_latency(self, tmp_path, clock):
        """Latency uses the inbound message timestamp."""
        runtime = build_runtime(tmp_path, clock)

        msg = message("!latency", sender=ADMIN, timestamp=clock.now - 1.5)

        assert await texts(runtime, msg) == ["Latency: ~1500ms"]

    @pytest.mark.asyncio
    async def test_adminpair_trusted_reveal(self, tmp_path, clock):
        """A trusted sender gets the code when the webhook is unavailable."""
        runtime = build_runtime(tmp_path, clock)

        [reply] = await texts(runtime, message("!adminpair", sender=TRUSTED))
        code = runtime.store.get_entry(TRUSTED).code

        assert reply == f"Pairing code: {code}. Expires in 300s"
        assert await texts(runtime, message(f"!adminpair {code}", sender=TRUSTED)) == [
            "✅ Pairing code accepted. Admin pairing complete."
        ]
        await runtime.stop()

    @pytest.mark.asyncio
    async def test_logout_and_shutdown_hooks(self, tmp_path, clock):
        """Logout and shutdown call the configured hooks."""
        from rollbot_core.bot import BotRuntime
        from rollbot_core.settings import BotSettings

        calls = []

        async def on_logout():
            calls.append("logout")

        async def on_shutdown():
            calls.append("shutdown")

        settings = BotSettings.from_dict(
            {"accessControl": {"admin": {"admins": [ADMIN]}}},
            config_path=str(tmp_path / "config.json"),
        )
        runtime = BotRuntime.from_settings(
            settings, on_logout=on_logout, on_shutdown=on_shutdown, clock=clock
        )

        assert await texts(runtime, message("!logout", sender=ADMIN)) == ["Logged out successfully."]
        assert await texts(runtime, message("!shutdown", sender=ADMIN)) == []
        assert calls == ["logout", "shutdown"]


class TestRuntime:
    """Tests for BotRuntime lifecycle."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, tmp_path, clock):
        """Start loads persisted state and stop tears everything down."""
        runtime = build_runtime(tmp_path, clock)
        await runtime.start()

        assert runtime.reaper.running is True

        await runtime.stop()

        assert runtime.reaper.running is False
        assert runtime.store.events.subscriber_count == 0
