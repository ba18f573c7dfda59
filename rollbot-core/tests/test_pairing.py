"""
Unit Tests for the Pairing Service
==================================
"""

import json

import httpx
import pytest

SENDER = "351900000001@s.whatsapp.net"
GROUP = "120363000000@g.us"


def build_service(tmp_path, clock, access=None, webhook_status=None, silent_fail=True):
    from rollbot_core.access import AccessConfig, AccessPolicy
    from rollbot_core.otp import EncryptedOtpStore
    from rollbot_core.pairing import AdminChannelStore, PairingService
    from rollbot_core.webhook import WebhookClient, WebhookConfig

    delivered = []

    def handler(request):
        delivered.append(json.loads(request.content))
        return httpx.Response(webhook_status or 500)

    webhook = WebhookClient(
        WebhookConfig(enabled=webhook_status is not None, url="https://hooks.example.test"),
        transport=httpx.MockTransport(handler),
    )
    store = EncryptedOtpStore(clock=clock)
    service = PairingService(
        AccessPolicy(AccessConfig.from_dict(access or {})),
        store,
        webhook,
        AdminChannelStore(tmp_path / "config.json"),
        silent_fail=silent_fail,
        clock=clock,
    )
    return service, store, delivered


class TestRedeem:
    """Tests for !adminpair <code>."""

    @pytest.mark.asyncio
    async def test_valid_otp_accepted(self, tmp_path, clock):
        """A valid OTP is accepted and consumed."""
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, store, _ = build_service(tmp_path, clock)
        entry = await store.generate(SENDER)

        outcome = await service.handle(PairingRequest(SENDER, SENDER, code=entry.code))

        assert outcome.status == PairingStatus.ACCEPTED
        assert outcome.accepted is True
        assert store.get_entry(SENDER) is None

    @pytest.mark.asyncio
    async def test_static_passcode_accepted(self, tmp_path, clock):
        """The configured passcode is accepted without an OTP."""
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, _, _ = build_service(tmp_path, clock, access={"pairing": {"passcode": "SECRET"}})

        outcome = await service.handle(PairingRequest(SENDER, SENDER, code="SECRET"))

        assert outcome.status == PairingStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_wrong_code_rejected(self, tmp_path, clock):
        """A wrong code gets the generic invalid reply and counts a failure."""
        from rollbot_core.errors import UserMessages
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, store, _ = build_service(tmp_path, clock, access={"pairing": {"passcode": "SECRET"}})
        await store.generate(SENDER)

        outcome = await service.handle(PairingRequest(SENDER, SENDER, code="nope"))

        assert outcome.status == PairingStatus.INVALID_CODE
        assert outcome.reply == UserMessages.PAIRING_INVALID
        assert store.failure_count(SENDER) == 1

    @pytest.mark.asyncio
    async def test_any_code_rejected_without_passcode_or_otp(self, tmp_path, clock):
        """With no passcode configured and no OTP, a code is not accepted."""
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, _, _ = build_service(tmp_path, clock)

        outcome = await service.handle(PairingRequest(SENDER, SENDER, code="123456"))

        assert outcome.status == PairingStatus.INVALID_CODE

    @pytest.mark.asyncio
    async def test_group_becomes_admin_channel(self, tmp_path, clock):
        """Pairing from a group with no admin channel designates that group."""
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, store, _ = build_service(tmp_path, clock)
        entry = await store.generate(SENDER)

        outcome = await service.handle(
            PairingRequest(SENDER, GROUP, is_group=True, code=entry.code)
        )

        assert outcome.status == PairingStatus.ACCEPTED_CHANNEL_SET
        assert GROUP in outcome.reply
        saved = json.loads((tmp_path / "config.json").read_text())
        assert saved["admin"]["adminChannel"] == GROUP

    @pytest.mark.asyncio
    async def test_existing_channel_kept(self, tmp_path, clock):
        """An existing admin channel is not replaced."""
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, store, _ = build_service(tmp_path, clock)
        service.admin_channels.set("other@g.us")
        entry = await store.generate(SENDER)

        outcome = await service.handle(
            PairingRequest(SENDER, GROUP, is_group=True, code=entry.code)
        )

        assert outcome.status == PairingStatus.ACCEPTED
        assert service.admin_channels.get() == "other@g.us"


class TestIssue:
    """Tests for !adminpair without a code."""

    @pytest.mark.asyncio
    async def test_untrusted_needs_code(self, tmp_path, clock):
        """Neither trusted nor admin gets the needs-code reply and no code."""
        from rollbot_core.errors import UserMessages
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, store, _ = build_service(tmp_path, clock)

        outcome = await service.handle(PairingRequest(SENDER, SENDER))

        assert outcome.status == PairingStatus.NOT_ELIGIBLE
        assert outcome.reply == UserMessages.PAIRING_NEEDS_CODE
        assert store.get_entry(SENDER) is None

    @pytest.mark.asyncio
    async def test_delivered_via_webhook(self, tmp_path, clock):
        """A working webhook receives the code; the chat reply does not show it."""
        from rollbot_core.errors import UserMessages
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, store, delivered = build_service(tmp_path, clock, webhook_status=200)

        outcome = await service.handle(PairingRequest(SENDER, SENDER, is_admin=True))
        await service.webhook.aclose()

        entry = store.get_entry(SENDER)
        assert outcome.status == PairingStatus.DELIVERED
        assert outcome.reply == UserMessages.PAIRING_DELIVERED
        assert delivered == [{
            "jid": SENDER,
            "code": entry.code,
            "expiresAt": int(entry.expires_at * 1000),
        }]

    @pytest.mark.asyncio
    async def test_trusted_fallback_reveals_code(self, tmp_path, clock):
        """A trusted requester sees the code when the webhook is disabled."""
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, store, _ = build_service(tmp_path, clock)

        outcome = await service.handle(PairingRequest(SENDER, SENDER, is_trusted=True))

        entry = store.get_entry(SENDER)
        assert outcome.status == PairingStatus.REVEALED
        assert outcome.reply == f"Pairing code: {entry.code}. Expires in 300s"

    @pytest.mark.asyncio
    async def test_admin_fallback_hides_code(self, tmp_path, clock):
        """A non-trusted admin never sees the code when delivery fails."""
        from rollbot_core.errors import UserMessages
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, store, _ = build_service(tmp_path, clock, webhook_status=500, silent_fail=False)

        outcome = await service.handle(PairingRequest(SENDER, SENDER, is_admin=True))
        await service.webhook.aclose()

        assert outcome.status == PairingStatus.UNDELIVERED
        assert outcome.reply == UserMessages.PAIRING_CONTACT_ADMIN
        assert store.get_entry(SENDER).code not in outcome.reply

    @pytest.mark.asyncio
    async def test_admin_fallback_silent(self, tmp_path, clock):
        """Silent mode sends nothing on failed delivery."""
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, _, _ = build_service(tmp_path, clock)

        outcome = await service.handle(PairingRequest(SENDER, SENDER, is_admin=True))

        assert outcome.status == PairingStatus.UNDELIVERED
        assert outcome.reply is None

    @pytest.mark.asyncio
    async def test_jailed_gets_generic_failure(self, tmp_path, clock):
        """Lockout produces the generic failure reply without details."""
        from rollbot_core.errors import UserMessages
        from rollbot_core.pairing import PairingRequest, PairingStatus

        service, store, _ = build_service(tmp_path, clock)
        await store.generate(SENDER)
        for code in ("a", "b", "c"):
            await store.verify(SENDER, code)

        outcome = await service.handle(PairingRequest(SENDER, SENDER, is_trusted=True))

        assert outcome.status == PairingStatus.FAILED
        assert outcome.reply == UserMessages.PAIRING_FAILED
