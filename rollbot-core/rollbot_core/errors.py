"""
Errors
======
Exception hierarchy for the access-control and pairing core, plus the
generic user-facing messages shown in chat.

CRITICAL: Never expose internal error details to chat users.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class RollbotError(Exception):
    """Base exception for all rollbot-core errors."""

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigurationError(RollbotError):
    """Raised when configuration is malformed (bad key, bad regex, unknown alphabet)."""
    pass


class ValidationError(RollbotError):
    """Raised when a caller passes an invalid argument (e.g. empty jid)."""
    pass


class LockoutError(RollbotError):
    """Raised when an identity is jailed and tries to generate a code."""

    def __init__(self, jid: str, until: float):
        self.jid = jid
        self.until = until
        until_iso = datetime.fromtimestamp(until, tz=timezone.utc).isoformat()
        super().__init__(f"Jailed until {until_iso}", details={"until": until})


class PersistenceError(RollbotError):
    """Raised by the storage layer on read/write/decrypt failure."""
    pass


class DeliveryError(RollbotError):
    """Raised by the webhook client when delivery fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, details={"status_code": status_code})


class UserMessages:
    """Generic, non-revealing replies sent back to chat."""

    NOT_AUTHORIZED = "⛔ You are not authorized to perform this command."
    ADMIN_CHANNEL_ONLY = "⛔ Admin commands are restricted to the admin channel."
    PAIRING_ACCEPTED = "✅ Pairing code accepted. Admin pairing complete."
    PAIRING_INVALID = "❌ Invalid or expired pairing code."
    PAIRING_NEEDS_CODE = "Provide a pairing code or be a trusted number."
    PAIRING_DELIVERED = "A pairing code has been delivered via webhook."
    PAIRING_CONTACT_ADMIN = (
        "Pairing code generated. Webhook delivery attempted (disabled or failed). "
        "Contact an admin."
    )
    PAIRING_FAILED = "❌ Failed to generate pairing code. Please try again later."
    CONFIG_UPDATE_FAILED = "❌ Failed to update config."
    ADMIN_CHANNEL_GROUP_ONLY = "❌ Admin channel must be set from a group chat."
    LIST_JAILED_FAILED = "❌ Failed to list jailed entries."
    UNJAIL_FAILED = "❌ Failed to unjail target."
    UNJAIL_USAGE = "Usage: !unjail <jid>"
