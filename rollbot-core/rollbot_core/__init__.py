"""
Rollbot Core Library
====================
Access control, OTP pairing and message handling for the roll chat bot.
"""

__version__ = "0.1.0"

# Errors
from rollbot_core.errors import (
    RollbotError,
    ConfigurationError,
    ValidationError,
    LockoutError,
    PersistenceError,
    DeliveryError,
    UserMessages,
)

# Logging
from rollbot_core.logging_setup import setup_logging, mask_jid

# Settings
from rollbot_core.settings import BotSettings, load_settings, read_config, write_config

# Access Control
from rollbot_core.access import AccessConfig, AccessMode, AccessPolicy

# OTP
from rollbot_core.otp import (
    CodeAlphabet,
    EncryptedOtpStore,
    OtpAuditLogger,
    OtpEntry,
    OtpEvent,
    OtpEventBus,
    OtpEventType,
    OtpReaper,
    OtpStoreConfig,
)

# Webhooks
from rollbot_core.webhook import EventForwarder, WebhookClient, WebhookConfig

# Rate Limiting
from rollbot_core.rate_limit import RateLimitConfig, RateLimitInfo, SlidingWindowRateLimiter

# Pairing
from rollbot_core.pairing import (
    AdminChannelStore,
    PairingOutcome,
    PairingRequest,
    PairingService,
    PairingStatus,
)

# Bot
from rollbot_core.bot import BotRuntime, InboundMessage, MessageHandler, Reply, Transport

__all__ = [
    "__version__",
    # Errors
    "RollbotError",
    "ConfigurationError",
    "ValidationError",
    "LockoutError",
    "PersistenceError",
    "DeliveryError",
    "UserMessages",
    # Logging
    "setup_logging",
    "mask_jid",
    # Settings
    "BotSettings",
    "load_settings",
    "read_config",
    "write_config",
    # Access Control
    "AccessConfig",
    "AccessMode",
    "AccessPolicy",
    # OTP
    "CodeAlphabet",
    "EncryptedOtpStore",
    "OtpAuditLogger",
    "OtpEntry",
    "OtpEvent",
    "OtpEventBus",
    "OtpEventType",
    "OtpReaper",
    "OtpStoreConfig",
    # Webhooks
    "EventForwarder",
    "WebhookClient",
    "WebhookConfig",
    # Rate Limiting
    "RateLimitConfig",
    "RateLimitInfo",
    "SlidingWindowRateLimiter",
    # Pairing
    "AdminChannelStore",
    "PairingOutcome",
    "PairingRequest",
    "PairingService",
    "PairingStatus",
    # Bot
    "BotRuntime",
    "InboundMessage",
    "MessageHandler",
    "Reply",
    "Transport",
]
