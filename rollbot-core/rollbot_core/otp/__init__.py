"""
OTP Pairing Store
=================
One-time pairing codes with lockout, encrypted persistence and lifecycle events.
"""

from .models import CodeAlphabet, OtpEntry, OtpStoreConfig
from .generator import generate_code
from .envelope import decrypt_state, encrypt_state, parse_key
from .events import OtpEvent, OtpEventBus, OtpEventType, Subscription
from .store import EncryptedOtpStore
from .reaper import OtpReaper
from .audit import OtpAuditLogger

__all__ = [
    # Models
    "CodeAlphabet",
    "OtpEntry",
    "OtpStoreConfig",
    # Generator
    "generate_code",
    # Envelope
    "encrypt_state",
    "decrypt_state",
    "parse_key",
    # Events
    "OtpEvent",
    "OtpEventBus",
    "OtpEventType",
    "Subscription",
    # Store
    "EncryptedOtpStore",
    "OtpReaper",
    "OtpAuditLogger",
]
