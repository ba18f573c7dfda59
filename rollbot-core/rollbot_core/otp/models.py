"""
OTP Models
==========
Data models and enums for the pairing OTP store.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import ConfigurationError


class CodeAlphabet(str, Enum):
    """Code generator families."""
    NUMERIC = "numeric"              # zero-padded decimal
    ALPHANUMERIC = "alphanumeric"    # ambiguity-reduced letters and digits
    HEX = "hex"
    PRONOUNCEABLE = "mini-llm"       # syllable-built token

    @classmethod
    def parse(cls, value: Any) -> "CodeAlphabet":
        """Parse a config tag; unknown tags are a configuration error."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(f"Unknown OTP alphabet: {value!r}")


@dataclass
class OtpStoreConfig:
    """Configuration for OTP generation and lockout."""
    ttl_seconds: int = 300
    length: int = 6
    alphabet: CodeAlphabet = CodeAlphabet.NUMERIC
    jail_threshold: int = 3
    jail_duration_seconds: int = 3600

    def __post_init__(self):
        self.alphabet = CodeAlphabet.parse(self.alphabet)
        if self.length < 1:
            raise ConfigurationError("OTP length must be positive")
        if self.jail_threshold < 1:
            raise ConfigurationError("Jail threshold must be positive")

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "OtpStoreConfig":
        """Build from the camelCase ``pairing`` section of config.json."""
        raw = raw or {}
        return cls(
            ttl_seconds=int(raw.get("otpTTLSeconds") or 300),
            length=int(raw.get("otpLength") or 6),
            alphabet=CodeAlphabet.parse(raw.get("rng") or CodeAlphabet.NUMERIC.value),
            jail_threshold=int(raw.get("otpJailThreshold") or 3),
            jail_duration_seconds=int(raw.get("otpJailDurationSeconds") or 3600),
        )


@dataclass(frozen=True)
class OtpEntry:
    """A stored one-time code."""
    code: str
    expires_at: float  # Unix timestamp (seconds)

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "expires_at": self.expires_at}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "OtpEntry":
        return cls(code=str(raw["code"]), expires_at=float(raw["expires_at"]))
