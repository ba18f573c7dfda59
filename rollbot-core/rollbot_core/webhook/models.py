"""
Webhook Models
==============
Configuration, request bodies and delivery results for outbound webhooks.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

SUCCESS_STATUSES = frozenset({200, 201, 204})
DEFAULT_TIMEOUT = 5.0


@dataclass
class WebhookConfig:
    """Target of a webhook."""
    enabled: bool = False
    url: Optional[str] = None
    method: str = "POST"
    headers: Dict[str, str] = field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )
    timeout: float = DEFAULT_TIMEOUT

    @property
    def active(self) -> bool:
        return bool(self.enabled and self.url)

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "WebhookConfig":
        raw = raw or {}
        headers = raw.get("headers") or {"Content-Type": "application/json"}
        return cls(
            enabled=bool(raw.get("enabled", False)),
            url=raw.get("url") or None,
            method=str(raw.get("method") or "POST").upper(),
            headers={str(k): str(v) for k, v in headers.items()},
            timeout=float(raw.get("timeoutSeconds") or DEFAULT_TIMEOUT),
        )


class EventWebhookBody(BaseModel):
    """Body posted for OTP lifecycle events."""
    event: str
    payload: Dict[str, Any]


class PairingWebhookBody(BaseModel):
    """Body posted when a pairing code is delivered."""
    model_config = ConfigDict(populate_by_name=True)

    jid: str
    code: str
    expires_at: int = Field(alias="expiresAt")  # Unix ms


@dataclass
class DeliveryResult:
    """Outcome of one webhook call."""
    ok: bool
    reason: Optional[str] = None
    status_code: Optional[int] = None
