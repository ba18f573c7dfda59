"""
Webhooks
========
Outbound delivery of OTP lifecycle events and pairing codes.
"""

from .models import (
    SUCCESS_STATUSES,
    DeliveryResult,
    EventWebhookBody,
    PairingWebhookBody,
    WebhookConfig,
)
from .client import WebhookClient
from .forwarder import EventForwarder

__all__ = [
    # Models
    "SUCCESS_STATUSES",
    "DeliveryResult",
    "EventWebhookBody",
    "PairingWebhookBody",
    "WebhookConfig",
    # Delivery
    "WebhookClient",
    "EventForwarder",
]
