"""
Webhook Client
==============
Best-effort async HTTP delivery of OTP events and pairing codes.

Each call is a single attempt bounded by the configured timeout (5s by
default). Success is HTTP 200, 201 or 204. Failures are logged and reported
through ``DeliveryResult``; they never raise to the caller.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from ..errors import DeliveryError
from ..logging_setup import mask_jid
from .models import (
    SUCCESS_STATUSES,
    DeliveryResult,
    EventWebhookBody,
    PairingWebhookBody,
    WebhookConfig,
)

logger = structlog.get_logger(__name__)


class WebhookClient:
    """
    Async webhook sender backed by ``httpx.AsyncClient``.

    Example:
        client = WebhookClient(WebhookConfig(enabled=True, url="https://hooks.example/otp"))
        result = await client.deliver_pairing_code(jid, code, expires_at)
        await client.aclose()
    """

    def __init__(
        self,
        config: Optional[WebhookConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or WebhookConfig()
        self._client = httpx.AsyncClient(timeout=self.config.timeout, transport=transport)

    @property
    def enabled(self) -> bool:
        return self.config.active

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _map_exception(self, exc: httpx.HTTPError) -> DeliveryError:
        if isinstance(exc, httpx.TimeoutException):
            return DeliveryError("Request timed out")
        if isinstance(exc, (httpx.ConnectError, httpx.NetworkError)):
            return DeliveryError(f"Failed to connect: {exc}")
        return DeliveryError(f"Unexpected HTTP error: {exc}")

    async def _send(self, body: Dict[str, Any], kind: str) -> DeliveryResult:
        if not self.config.active:
            return DeliveryResult(ok=False, reason="disabled")

        try:
            response = await self._client.request(
                self.config.method,
                self.config.url,
                json=body,
                headers=self.config.headers,
            )
            if response.status_code not in SUCCESS_STATUSES:
                raise DeliveryError(
                    f"HTTP {response.status_code} Error",
                    status_code=response.status_code,
                )
        except httpx.HTTPError as e:
            error = self._map_exception(e)
        except DeliveryError as e:
            error = e
        else:
            logger.info(
                "webhook_delivered",
                kind=kind,
                url=self.config.url,
                status_code=response.status_code,
            )
            return DeliveryResult(ok=True, status_code=response.status_code)

        logger.warning(
            "webhook_delivery_failed",
            kind=kind,
            url=self.config.url,
            error=error.message,
        )
        return DeliveryResult(ok=False, reason=error.message, status_code=error.status_code)

    async def deliver_event(self, event: str, payload: Dict[str, Any]) -> DeliveryResult:
        """POST ``{event, payload}``."""
        body = EventWebhookBody(event=event, payload=payload)
        return await self._send(body.model_dump(mode="json"), kind=f"event:{event}")

    async def deliver_pairing_code(self, jid: str, code: str, expires_at: float) -> DeliveryResult:
        """POST ``{jid, code, expiresAt}`` with ``expiresAt`` in Unix milliseconds."""
        body = PairingWebhookBody(jid=jid, code=code, expires_at=int(expires_at * 1000))
        result = await self._send(body.model_dump(by_alias=True), kind="pairing")
        logger.info("pairing_code_delivery", jid=mask_jid(jid), ok=result.ok)
        return result
