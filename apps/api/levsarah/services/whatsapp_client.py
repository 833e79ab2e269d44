"""WhatsApp delivery through the Twilio Messages API.

Two kinds of outbound message:
- templated (pre-approved content SID + numbered variables), required by
  WhatsApp for business-initiated messages
- plain body text, used inside the 24h reply window (registration dialogue,
  login links, invites)
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from typing import Mapping

import httpx

from levsarah.core.config import settings
from levsarah.utils.normalization import CHANNEL_PREFIX, mask_phone

logger = logging.getLogger(__name__)


class WhatsAppError(Exception):
    """Base exception for WhatsApp delivery errors."""
    pass


class WhatsAppNotConfiguredError(WhatsAppError):
    """Raised when provider credentials or sender are missing."""
    pass


class WhatsAppSendError(WhatsAppError):
    """Raised when the provider rejects a message or cannot be reached."""
    pass


class WhatsAppClient:
    """Thin async client for the Twilio WhatsApp channel."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        sender: str,
        *,
        base_url: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.sender = sender
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "WhatsAppClient":
        return cls(
            settings.TWILIO_SID,
            settings.TWILIO_TOKEN,
            settings.WHATSAPP_SENDER,
            base_url=settings.WHATSAPP_API_BASE,
            timeout=settings.WHATSAPP_TIMEOUT_SECONDS,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.sender)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/Accounts/{self.account_sid}/Messages.json"

    async def send_template(
        self, phone: str, template_sid: str, variables: Mapping[str, str]
    ) -> str:
        """Send a pre-approved content template. Returns the provider message SID."""
        return await self._send(
            phone,
            {
                "ContentSid": template_sid,
                "ContentVariables": json.dumps(dict(variables), ensure_ascii=False),
            },
        )

    async def send_text(self, phone: str, body: str) -> str:
        """Send a plain text body. Returns the provider message SID."""
        return await self._send(phone, {"Body": body})

    async def _send(self, phone: str, fields: dict[str, str]) -> str:
        if not self.is_configured:
            raise WhatsAppNotConfiguredError("WhatsApp credentials not configured")

        data = {
            "From": f"{CHANNEL_PREFIX}{self.sender}",
            "To": f"{CHANNEL_PREFIX}{phone}",
            **fields,
        }

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.post(
                    self.messages_url,
                    data=data,
                    auth=(self.account_sid, self.auth_token),
                )
            except httpx.HTTPError as exc:
                logger.warning("WhatsApp send to %s failed: %s", mask_phone(phone), exc)
                raise WhatsAppSendError(f"Request failed: {exc}") from exc

        try:
            result = response.json()
        except ValueError:
            result = {}

        if response.is_success and result.get("sid"):
            return result["sid"]

        error = result.get("message") or f"HTTP {response.status_code}"
        logger.warning(
            "WhatsApp send to %s rejected (%s): %s",
            mask_phone(phone),
            response.status_code,
            error,
        )
        raise WhatsAppSendError(error)


def get_whatsapp_client() -> WhatsAppClient:
    """FastAPI dependency and default for scheduled jobs."""
    return WhatsAppClient.from_settings()


# =============================================================================
# Webhook signature
# =============================================================================

def compute_signature(url: str, params: Mapping[str, str], auth_token: str) -> str:
    """Twilio request signature: HMAC-SHA1 of URL + sorted key/value pairs, base64."""
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode(), payload.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


def validate_webhook_signature(
    url: str, params: Mapping[str, str], signature: str | None, auth_token: str | None = None
) -> bool:
    token = auth_token if auth_token is not None else settings.TWILIO_TOKEN
    if not token or not signature:
        return False
    expected = compute_signature(url, params, token)
    return hmac.compare_digest(expected, signature)
