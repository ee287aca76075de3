from __future__ import annotations

import logging
from typing import Any

import requests

from followops.adapters.channels.base import ChannelError, SendResult
from followops.domain.models import Lead
from followops.domain.stages import NotificationChannel
from followops.services.utils import normalize_phone

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.z-api.io"


class ZApiClient:
    def __init__(
        self,
        instance_id: str,
        token: str,
        client_token: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30,
    ) -> None:
        self.base_url = f"{base_url.rstrip('/')}/instances/{instance_id}/token/{token}"
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if client_token:
            self.session.headers.update({"Client-Token": client_token})

    def send_text(self, phone: str, message: str) -> dict[str, Any]:
        url = f"{self.base_url}/send-text"
        try:
            response = self.session.post(
                url, json={"phone": phone, "message": message}, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise ChannelError(f"Z-API request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ChannelError(f"Z-API error {response.status_code}: {response.text}")
        return response.json()


class ZApiSender:
    """Sends the rendered follow-up straight to the lead's WhatsApp number."""

    channel = NotificationChannel.WHATSAPP_ZAPI.value

    def __init__(self, client: ZApiClient) -> None:
        self.client = client

    def send(self, lead: Lead, message: str) -> SendResult:
        phone = normalize_phone(lead.phone)
        if phone is None:
            return SendResult.failure("Lead has no phone number.")
        try:
            self.client.send_text(phone, message)
        except ChannelError as exc:
            logger.warning("Z-API send failed for lead %s: %s", lead.lead_id, exc)
            return SendResult.failure(str(exc))
        return SendResult.success()
