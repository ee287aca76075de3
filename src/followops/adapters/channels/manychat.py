from __future__ import annotations

import logging
from typing import Any

import requests

from followops.adapters.channels.base import ChannelError, SendResult
from followops.domain.models import Lead
from followops.domain.stages import NotificationChannel, product_name

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.manychat.com"


class ManyChatClient:
    def __init__(self, api_key: str, base_url: str = DEFAULT_BASE_URL, timeout: float = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        )

    def set_custom_fields(self, subscriber_id: str, fields: dict[str, str]) -> dict[str, Any]:
        payload = {
            "subscriber_id": _subscriber(subscriber_id),
            "fields": [{"field_name": k, "field_value": v} for k, v in fields.items()],
        }
        return self._request("/fb/subscriber/setCustomFields", payload)

    def send_flow(self, subscriber_id: str, flow_ns: str) -> dict[str, Any]:
        payload = {"subscriber_id": _subscriber(subscriber_id), "flow_ns": flow_ns}
        return self._request("/fb/sending/sendFlow", payload)

    def send_text(self, subscriber_id: str, text: str) -> dict[str, Any]:
        payload = {
            "subscriber_id": _subscriber(subscriber_id),
            "data": {"version": "v2", "content": {"messages": [{"type": "text", "text": text}]}},
            "message_tag": "ACCOUNT_UPDATE",
        }
        return self._request("/fb/sending/sendContent", payload)

    def _request(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ChannelError(f"ManyChat request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ChannelError(f"ManyChat error {response.status_code}: {response.text}")
        data = response.json()
        if isinstance(data, dict) and data.get("status") == "error":
            raise ChannelError(f"ManyChat error: {data.get('message', 'unknown error')}")
        return data


class ManyChatSender:
    """WhatsApp follow-up alert to the account owner's ManyChat subscriber.

    With a flow configured the approved WhatsApp template flow is triggered
    after the lead details are stored as custom fields; otherwise the
    rendered message is sent as plain content.
    """

    channel = NotificationChannel.WHATSAPP.value

    def __init__(self, client: ManyChatClient, subscriber_id: str, flow_ns: str | None = None) -> None:
        self.client = client
        self.subscriber_id = subscriber_id
        self.flow_ns = flow_ns

    def send(self, lead: Lead, message: str) -> SendResult:
        try:
            if self.flow_ns:
                self.client.set_custom_fields(
                    self.subscriber_id,
                    {
                        "lead_name": lead.name,
                        "follow_up_message": message,
                        "product_name": product_name(lead.product),
                    },
                )
                self.client.send_flow(self.subscriber_id, self.flow_ns)
            else:
                self.client.send_text(self.subscriber_id, message)
        except ChannelError as exc:
            logger.warning("ManyChat send failed for lead %s: %s", lead.lead_id, exc)
            return SendResult.failure(str(exc))
        return SendResult.success()


def _subscriber(subscriber_id: str) -> int | str:
    return int(subscriber_id) if subscriber_id.isdigit() else subscriber_id
