from __future__ import annotations

import logging
import os

from followops.adapters.channels.base import ChannelError, ChannelSender, SendResult
from followops.adapters.channels.in_app import InAppSender
from followops.adapters.channels.manychat import ManyChatClient, ManyChatSender
from followops.adapters.channels.zapi import ZApiClient, ZApiSender
from followops.config import ChannelsConfig
from followops.domain.models import FollowUpSettings
from followops.services.utils import normalize_phone
from followops.store.sqlite import SqliteStore

logger = logging.getLogger(__name__)

__all__ = [
    "ChannelError",
    "ChannelSender",
    "InAppSender",
    "ManyChatSender",
    "OperatorAlerter",
    "SendResult",
    "ZApiSender",
    "build_senders",
    "build_zapi_client",
]


def build_senders(
    settings: FollowUpSettings, channels: ChannelsConfig, store: SqliteStore
) -> list[ChannelSender]:
    """Senders for every channel the account has switched on and can route."""
    senders: list[ChannelSender] = []
    if settings.notify_in_app:
        senders.append(InAppSender(store, settings.account_id))

    if settings.notify_whatsapp:
        api_key = os.getenv(channels.manychat.api_key_env)
        if not settings.whatsapp_subscriber_id:
            logger.warning("WhatsApp follow-ups enabled but no subscriber id is set; skipping channel")
        elif not api_key:
            logger.warning("%s is not set; skipping ManyChat channel", channels.manychat.api_key_env)
        else:
            client = ManyChatClient(api_key=api_key, base_url=channels.manychat.base_url)
            senders.append(
                ManyChatSender(client, settings.whatsapp_subscriber_id, channels.manychat.flow_ns)
            )

    if settings.notify_lead_whatsapp:
        client = build_zapi_client(channels)
        if client is None:
            logger.warning("Direct WhatsApp follow-ups enabled but Z-API is not configured; skipping channel")
        else:
            senders.append(ZApiSender(client))

    return senders


def build_zapi_client(channels: ChannelsConfig) -> ZApiClient | None:
    token = os.getenv(channels.zapi.token_env)
    if not channels.zapi.instance_id or not token:
        return None
    return ZApiClient(
        instance_id=channels.zapi.instance_id,
        token=token,
        client_token=os.getenv(channels.zapi.client_token_env),
        base_url=channels.zapi.base_url,
    )


class OperatorAlerter:
    """Operator-visible alerts: always logged, also sent to the personal WhatsApp when set."""

    def __init__(self, client: ZApiClient | None = None, phone: str | None = None) -> None:
        self.client = client
        self.phone = normalize_phone(phone)

    @classmethod
    def from_settings(cls, settings: FollowUpSettings, channels: ChannelsConfig) -> OperatorAlerter:
        return cls(build_zapi_client(channels), settings.personal_whatsapp)

    def alert(self, message: str) -> None:
        logger.error("Operator alert: %s", message)
        if self.client is None or self.phone is None:
            return
        try:
            self.client.send_text(self.phone, f"[followops] {message}")
        except ChannelError:
            logger.error("Failed to deliver operator alert", exc_info=True)
