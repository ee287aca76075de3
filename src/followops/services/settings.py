from __future__ import annotations

import logging
from uuid import uuid4

from followops.domain.models import FollowUpSettings
from followops.domain.rules import ValidationError
from followops.services.utils import normalize_phone, utc_now_iso
from followops.store.repository import fetch_settings
from followops.store.sqlite import SqliteStore

logger = logging.getLogger(__name__)

DEFAULT_DAYS_WITHOUT_INTERACTION = 7


def get_or_create_settings(store: SqliteStore, account_id: str) -> FollowUpSettings:
    settings = fetch_settings(store, account_id)
    if settings is not None:
        return settings

    now = utc_now_iso()
    store.execute(
        "INSERT OR IGNORE INTO follow_up_settings (settings_id, account_id, days_without_interaction, "
        "notify_in_app, notify_whatsapp, notify_lead_whatsapp, whatsapp_subscriber_id, "
        "personal_whatsapp, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (str(uuid4()), account_id, DEFAULT_DAYS_WITHOUT_INTERACTION, 1, 1, 0, None, None, now, now),
    )
    logger.info("Created default follow-up settings for account %s", account_id)
    return fetch_settings(store, account_id)


def update_settings(
    store: SqliteStore,
    account_id: str,
    *,
    days_without_interaction: int | None = None,
    notify_in_app: bool | None = None,
    notify_whatsapp: bool | None = None,
    notify_lead_whatsapp: bool | None = None,
    whatsapp_subscriber_id: str | None = None,
    personal_whatsapp: str | None = None,
) -> FollowUpSettings:
    if days_without_interaction is not None and days_without_interaction < 1:
        raise ValidationError("days_without_interaction must be at least 1.")

    get_or_create_settings(store, account_id)
    updates = ["updated_at = ?"]
    params: list[object] = [utc_now_iso()]
    if days_without_interaction is not None:
        updates.append("days_without_interaction = ?")
        params.append(days_without_interaction)
    if notify_in_app is not None:
        updates.append("notify_in_app = ?")
        params.append(int(notify_in_app))
    if notify_whatsapp is not None:
        updates.append("notify_whatsapp = ?")
        params.append(int(notify_whatsapp))
    if notify_lead_whatsapp is not None:
        updates.append("notify_lead_whatsapp = ?")
        params.append(int(notify_lead_whatsapp))
    if whatsapp_subscriber_id is not None:
        updates.append("whatsapp_subscriber_id = ?")
        params.append(whatsapp_subscriber_id.strip() or None)
    if personal_whatsapp is not None:
        updates.append("personal_whatsapp = ?")
        params.append(normalize_phone(personal_whatsapp))
    params.append(account_id)
    store.execute(
        f"UPDATE follow_up_settings SET {', '.join(updates)} WHERE account_id = ?", params
    )
    return fetch_settings(store, account_id)
