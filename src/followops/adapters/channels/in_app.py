from __future__ import annotations

import sqlite3
from uuid import uuid4

from followops.adapters.channels.base import SendResult
from followops.domain.models import Lead, Notification
from followops.domain.stages import NotificationChannel
from followops.services.utils import utc_now
from followops.store.repository import insert_notification
from followops.store.sqlite import SqliteStore

NOTIFICATION_KIND = "follow_up"


class InAppSender:
    """Drops the follow-up into the account's in-app notification inbox."""

    channel = NotificationChannel.IN_APP.value

    def __init__(self, store: SqliteStore, account_id: str) -> None:
        self.store = store
        self.account_id = account_id

    def send(self, lead: Lead, message: str) -> SendResult:
        notification = Notification(
            notification_id=str(uuid4()),
            account_id=self.account_id,
            lead_id=lead.lead_id,
            title=f"Follow-up needed: {lead.name}",
            message=message,
            kind=NOTIFICATION_KIND,
            is_read=False,
            created_at=utc_now(),
        )
        try:
            insert_notification(self.store, notification)
        except sqlite3.Error as exc:
            return SendResult.failure(f"Could not store notification: {exc}")
        return SendResult.success()
