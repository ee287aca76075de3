"""Row mapping and queries shared by the follow-up engine, dispatcher and metrics."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime

from followops.domain.models import (
    FollowUpLog,
    FollowUpSettings,
    FollowUpTemplate,
    Interaction,
    Lead,
    Notification,
    Snapshot,
)
from followops.domain.rules import as_utc
from followops.domain.stages import LogStatus
from followops.services.utils import to_iso
from followops.store.sqlite import SqliteStore


def _dt(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value))


def _list(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(json.loads(value))


def row_to_lead(row: sqlite3.Row) -> Lead:
    return Lead(
        lead_id=row["lead_id"],
        account_id=row["account_id"],
        name=row["name"],
        email=row["email"],
        phone=row["phone"],
        product=row["product"],
        status=row["status"],
        notes=row["notes"],
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


def row_to_interaction(row: sqlite3.Row) -> Interaction:
    return Interaction(
        interaction_id=row["interaction_id"],
        lead_id=row["lead_id"],
        occurred_at=_dt(row["occurred_at"]),
        kind=row["kind"],
        description=row["description"],
        created_at=_dt(row["created_at"]),
    )


def row_to_settings(row: sqlite3.Row) -> FollowUpSettings:
    return FollowUpSettings(
        settings_id=row["settings_id"],
        account_id=row["account_id"],
        days_without_interaction=int(row["days_without_interaction"]),
        notify_in_app=bool(row["notify_in_app"]),
        notify_whatsapp=bool(row["notify_whatsapp"]),
        notify_lead_whatsapp=bool(row["notify_lead_whatsapp"]),
        whatsapp_subscriber_id=row["whatsapp_subscriber_id"],
        personal_whatsapp=row["personal_whatsapp"],
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


def row_to_template(row: sqlite3.Row) -> FollowUpTemplate:
    return FollowUpTemplate(
        template_id=row["template_id"],
        account_id=row["account_id"],
        name=row["name"],
        description=row["description"],
        min_days=int(row["min_days"]),
        max_days=int(row["max_days"]) if row["max_days"] is not None else None,
        status_filter=_list(row["status_filter"]),
        product_filter=_list(row["product_filter"]),
        message_template=row["message_template"],
        priority=int(row["priority"]),
        is_active=bool(row["is_active"]),
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


def row_to_log(row: sqlite3.Row) -> FollowUpLog:
    return FollowUpLog(
        log_id=row["log_id"],
        account_id=row["account_id"],
        lead_id=row["lead_id"],
        notification_type=row["notification_type"],
        status=row["status"],
        error_message=row["error_message"],
        sent_at=_dt(row["sent_at"]),
    )


def fetch_settings(store: SqliteStore, account_id: str) -> FollowUpSettings | None:
    row = store.fetch_one("SELECT * FROM follow_up_settings WHERE account_id = ?", (account_id,))
    return row_to_settings(row) if row else None


def list_accounts_with_settings(store: SqliteStore) -> list[str]:
    rows = store.fetch_all("SELECT account_id FROM follow_up_settings ORDER BY account_id")
    return [row["account_id"] for row in rows]


def fetch_leads(store: SqliteStore, account_id: str) -> list[Lead]:
    rows = store.fetch_all(
        "SELECT * FROM leads WHERE account_id = ? ORDER BY created_at, lead_id", (account_id,)
    )
    return [row_to_lead(row) for row in rows]


def fetch_interactions(store: SqliteStore, account_id: str) -> list[Interaction]:
    rows = store.fetch_all(
        "SELECT interactions.* FROM interactions "
        "JOIN leads ON interactions.lead_id = leads.lead_id "
        "WHERE leads.account_id = ? ORDER BY interactions.occurred_at",
        (account_id,),
    )
    return [row_to_interaction(row) for row in rows]


def fetch_templates(store: SqliteStore, account_id: str) -> list[FollowUpTemplate]:
    rows = store.fetch_all(
        "SELECT * FROM follow_up_templates WHERE account_id = ? ORDER BY priority ASC",
        (account_id,),
    )
    return [row_to_template(row) for row in rows]


def fetch_logs(
    store: SqliteStore,
    account_id: str,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[FollowUpLog]:
    clauses = ["account_id = ?"]
    params: list[object] = [account_id]
    if since is not None:
        clauses.append("sent_at >= ?")
        params.append(to_iso(since))
    if until is not None:
        clauses.append("sent_at < ?")
        params.append(to_iso(until))
    rows = store.fetch_all(
        f"SELECT * FROM follow_up_logs WHERE {' AND '.join(clauses)} ORDER BY sent_at DESC, log_id",
        params,
    )
    return [row_to_log(row) for row in rows]


def load_snapshot(store: SqliteStore, account_id: str) -> Snapshot:
    return Snapshot(
        settings=fetch_settings(store, account_id),
        leads=fetch_leads(store, account_id),
        interactions=fetch_interactions(store, account_id),
        templates=fetch_templates(store, account_id),
    )


def has_sent_log(
    store: SqliteStore,
    lead_id: str,
    since: datetime,
    until: datetime | None = None,
) -> bool:
    """True when any channel already delivered to this lead inside the window."""
    query = "SELECT log_id FROM follow_up_logs WHERE lead_id = ? AND status = ? AND sent_at >= ?"
    params: list[object] = [lead_id, LogStatus.SENT.value, to_iso(since)]
    if until is not None:
        query += " AND sent_at < ?"
        params.append(to_iso(until))
    return store.fetch_one(query + " LIMIT 1", params) is not None


def insert_log(store: SqliteStore, log: FollowUpLog) -> None:
    store.execute(
        "INSERT INTO follow_up_logs (log_id, account_id, lead_id, notification_type, status, "
        "error_message, sent_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
        (
            log.log_id,
            log.account_id,
            log.lead_id,
            log.notification_type,
            log.status,
            log.error_message,
            to_iso(log.sent_at),
        ),
    )


def insert_notification(store: SqliteStore, notification: Notification) -> None:
    store.execute(
        "INSERT INTO notifications (notification_id, account_id, lead_id, title, message, kind, "
        "is_read, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        (
            notification.notification_id,
            notification.account_id,
            notification.lead_id,
            notification.title,
            notification.message,
            notification.kind,
            int(notification.is_read),
            to_iso(notification.created_at),
        ),
    )
