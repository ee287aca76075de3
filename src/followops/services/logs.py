from __future__ import annotations

from dataclasses import dataclass

from followops.followup.metrics import UNKNOWN_LEAD
from followops.store.sqlite import SqliteStore


@dataclass(frozen=True)
class LogItem:
    log_id: str
    lead_id: str
    lead_name: str
    notification_type: str
    status: str
    error_message: str | None
    sent_at: str


def list_logs(store: SqliteStore, account_id: str, limit: int = 50) -> list[LogItem]:
    rows = store.fetch_all(
        "SELECT follow_up_logs.*, leads.name AS lead_name FROM follow_up_logs "
        "LEFT JOIN leads ON follow_up_logs.lead_id = leads.lead_id "
        "WHERE follow_up_logs.account_id = ? ORDER BY follow_up_logs.sent_at DESC LIMIT ?",
        (account_id, limit),
    )
    return [
        LogItem(
            log_id=row["log_id"],
            lead_id=row["lead_id"],
            lead_name=row["lead_name"] or UNKNOWN_LEAD,
            notification_type=row["notification_type"],
            status=row["status"],
            error_message=row["error_message"],
            sent_at=row["sent_at"],
        )
        for row in rows
    ]
