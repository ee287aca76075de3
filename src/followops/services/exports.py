from __future__ import annotations

import csv
import sqlite3
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font

from followops.followup.metrics import FollowUpMetrics
from followops.store.sqlite import SqliteStore

# Table -> query returning one account's rows.
ACCOUNT_QUERIES = {
    "leads": "SELECT * FROM leads WHERE account_id = ? ORDER BY created_at",
    "interactions": (
        "SELECT interactions.* FROM interactions JOIN leads ON interactions.lead_id = leads.lead_id "
        "WHERE leads.account_id = ? ORDER BY interactions.occurred_at"
    ),
    "follow_up_settings": "SELECT * FROM follow_up_settings WHERE account_id = ?",
    "follow_up_templates": "SELECT * FROM follow_up_templates WHERE account_id = ? ORDER BY priority",
    "follow_up_logs": "SELECT * FROM follow_up_logs WHERE account_id = ? ORDER BY sent_at",
    "notifications": "SELECT * FROM notifications WHERE account_id = ? ORDER BY created_at",
}
TABLES = list(ACCOUNT_QUERIES)
HEADER_FONT = Font(bold=True)


def account_rows(store: SqliteStore, account_id: str) -> dict[str, tuple[list[str], list[sqlite3.Row]]]:
    tables = {}
    with store.connect() as conn:
        for table, query in ACCOUNT_QUERIES.items():
            cur = conn.execute(query, (account_id,))
            headers = [column[0] for column in cur.description]
            tables[table] = (headers, cur.fetchall())
    return tables


def export_excel(store: SqliteStore, account_id: str, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    wb.remove(wb.active)
    for table, (headers, rows) in account_rows(store, account_id).items():
        ws = wb.create_sheet(title=table)
        _append_header(ws, headers)
        for row in rows:
            ws.append(list(row))
    wb.save(out_path)


def export_csv_tables(store: SqliteStore, account_id: str, out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for table, (headers, rows) in account_rows(store, account_id).items():
        with (out_dir / f"{table}.csv").open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow(headers)
            writer.writerows(list(row) for row in rows)


def export_metrics_excel(metrics: FollowUpMetrics, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    summary = wb.active
    summary.title = "summary"
    _append_header(summary, ["metric", "value"])
    for name in ("total_sent", "total_responded", "total_converted"):
        summary.append([name, getattr(metrics, name)])
    for name in ("response_rate", "conversion_rate"):
        summary.append([name, round(getattr(metrics, name), 4)])

    by_channel = wb.create_sheet(title="by_channel")
    _append_header(by_channel, ["channel", "sent", "responded"])
    for item in metrics.by_channel:
        by_channel.append([item.channel, item.sent, item.responded])

    by_day = wb.create_sheet(title="by_day")
    _append_header(by_day, ["day", "sent"])
    for item in metrics.by_day:
        by_day.append([item.day.isoformat(), item.sent])

    recent = wb.create_sheet(title="recent_logs")
    _append_header(recent, ["sent_at", "lead", "channel", "status"])
    for log in metrics.recent_logs:
        recent.append([log.sent_at.isoformat(), log.lead_name, log.notification_type, log.status])

    wb.save(out_path)


def _append_header(ws, headers: list[str]) -> None:
    ws.append(headers)
    for cell in ws[ws.max_row]:
        cell.font = HEADER_FONT
