from __future__ import annotations

import logging
from uuid import uuid4

from followops.domain import rules
from followops.domain.models import Lead
from followops.domain.stages import LeadStatus, ProductType
from followops.services.utils import normalize_phone, to_iso, utc_now_iso
from followops.store.repository import row_to_lead
from followops.store.sqlite import SqliteStore

logger = logging.getLogger(__name__)


class LeadError(RuntimeError):
    pass


def add_lead(
    store: SqliteStore,
    account_id: str,
    name: str,
    product: str,
    status: str = LeadStatus.NEW.value,
    email: str | None = None,
    phone: str | None = None,
    notes: str | None = None,
    created_at: str | None = None,
) -> str:
    rules.require(name, "name")
    rules.validate_enum(product, [p.value for p in ProductType], "product")
    rules.validate_enum(status, [s.value for s in LeadStatus], "status")
    created = rules.parse_datetime(created_at, "created_at")

    now = to_iso(created) if created is not None else utc_now_iso()
    lead_id = str(uuid4())
    store.execute(
        "INSERT INTO leads (lead_id, account_id, name, email, phone, product, status, notes, "
        "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            lead_id,
            account_id,
            name.strip(),
            email,
            normalize_phone(phone),
            product,
            status,
            notes,
            now,
            now,
        ),
    )
    return lead_id


def get_lead(store: SqliteStore, lead_id: str) -> Lead:
    row = store.fetch_one("SELECT * FROM leads WHERE lead_id = ?", (lead_id,))
    if row is None:
        raise LeadError(f"Lead not found: {lead_id}")
    return row_to_lead(row)


def list_leads(store: SqliteStore, account_id: str, status: str | None = None) -> list[Lead]:
    params: list[str] = [account_id]
    where = "WHERE account_id = ?"
    if status:
        rules.validate_enum(status, [s.value for s in LeadStatus], "status")
        where += " AND status = ?"
        params.append(status)
    rows = store.fetch_all(f"SELECT * FROM leads {where} ORDER BY updated_at DESC", params)
    return [row_to_lead(row) for row in rows]


def update_status(store: SqliteStore, lead_id: str, status: str, enforce: bool = False) -> Lead:
    rules.validate_enum(status, [s.value for s in LeadStatus], "status")
    lead = get_lead(store, lead_id)
    try:
        rules.validate_transition(lead.status, status)
    except rules.ValidationError:
        if enforce:
            raise
        logger.warning(
            "Lead %s moved from %s to %s outside the usual pipeline", lead_id, lead.status, status
        )

    store.execute(
        "UPDATE leads SET status = ?, updated_at = ? WHERE lead_id = ?",
        (status, utc_now_iso(), lead_id),
    )
    return get_lead(store, lead_id)
