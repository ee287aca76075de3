from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from followops.domain import rules
from followops.domain.models import Interaction
from followops.domain.stages import InteractionType
from followops.services.utils import to_iso, utc_now_iso
from followops.store.repository import row_to_interaction
from followops.store.sqlite import SqliteStore


class InteractionError(RuntimeError):
    pass


def log_interaction(
    store: SqliteStore,
    lead_id: str,
    kind: str,
    description: str,
    occurred_at: datetime | None = None,
) -> str:
    rules.validate_enum(kind, [k.value for k in InteractionType], "kind")
    rules.require(description, "description")

    now = utc_now_iso()
    occurred = to_iso(occurred_at) if occurred_at is not None else now
    interaction_id = str(uuid4())

    with store.session() as session:
        lead = session.fetch_one("SELECT lead_id FROM leads WHERE lead_id = ?", (lead_id,))
        if lead is None:
            raise InteractionError(f"Lead not found: {lead_id}")
        session.execute(
            "INSERT INTO interactions (interaction_id, lead_id, occurred_at, kind, description, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (interaction_id, lead_id, occurred, kind, description, now),
        )
        session.execute("UPDATE leads SET updated_at = ? WHERE lead_id = ?", (now, lead_id))

    return interaction_id


def list_interactions(store: SqliteStore, lead_id: str) -> list[Interaction]:
    rows = store.fetch_all(
        "SELECT * FROM interactions WHERE lead_id = ? ORDER BY occurred_at DESC", (lead_id,)
    )
    return [row_to_interaction(row) for row in rows]
