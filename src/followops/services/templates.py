from __future__ import annotations

import json
from collections.abc import Sequence
from uuid import uuid4

from followops.domain import rules
from followops.domain.models import FollowUpTemplate
from followops.domain.stages import LeadStatus, ProductType
from followops.services.utils import utc_now_iso
from followops.store.repository import fetch_templates, row_to_template
from followops.store.sqlite import SqliteStore


class TemplateError(RuntimeError):
    pass


def add_template(
    store: SqliteStore,
    account_id: str,
    name: str,
    message_template: str,
    *,
    min_days: int = 0,
    max_days: int | None = None,
    status_filter: Sequence[str] = (),
    product_filter: Sequence[str] = (),
    priority: int = 0,
    description: str | None = None,
    is_active: bool = True,
) -> str:
    rules.require(name, "name")
    rules.require(message_template, "message")
    if min_days < 0:
        raise rules.ValidationError("min_days must be zero or more.")
    if max_days is not None and max_days < min_days:
        raise rules.ValidationError("max_days must be greater than or equal to min_days.")
    statuses = [s.value for s in LeadStatus]
    for status in status_filter:
        rules.validate_enum(status, statuses, "status_filter")
    products = [p.value for p in ProductType]
    for product in product_filter:
        rules.validate_enum(product, products, "product_filter")

    now = utc_now_iso()
    template_id = str(uuid4())
    store.execute(
        "INSERT INTO follow_up_templates (template_id, account_id, name, description, min_days, max_days, "
        "status_filter, product_filter, message_template, priority, is_active, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            template_id,
            account_id,
            name,
            description,
            min_days,
            max_days,
            json.dumps(list(status_filter)),
            json.dumps(list(product_filter)),
            message_template,
            priority,
            int(is_active),
            now,
            now,
        ),
    )
    return template_id


def list_templates(store: SqliteStore, account_id: str) -> list[FollowUpTemplate]:
    return fetch_templates(store, account_id)


def set_active(store: SqliteStore, template_id: str, is_active: bool) -> FollowUpTemplate:
    row = store.fetch_one(
        "SELECT template_id FROM follow_up_templates WHERE template_id = ?", (template_id,)
    )
    if row is None:
        raise TemplateError(f"Template not found: {template_id}")
    store.execute(
        "UPDATE follow_up_templates SET is_active = ?, updated_at = ? WHERE template_id = ?",
        (int(is_active), utc_now_iso(), template_id),
    )
    row = store.fetch_one("SELECT * FROM follow_up_templates WHERE template_id = ?", (template_id,))
    return row_to_template(row)
