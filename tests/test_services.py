from datetime import UTC, datetime

import pytest

from factories import ACCOUNT
from followops.domain.rules import ValidationError
from followops.services import interactions, leads, logs, settings, templates
from followops.store.sqlite import SqliteStore


def test_add_and_get_lead(store: SqliteStore) -> None:
    lead_id = leads.add_lead(
        store, ACCOUNT, " Maria Silva ", "mentoria_coletiva", phone="+55 (27) 99999-0000"
    )

    lead = leads.get_lead(store, lead_id)
    assert lead.name == "Maria Silva"
    assert lead.status == "new"
    assert lead.phone == "5527999990000"
    assert lead.first_name == "Maria"


def test_add_lead_rejects_unknown_product(store: SqliteStore) -> None:
    with pytest.raises(ValidationError):
        leads.add_lead(store, ACCOUNT, "Maria", "podcast")


def test_list_leads_filters_by_account_and_status(store: SqliteStore) -> None:
    leads.add_lead(store, ACCOUNT, "Ana", "consultoria")
    leads.add_lead(store, ACCOUNT, "Bia", "consultoria", status="negotiation")
    leads.add_lead(store, "other", "Caio", "consultoria")

    assert len(leads.list_leads(store, ACCOUNT)) == 2
    assert [lead.name for lead in leads.list_leads(store, ACCOUNT, status="negotiation")] == ["Bia"]


def test_status_change_outside_pipeline_is_applied_unless_enforced(store: SqliteStore) -> None:
    lead_id = leads.add_lead(store, ACCOUNT, "Ana", "consultoria")

    assert leads.update_status(store, lead_id, "won").status == "won"
    with pytest.raises(ValidationError):
        leads.update_status(store, lead_id, "negotiation", enforce=True)
    assert leads.get_lead(store, lead_id).status == "won"


def test_get_missing_lead(store: SqliteStore) -> None:
    with pytest.raises(leads.LeadError):
        leads.get_lead(store, "missing")


def test_log_interaction_touches_lead(store: SqliteStore) -> None:
    lead_id = leads.add_lead(store, ACCOUNT, "Ana", "consultoria", created_at="2024-01-01T00:00:00+00:00")
    occurred = datetime(2024, 1, 5, 10, tzinfo=UTC)

    interactions.log_interaction(store, lead_id, "meeting", "Kickoff", occurred_at=occurred)

    items = interactions.list_interactions(store, lead_id)
    assert [item.occurred_at for item in items] == [occurred]
    assert leads.get_lead(store, lead_id).updated_at > datetime(2024, 1, 1, tzinfo=UTC)


def test_log_interaction_for_missing_lead(store: SqliteStore) -> None:
    with pytest.raises(interactions.InteractionError):
        interactions.log_interaction(store, "missing", "call", "Hello")
    assert store.fetch_all("SELECT * FROM interactions") == []


def test_settings_are_created_with_defaults(store: SqliteStore) -> None:
    created = settings.get_or_create_settings(store, ACCOUNT)
    again = settings.get_or_create_settings(store, ACCOUNT)

    assert created.settings_id == again.settings_id
    assert created.days_without_interaction == 7
    assert created.notify_in_app is True
    assert created.notify_lead_whatsapp is False


def test_update_settings_only_touches_given_fields(store: SqliteStore) -> None:
    updated = settings.update_settings(
        store, ACCOUNT, days_without_interaction=3, personal_whatsapp="+55 27 98888-7777"
    )

    assert updated.days_without_interaction == 3
    assert updated.personal_whatsapp == "5527988887777"
    assert updated.notify_in_app is True


def test_update_settings_rejects_zero_threshold(store: SqliteStore) -> None:
    with pytest.raises(ValidationError):
        settings.update_settings(store, ACCOUNT, days_without_interaction=0)


def test_template_round_trip_and_toggle(store: SqliteStore) -> None:
    template_id = templates.add_template(
        store,
        ACCOUNT,
        "Proposal nudge",
        "Oi {nome}!",
        min_days=3,
        max_days=10,
        status_filter=["proposal_sent"],
        product_filter=["consultoria", "curso_idea"],
        priority=2,
    )

    [template] = templates.list_templates(store, ACCOUNT)
    assert template.template_id == template_id
    assert template.status_filter == ("proposal_sent",)
    assert template.product_filter == ("consultoria", "curso_idea")
    assert template.max_days == 10

    assert templates.set_active(store, template_id, False).is_active is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_days": -1},
        {"min_days": 5, "max_days": 2},
        {"status_filter": ["archived"]},
        {"product_filter": ["podcast"]},
    ],
)
def test_invalid_templates_are_rejected(store: SqliteStore, kwargs) -> None:
    with pytest.raises(ValidationError):
        templates.add_template(store, ACCOUNT, "Bad", "Oi", **kwargs)


def test_set_active_on_missing_template(store: SqliteStore) -> None:
    with pytest.raises(templates.TemplateError):
        templates.set_active(store, "missing", True)


def test_log_list_names_orphans_unknown(store: SqliteStore) -> None:
    lead_id = leads.add_lead(store, ACCOUNT, "Ana", "consultoria")
    insert = (
        "INSERT INTO follow_up_logs (log_id, account_id, lead_id, notification_type, status, sent_at) "
        "VALUES (?, ?, ?, 'in_app', 'sent', ?)"
    )
    store.execute(insert, ("log-1", ACCOUNT, lead_id, "2024-01-01T10:00:00+00:00"))
    store.execute(insert, ("log-2", ACCOUNT, "deleted-lead", "2024-01-02T10:00:00+00:00"))

    items = logs.list_logs(store, ACCOUNT)

    assert [(item.log_id, item.lead_name) for item in items] == [
        ("log-2", "Unknown lead"),
        ("log-1", "Ana"),
    ]
