from datetime import timedelta
from pathlib import Path

import pytest

from factories import ACCOUNT, T0, FakeSender
from followops.config import FollowUpConfig, StoreConfig, WorkspaceConfig
from followops.followup.engine import ConfigurationError
from followops.followup.runner import (
    account_metrics,
    check_followups,
    run_all_accounts,
    run_followups,
)
from followops.services.interactions import log_interaction
from followops.services.leads import add_lead, update_status
from followops.services.settings import get_or_create_settings, update_settings
from followops.services.templates import add_template

NOW = T0 + timedelta(days=10, hours=12)


def _config(store, **followup) -> WorkspaceConfig:
    return WorkspaceConfig(
        name="test",
        store=StoreConfig(sqlite_path=store.db_path),
        path=Path(store.db_path).parent,
        account_id=ACCOUNT,
        followup=FollowUpConfig(**followup),
    )


def _seed(store, account_id: str = ACCOUNT) -> dict[str, str]:
    created = T0.isoformat()
    ids = {
        "stale": add_lead(store, account_id, "Ana Paula", "consultoria", created_at=created),
        "fresh": add_lead(store, account_id, "Bruno Lima", "guia_ia", created_at=created),
        "won": add_lead(store, account_id, "Carla Dias", "consultoria", status="won", created_at=created),
    }
    log_interaction(store, ids["fresh"], "call", "Checked in", occurred_at=NOW - timedelta(days=2))
    add_template(store, account_id, "Default", "Oi {nome}, sobre {produto}: {dias} dias sem contato.")
    return ids


def test_missing_settings_raise_configuration_error(store) -> None:
    _seed(store)

    with pytest.raises(ConfigurationError):
        run_followups(store, _config(store), ACCOUNT, senders=[FakeSender()], now=NOW)
    with pytest.raises(ConfigurationError):
        check_followups(store, _config(store), ACCOUNT, now=NOW)


def test_check_lists_due_leads_without_sending(store) -> None:
    ids = _seed(store)
    get_or_create_settings(store, ACCOUNT)

    candidates = check_followups(store, _config(store), ACCOUNT, now=NOW)

    assert [c.lead.lead_id for c in candidates] == [ids["stale"]]
    assert candidates[0].rendered_message == "Oi Ana, sobre Consultoria IDEA: 10 dias sem contato."
    assert store.fetch_all("SELECT * FROM follow_up_logs") == []


def test_run_creates_in_app_notification_and_log(store) -> None:
    ids = _seed(store)
    get_or_create_settings(store, ACCOUNT)

    report = run_followups(store, _config(store, max_workers=2), ACCOUNT, now=NOW)

    assert report.evaluated_leads == 3
    assert report.dispatch.sent == 1
    notifications = store.fetch_all("SELECT * FROM notifications")
    assert len(notifications) == 1
    assert notifications[0]["lead_id"] == ids["stale"]
    assert notifications[0]["title"] == "Follow-up needed: Ana Paula"
    logs = store.fetch_all("SELECT * FROM follow_up_logs")
    assert [(row["lead_id"], row["notification_type"], row["status"]) for row in logs] == [
        (ids["stale"], "in_app", "sent")
    ]

    again = run_followups(store, _config(store), ACCOUNT, now=NOW + timedelta(hours=2))
    assert again.dispatch.sent == 0
    assert again.dispatch.skipped_duplicate == 1
    assert len(store.fetch_all("SELECT * FROM notifications")) == 1


def test_disabled_channels_send_nothing(store) -> None:
    _seed(store)
    update_settings(store, ACCOUNT, notify_in_app=False, notify_whatsapp=False)

    report = run_followups(store, _config(store), ACCOUNT, now=NOW)

    assert len(report.candidates) == 1
    assert report.dispatch.outcomes == []


def test_run_all_accounts_covers_every_configured_account(store) -> None:
    _seed(store, ACCOUNT)
    _seed(store, "acct-2")
    _seed(store, "acct-unconfigured")
    get_or_create_settings(store, ACCOUNT)
    get_or_create_settings(store, "acct-2")

    reports = run_all_accounts(store, _config(store))

    assert sorted(report.account_id for report in reports) == [ACCOUNT, "acct-2"]


def test_account_metrics_reflect_response_and_conversion(store) -> None:
    ids = _seed(store)
    get_or_create_settings(store, ACCOUNT)
    config = _config(store)
    run_followups(store, config, ACCOUNT, now=NOW)

    log_interaction(store, ids["stale"], "whatsapp", "Replied", occurred_at=NOW + timedelta(hours=3))
    update_status(store, ids["stale"], "won")
    metrics = account_metrics(store, config, ACCOUNT, days=7, now=NOW + timedelta(days=1))

    assert metrics.total_sent == 1
    assert metrics.response_rate == 1.0
    assert metrics.conversion_rate == 1.0
    assert len(metrics.by_day) == 7
    assert metrics.by_day[-2].sent == 1
