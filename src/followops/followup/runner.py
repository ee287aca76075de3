"""Batch entry points invoked by the scheduler and the CLI."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from followops.adapters.channels import ChannelSender, OperatorAlerter, build_senders
from followops.config import WorkspaceConfig
from followops.domain.models import FollowUpCandidate
from followops.followup.dispatcher import DispatchReport, Dispatcher
from followops.followup.engine import ConfigurationError, evaluate
from followops.followup.metrics import FollowUpMetrics, compute_metrics
from followops.services.events import EventLogger
from followops.services.utils import utc_now
from followops.store.repository import (
    fetch_interactions,
    fetch_leads,
    fetch_logs,
    list_accounts_with_settings,
    load_snapshot,
)
from followops.store.sqlite import SqliteStore

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    account_id: str
    evaluated_leads: int
    candidates: list[FollowUpCandidate] = field(default_factory=list)
    dispatch: DispatchReport = field(default_factory=DispatchReport)


def check_followups(
    store: SqliteStore, config: WorkspaceConfig, account_id: str, now: datetime | None = None
) -> list[FollowUpCandidate]:
    """Evaluate without sending anything."""
    snapshot = load_snapshot(store, account_id)
    if snapshot.settings is None:
        raise ConfigurationError(f"Follow-up settings are missing for account {account_id}.")
    return evaluate(
        snapshot.leads,
        snapshot.interactions,
        snapshot.settings,
        snapshot.templates,
        now or utc_now(),
        closed_statuses=config.followup.closed_statuses,
    )


def run_followups(
    store: SqliteStore,
    config: WorkspaceConfig,
    account_id: str,
    *,
    senders: Sequence[ChannelSender] | None = None,
    now: datetime | None = None,
    events: EventLogger | None = None,
    alerter: OperatorAlerter | None = None,
) -> RunReport:
    snapshot = load_snapshot(store, account_id)
    if snapshot.settings is None:
        raise ConfigurationError(f"Follow-up settings are missing for account {account_id}.")
    settings = snapshot.settings
    clock = (lambda: now) if now is not None else utc_now
    now = now or utc_now()

    candidates = evaluate(
        snapshot.leads,
        snapshot.interactions,
        settings,
        snapshot.templates,
        now,
        closed_statuses=config.followup.closed_statuses,
    )
    if senders is None:
        senders = build_senders(settings, config.channels, store)
    if alerter is None:
        alerter = OperatorAlerter.from_settings(settings, config.channels)

    dispatcher = Dispatcher(
        store,
        senders,
        clock=clock,
        dedup_policy=config.followup.dedup_window,
        max_workers=config.followup.max_workers,
        log_write_attempts=config.followup.log_write_attempts,
        events=events,
        alerter=alerter,
    )
    dispatch = dispatcher.dispatch(candidates, deadline=config.followup.deadline_seconds)
    if dispatch.failed or dispatch.unlogged:
        logger.warning(
            "Follow-up run for %s finished with %d failed and %d unlogged deliveries",
            account_id,
            dispatch.failed,
            dispatch.unlogged,
        )
    return RunReport(
        account_id=account_id,
        evaluated_leads=len(snapshot.leads),
        candidates=candidates,
        dispatch=dispatch,
    )


def run_all_accounts(
    store: SqliteStore, config: WorkspaceConfig, events: EventLogger | None = None
) -> list[RunReport]:
    reports = []
    for account_id in list_accounts_with_settings(store):
        logger.info("Running follow-ups for account %s", account_id)
        reports.append(run_followups(store, config, account_id, events=events))
    return reports


def account_metrics(
    store: SqliteStore,
    config: WorkspaceConfig,
    account_id: str,
    days: int | None = None,
    now: datetime | None = None,
) -> FollowUpMetrics:
    days = days or config.followup.metrics_days
    now = now or utc_now()
    today = now.date()
    window_start = datetime.combine(today - timedelta(days=days - 1), datetime.min.time(), now.tzinfo)
    return compute_metrics(
        fetch_leads(store, account_id),
        fetch_interactions(store, account_id),
        fetch_logs(store, account_id, since=window_start),
        today=today,
        window_start=window_start,
        won_status=config.followup.won_status,
        days=days,
    )
