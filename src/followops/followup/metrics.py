"""
Follow-up response and conversion metrics.

Everything here is recomputed from logs, interactions and leads; nothing
is written back. Rows that do not join (a log or interaction for a lead
that no longer exists) are left out of every figure.
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from followops.domain.models import FollowUpLog, Interaction, Lead
from followops.domain.rules import as_utc
from followops.domain.stages import LeadStatus, LogStatus

UNKNOWN_LEAD = "Unknown lead"
RECENT_LOGS = 10


@dataclass(frozen=True)
class ChannelMetrics:
    channel: str
    sent: int
    responded: int


@dataclass(frozen=True)
class DayMetrics:
    day: date
    sent: int


@dataclass(frozen=True)
class RecentLog:
    log_id: str
    lead_name: str
    notification_type: str
    status: str
    sent_at: datetime


@dataclass
class FollowUpMetrics:
    total_sent: int = 0
    total_responded: int = 0
    total_converted: int = 0
    response_rate: float = 0.0
    conversion_rate: float = 0.0
    followed_up_lead_ids: frozenset[str] = frozenset()
    by_channel: list[ChannelMetrics] = field(default_factory=list)
    by_day: list[DayMetrics] = field(default_factory=list)
    recent_logs: list[RecentLog] = field(default_factory=list)


def _rate(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def compute_metrics(
    leads: Iterable[Lead],
    interactions: Iterable[Interaction],
    logs: Iterable[FollowUpLog],
    *,
    today: date,
    window_start: datetime | None = None,
    window_end: datetime | None = None,
    won_status: str = LeadStatus.WON.value,
    days: int = 7,
) -> FollowUpMetrics:
    lead_map = {lead.lead_id: lead for lead in leads}
    start = as_utc(window_start) if window_start is not None else None
    end = as_utc(window_end) if window_end is not None else None

    all_logs = list(logs)
    known_logs = [log for log in all_logs if log.lead_id in lead_map]
    in_window = [
        log
        for log in known_logs
        if (start is None or log.sent_at >= start) and (end is None or log.sent_at < end)
    ]
    sent_logs = [log for log in in_window if log.status == LogStatus.SENT.value]

    sent_at_by_lead: dict[str, list[datetime]] = defaultdict(list)
    for log in sent_logs:
        sent_at_by_lead[log.lead_id].append(log.sent_at)
    followed_up = frozenset(sent_at_by_lead)

    interactions_by_lead: dict[str, list[datetime]] = defaultdict(list)
    for interaction in interactions:
        if interaction.lead_id in followed_up:
            interactions_by_lead[interaction.lead_id].append(interaction.occurred_at)

    # Any interaction after the earliest follow-up counts as a response.
    responded = {
        lead_id
        for lead_id, sent_times in sent_at_by_lead.items()
        if any(ts > min(sent_times) for ts in interactions_by_lead.get(lead_id, ()))
    }
    converted = {lead_id for lead_id in followed_up if lead_map[lead_id].status == won_status}

    return FollowUpMetrics(
        total_sent=len(sent_logs),
        total_responded=len(responded),
        total_converted=len(converted),
        response_rate=_rate(len(responded), len(followed_up)),
        conversion_rate=_rate(len(converted), len(followed_up)),
        followed_up_lead_ids=followed_up,
        by_channel=_by_channel(sent_logs, responded),
        by_day=_by_day(sent_logs, today, days),
        recent_logs=_recent(all_logs, lead_map),
    )


def _by_channel(sent_logs: list[FollowUpLog], responded: set[str]) -> list[ChannelMetrics]:
    sent: dict[str, int] = defaultdict(int)
    responded_leads: dict[str, set[str]] = defaultdict(set)
    for log in sent_logs:
        channel = log.notification_type or "unknown"
        sent[channel] += 1
        if log.lead_id in responded:
            responded_leads[channel].add(log.lead_id)
    return [
        ChannelMetrics(channel=channel, sent=count, responded=len(responded_leads[channel]))
        for channel, count in sorted(sent.items())
    ]


def _by_day(sent_logs: list[FollowUpLog], today: date, days: int) -> list[DayMetrics]:
    counts: dict[date, int] = defaultdict(int)
    for log in sent_logs:
        counts[log.sent_at.date()] += 1
    first = today - timedelta(days=days - 1)
    return [
        DayMetrics(day=first + timedelta(days=offset), sent=counts.get(first + timedelta(days=offset), 0))
        for offset in range(days)
    ]


def _recent(logs: list[FollowUpLog], lead_map: dict[str, Lead]) -> list[RecentLog]:
    latest = sorted(logs, key=lambda log: log.sent_at, reverse=True)[:RECENT_LOGS]
    return [
        RecentLog(
            log_id=log.log_id,
            lead_name=lead_map[log.lead_id].name if log.lead_id in lead_map else UNKNOWN_LEAD,
            notification_type=log.notification_type,
            status=log.status,
            sent_at=log.sent_at,
        )
        for log in latest
    ]
