from datetime import timedelta

from factories import T0, make_interaction, make_lead, make_log
from followops.followup.metrics import RECENT_LOGS, UNKNOWN_LEAD, compute_metrics

TODAY = (T0 + timedelta(days=6)).date()
WINDOW_START = T0


def _metrics(leads, interactions, logs, **kwargs):
    return compute_metrics(
        leads, interactions, logs, today=TODAY, window_start=WINDOW_START, **kwargs
    )


def test_interaction_after_follow_up_counts_as_response() -> None:
    lead = make_lead()
    sent_at = T0 + timedelta(days=2)
    logs = [make_log("lead-1", sent_at)]
    interactions = [make_interaction("lead-1", sent_at + timedelta(hours=1))]

    metrics = _metrics([lead], interactions, logs)

    assert metrics.total_sent == 1
    assert metrics.total_responded == 1
    assert metrics.response_rate == 1.0


def test_interaction_before_follow_up_is_not_a_response() -> None:
    lead = make_lead()
    sent_at = T0 + timedelta(days=2)
    logs = [make_log("lead-1", sent_at)]
    interactions = [make_interaction("lead-1", sent_at - timedelta(hours=1))]

    metrics = _metrics([lead], interactions, logs)

    assert metrics.total_responded == 0
    assert metrics.response_rate == 0.0


def test_rates_use_followed_up_leads_as_denominator() -> None:
    leads = [
        make_lead("a", status="won"),
        make_lead("b"),
        make_lead("c"),
        make_lead("d"),
    ]
    sent_at = T0 + timedelta(days=1)
    logs = [
        make_log("a", sent_at),
        make_log("a", sent_at, channel="whatsapp"),
        make_log("b", sent_at),
        make_log("c", sent_at, status="failed"),
    ]
    interactions = [make_interaction("b", sent_at + timedelta(days=1))]

    metrics = _metrics(leads, interactions, logs)

    assert metrics.total_sent == 3
    assert metrics.followed_up_lead_ids == frozenset({"a", "b"})
    assert metrics.response_rate == 0.5
    assert metrics.total_converted == 1
    assert metrics.conversion_rate == 0.5
    for rate in (metrics.response_rate, metrics.conversion_rate):
        assert 0.0 <= rate <= 1.0


def test_empty_data_yields_zero_rates() -> None:
    metrics = _metrics([], [], [])

    assert metrics.total_sent == 0
    assert metrics.response_rate == 0.0
    assert metrics.conversion_rate == 0.0
    assert metrics.by_channel == []
    assert metrics.recent_logs == []


def test_by_channel_counts_sends_and_responding_leads() -> None:
    leads = [make_lead("a"), make_lead("b")]
    sent_at = T0 + timedelta(days=1)
    logs = [
        make_log("a", sent_at, channel="in_app"),
        make_log("a", sent_at, channel="whatsapp"),
        make_log("b", sent_at, channel="in_app"),
    ]
    interactions = [make_interaction("a", sent_at + timedelta(hours=2))]

    metrics = _metrics(leads, interactions, logs)

    by_channel = {item.channel: item for item in metrics.by_channel}
    assert by_channel["in_app"].sent == 2
    assert by_channel["in_app"].responded == 1
    assert by_channel["whatsapp"].sent == 1
    assert by_channel["whatsapp"].responded == 1


def test_by_day_is_zero_filled_for_trailing_days() -> None:
    lead = make_lead()
    logs = [
        make_log("lead-1", T0 + timedelta(days=1, hours=3), log_id="one"),
        make_log("lead-1", T0 + timedelta(days=1, hours=5), log_id="two"),
        make_log("lead-1", T0 + timedelta(days=4), log_id="three"),
    ]

    metrics = _metrics([lead], [], logs, days=7)

    assert len(metrics.by_day) == 7
    assert metrics.by_day[0].day == T0.date()
    assert metrics.by_day[-1].day == TODAY
    assert [item.sent for item in metrics.by_day] == [0, 2, 0, 0, 1, 0, 0]


def test_logs_outside_window_are_ignored() -> None:
    lead = make_lead()
    logs = [make_log("lead-1", T0 - timedelta(days=3))]

    metrics = _metrics([lead], [], logs)

    assert metrics.total_sent == 0


def test_orphan_logs_are_excluded_but_listed_as_unknown() -> None:
    lead = make_lead()
    sent_at = T0 + timedelta(days=2)
    logs = [make_log("lead-1", sent_at), make_log("ghost", sent_at + timedelta(hours=1))]

    metrics = _metrics([lead], [], logs)

    assert metrics.total_sent == 1
    assert metrics.recent_logs[0].lead_name == UNKNOWN_LEAD
    assert metrics.recent_logs[1].lead_name == "Maria Silva"


def test_recent_logs_are_capped_and_newest_first() -> None:
    lead = make_lead()
    logs = [make_log("lead-1", T0 + timedelta(hours=i), log_id=f"log-{i}") for i in range(15)]

    metrics = _metrics([lead], [], logs)

    assert len(metrics.recent_logs) == RECENT_LOGS
    assert metrics.recent_logs[0].log_id == "log-14"
