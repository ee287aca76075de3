"""
Notification dispatch for follow-up candidates.

Per lead: skip when any channel already has a successful send in the dedup
window, otherwise fan out to every channel, appending one FollowUpLog row
per attempt. A failing lead or channel never stops the rest of the batch.
"""
from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import uuid4

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from followops.adapters.channels import ChannelSender, OperatorAlerter, SendResult
from followops.domain.models import FollowUpCandidate, FollowUpLog
from followops.domain.stages import DedupWindow, LogStatus
from followops.services.events import EventLogger
from followops.services.utils import utc_now
from followops.store.repository import has_sent_log, insert_log
from followops.store.sqlite import SqliteStore

logger = logging.getLogger(__name__)

SENT = "sent"
FAILED = "failed"
SKIPPED_DUPLICATE = "skipped_duplicate"
SKIPPED_DEADLINE = "skipped_deadline"
ABANDONED = "abandoned"
UNLOGGED = "unlogged"


class PersistenceError(RuntimeError):
    pass


@dataclass(frozen=True)
class LeadOutcome:
    lead_id: str
    channel: str | None
    outcome: str
    error: str | None = None


@dataclass
class DispatchReport:
    outcomes: list[LeadOutcome] = field(default_factory=list)

    def count(self, outcome: str) -> int:
        return sum(1 for item in self.outcomes if item.outcome == outcome)

    @property
    def sent(self) -> int:
        return self.count(SENT)

    @property
    def failed(self) -> int:
        return self.count(FAILED)

    @property
    def skipped_duplicate(self) -> int:
        return self.count(SKIPPED_DUPLICATE)

    @property
    def skipped_deadline(self) -> int:
        return self.count(SKIPPED_DEADLINE)

    @property
    def abandoned(self) -> int:
        return self.count(ABANDONED)

    @property
    def unlogged(self) -> int:
        return self.count(UNLOGGED)

    def summary(self) -> dict[str, int]:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "skipped_duplicate": self.skipped_duplicate,
            "skipped_deadline": self.skipped_deadline,
            "abandoned": self.abandoned,
            "unlogged": self.unlogged,
        }


def dedup_window(now: datetime, policy: str) -> tuple[datetime, datetime | None]:
    if policy == DedupWindow.ROLLING_24H.value:
        return now - timedelta(hours=24), None
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


class Dispatcher:
    def __init__(
        self,
        store: SqliteStore,
        senders: Sequence[ChannelSender],
        *,
        clock: Callable[[], datetime] = utc_now,
        dedup_policy: str = DedupWindow.CALENDAR_DAY.value,
        max_workers: int = 4,
        log_write_attempts: int = 3,
        retry_wait=None,
        events: EventLogger | None = None,
        alerter: OperatorAlerter | None = None,
    ) -> None:
        self.store = store
        self.senders = list(senders)
        self.clock = clock
        self.dedup_policy = dedup_policy
        self.max_workers = max(1, max_workers)
        self.log_write_attempts = max(1, log_write_attempts)
        self.retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=8)
        self.events = events
        self.alerter = alerter or OperatorAlerter()

    def dispatch(
        self, candidates: Sequence[FollowUpCandidate], deadline: float | None = None
    ) -> DispatchReport:
        """Deliver every candidate; ``deadline`` is a budget in seconds for the whole batch."""
        report = DispatchReport()
        if not candidates:
            return report
        if not self.senders:
            logger.warning("No follow-up channels are enabled; nothing to dispatch")
            return report

        deadline_at = time.monotonic() + deadline if deadline is not None else None
        if self.max_workers == 1:
            for candidate in candidates:
                report.outcomes.extend(self._process(candidate, deadline_at))
        else:
            report.outcomes.extend(self._dispatch_parallel(candidates, deadline_at))

        logger.info("Dispatch finished: %s", report.summary())
        return report

    def _dispatch_parallel(
        self, candidates: Sequence[FollowUpCandidate], deadline_at: float | None
    ) -> list[LeadOutcome]:
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="followup")
        futures: list[Future] = [
            executor.submit(self._process, candidate, deadline_at) for candidate in candidates
        ]
        timeout = max(0.0, deadline_at - time.monotonic()) if deadline_at is not None else None
        try:
            done, _ = wait(futures, timeout=timeout, return_when=FIRST_EXCEPTION)
            for future in done:
                if future.exception() is not None:
                    raise future.exception()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        outcomes: list[LeadOutcome] = []
        for candidate, future in zip(candidates, futures):
            if future in done:
                outcomes.extend(future.result())
            elif future.cancelled():
                outcomes.append(self._record(LeadOutcome(candidate.lead.lead_id, None, SKIPPED_DEADLINE)))
            else:
                logger.warning("Deadline reached while lead %s was in flight", candidate.lead.lead_id)
                outcomes.append(self._record(LeadOutcome(candidate.lead.lead_id, None, ABANDONED)))
        return outcomes

    def _process(self, candidate: FollowUpCandidate, deadline_at: float | None) -> list[LeadOutcome]:
        lead = candidate.lead
        if deadline_at is not None and time.monotonic() >= deadline_at:
            return [self._record(LeadOutcome(lead.lead_id, None, SKIPPED_DEADLINE))]

        since, until = dedup_window(self.clock(), self.dedup_policy)
        if has_sent_log(self.store, lead.lead_id, since, until):
            logger.debug("Lead %s already followed up in this window", lead.lead_id)
            return [self._record(LeadOutcome(lead.lead_id, None, SKIPPED_DUPLICATE))]

        outcomes: list[LeadOutcome] = []
        for sender in self.senders:
            try:
                result = sender.send(lead, candidate.rendered_message)
            except Exception as exc:
                logger.error(
                    "Channel %s raised while sending to lead %s", sender.channel, lead.lead_id, exc_info=True
                )
                result = SendResult.failure(str(exc) or exc.__class__.__name__)

            log = FollowUpLog(
                log_id=str(uuid4()),
                account_id=lead.account_id,
                lead_id=lead.lead_id,
                notification_type=sender.channel,
                status=LogStatus.SENT.value if result.ok else LogStatus.FAILED.value,
                error_message=result.error,
                sent_at=self.clock(),
            )
            try:
                self._write_log(log)
            except PersistenceError as exc:
                self.alerter.alert(
                    f"Follow-up log for lead {lead.lead_id} on {sender.channel} was not saved: {exc}"
                )
                outcomes.append(self._record(LeadOutcome(lead.lead_id, sender.channel, UNLOGGED, str(exc))))
                continue

            outcome = SENT if result.ok else FAILED
            outcomes.append(self._record(LeadOutcome(lead.lead_id, sender.channel, outcome, result.error)))
        return outcomes

    def _write_log(self, log: FollowUpLog) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self.log_write_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(sqlite3.OperationalError),
            reraise=True,
        )
        try:
            retrying(insert_log, self.store, log)
        except sqlite3.OperationalError as exc:
            raise PersistenceError(str(exc)) from exc

    def _record(self, outcome: LeadOutcome) -> LeadOutcome:
        if outcome.outcome == FAILED:
            logger.warning(
                "Follow-up to lead %s on %s failed: %s", outcome.lead_id, outcome.channel, outcome.error
            )
        elif outcome.outcome == SENT:
            logger.info("Follow-up sent to lead %s on %s", outcome.lead_id, outcome.channel)
        if self.events is not None:
            self.events.log(
                event_type=f"followup.{outcome.outcome}",
                lead_id=outcome.lead_id,
                channel=outcome.channel,
                detail=outcome.error,
            )
        return outcome
