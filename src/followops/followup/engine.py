"""
Follow-up rule evaluation.

Pure and synchronous: works on an in-memory snapshot, never touches the
store. A lead is due when the days since its last activity (latest
interaction, or creation when it has none) reach the account threshold.
Each due lead gets at most one template: lowest priority value first, then
the most recently updated, then template id.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from followops.domain.models import (
    FollowUpCandidate,
    FollowUpSettings,
    FollowUpTemplate,
    Interaction,
    Lead,
)
from followops.domain.rules import as_utc
from followops.domain.stages import LeadStatus
from followops.followup.render import render_for_lead

logger = logging.getLogger(__name__)

DEFAULT_CLOSED_STATUSES = (LeadStatus.WON.value, LeadStatus.LOST.value)
ONE_DAY = timedelta(days=1)


class ConfigurationError(RuntimeError):
    pass


def last_activity(lead: Lead, last_interaction: datetime | None) -> datetime:
    if last_interaction is None:
        return lead.created_at
    return max(last_interaction, lead.created_at)


def days_since(reference: datetime, now: datetime) -> int:
    return (as_utc(now) - as_utc(reference)) // ONE_DAY


def latest_interactions(interactions: Iterable[Interaction]) -> dict[str, datetime]:
    latest: dict[str, datetime] = {}
    for interaction in interactions:
        current = latest.get(interaction.lead_id)
        if current is None or interaction.occurred_at > current:
            latest[interaction.lead_id] = interaction.occurred_at
    return latest


def template_matches(template: FollowUpTemplate, lead: Lead, days: int) -> bool:
    if not template.is_active:
        return False
    if template.status_filter and lead.status not in template.status_filter:
        return False
    if template.product_filter and lead.product not in template.product_filter:
        return False
    if days < template.min_days:
        return False
    if template.max_days is not None and days > template.max_days:
        return False
    return True


def select_template(
    templates: Sequence[FollowUpTemplate], lead: Lead, days: int
) -> FollowUpTemplate | None:
    matching = [t for t in templates if template_matches(t, lead, days)]
    if not matching:
        return None
    # Lowest priority wins; ties go to the most recently updated template.
    matching.sort(key=lambda t: (t.priority, -t.updated_at.timestamp(), t.template_id))
    return matching[0]


def evaluate(
    leads: Iterable[Lead],
    interactions: Iterable[Interaction],
    settings: FollowUpSettings | None,
    templates: Sequence[FollowUpTemplate],
    now: datetime,
    closed_statuses: Iterable[str] = DEFAULT_CLOSED_STATUSES,
) -> list[FollowUpCandidate]:
    if settings is None:
        raise ConfigurationError("Follow-up settings are missing for this account.")
    threshold = settings.days_without_interaction
    closed = set(closed_statuses)
    latest = latest_interactions(interactions)

    candidates: list[FollowUpCandidate] = []
    for lead in leads:
        if lead.status in closed:
            continue
        days = days_since(last_activity(lead, latest.get(lead.lead_id)), now)
        if days < threshold:
            continue
        template = select_template(templates, lead, days)
        if template is None:
            logger.debug("Lead %s is due (%d days) but no template matches", lead.lead_id, days)
            continue
        candidates.append(
            FollowUpCandidate(
                lead=lead,
                template=template,
                days_since=days,
                rendered_message=render_for_lead(template.message_template, lead, days),
            )
        )

    logger.info("Evaluated follow-ups: %d due with a matching template", len(candidates))
    return candidates
