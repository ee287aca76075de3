from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime

from followops.domain.stages import LeadStatus


class ValidationError(ValueError):
    pass


# Intended pipeline. Not enforced unless followup.enforce_status_transitions is set.
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    LeadStatus.NEW.value: {
        LeadStatus.INITIAL_CONTACT.value,
        LeadStatus.LOST.value,
    },
    LeadStatus.INITIAL_CONTACT.value: {
        LeadStatus.NEGOTIATION.value,
        LeadStatus.PROPOSAL_SENT.value,
        LeadStatus.LOST.value,
    },
    LeadStatus.NEGOTIATION.value: {
        LeadStatus.PROPOSAL_SENT.value,
        LeadStatus.WON.value,
        LeadStatus.LOST.value,
    },
    LeadStatus.PROPOSAL_SENT.value: {
        LeadStatus.NEGOTIATION.value,
        LeadStatus.WON.value,
        LeadStatus.LOST.value,
    },
    LeadStatus.WON.value: set(),
    LeadStatus.LOST.value: {LeadStatus.NEW.value},
}


def require(value: str | None, field: str) -> None:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field} is required.")


def validate_enum(value: str | None, allowed: Iterable[str], field: str) -> None:
    if value is None:
        return
    allowed = list(allowed)
    if value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")


def validate_transition(current: str, new: str) -> None:
    if current == new:
        return
    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValidationError(f"status cannot move from {current} to {new}.")


def parse_date(value: str | None, field: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be YYYY-MM-DD.") from exc


def parse_datetime(value: str | None, field: str) -> datetime | None:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be ISO 8601.") from exc
    return as_utc(parsed)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
