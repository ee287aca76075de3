from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Lead:
    lead_id: str
    account_id: str
    name: str
    email: str | None
    phone: str | None
    product: str
    status: str
    notes: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def first_name(self) -> str:
        parts = self.name.split()
        return parts[0] if parts else ""


@dataclass(frozen=True)
class Interaction:
    interaction_id: str
    lead_id: str
    occurred_at: datetime
    kind: str
    description: str
    created_at: datetime


@dataclass(frozen=True)
class FollowUpSettings:
    settings_id: str
    account_id: str
    days_without_interaction: int
    notify_in_app: bool
    notify_whatsapp: bool
    notify_lead_whatsapp: bool
    whatsapp_subscriber_id: str | None
    personal_whatsapp: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class FollowUpTemplate:
    template_id: str
    account_id: str
    name: str
    description: str | None
    min_days: int
    max_days: int | None
    status_filter: tuple[str, ...]
    product_filter: tuple[str, ...]
    message_template: str
    priority: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class FollowUpLog:
    log_id: str
    account_id: str
    lead_id: str
    notification_type: str
    status: str
    error_message: str | None
    sent_at: datetime


@dataclass(frozen=True)
class FollowUpCandidate:
    lead: Lead
    template: FollowUpTemplate
    days_since: int
    rendered_message: str


@dataclass(frozen=True)
class Notification:
    notification_id: str
    account_id: str
    lead_id: str | None
    title: str
    message: str
    kind: str
    is_read: bool
    created_at: datetime


@dataclass
class Snapshot:
    """In-memory view of one account, loaded once per batch run."""

    settings: FollowUpSettings | None
    leads: list[Lead] = field(default_factory=list)
    interactions: list[Interaction] = field(default_factory=list)
    templates: list[FollowUpTemplate] = field(default_factory=list)
