from followops.domain.models import (
    FollowUpCandidate,
    FollowUpLog,
    FollowUpSettings,
    FollowUpTemplate,
    Interaction,
    Lead,
    Notification,
    Snapshot,
)
from followops.domain.rules import ValidationError

__all__ = [
    "FollowUpCandidate",
    "FollowUpLog",
    "FollowUpSettings",
    "FollowUpTemplate",
    "Interaction",
    "Lead",
    "Notification",
    "Snapshot",
    "ValidationError",
]
