"""
Audit log and notification intents.
"""

from fypflow.kernel.events.event_store import EventStore
from fypflow.kernel.events.event_types import (
    EmailTemplate,
    NotificationIntent,
    NotificationType,
    PendingEmail,
    PendingNotification,
    RecipientRole,
    intent,
)

__all__ = [
    "EventStore",
    "EmailTemplate",
    "NotificationIntent",
    "NotificationType",
    "PendingEmail",
    "PendingNotification",
    "RecipientRole",
    "intent",
]
