"""
Notification intent definitions using Pydantic for validation.

A transition decision carries intents (who should hear about it, and what
kind of message). Intents are resolved to concrete user ids inside the
transaction and delivered after commit.
"""

import uuid
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationType(str, Enum):
    """Kinds of in-app notification emitted by the workflow."""

    SUBMISSION_UPLOADED = "SUBMISSION_UPLOADED"
    SUBMISSION_REVISION_REQUESTED = "SUBMISSION_REVISION_REQUESTED"
    SUBMISSION_APPROVED = "SUBMISSION_APPROVED"
    SUBMISSION_LOCKED = "SUBMISSION_LOCKED"
    EVALUATION_STARTED = "EVALUATION_STARTED"
    EVALUATION_MARK_FINALIZED = "EVALUATION_MARK_FINALIZED"
    EVALUATION_FINALIZED = "EVALUATION_FINALIZED"
    RESULT_RELEASED = "RESULT_RELEASED"
    DEADLINE_PASSED = "DEADLINE_PASSED"


class RecipientRole(str, Enum):
    """Role-targeted recipient sets."""

    SUPERVISOR = "supervisor"
    GROUP_LEADER = "group_leader"
    GROUP_MEMBERS = "group_members"
    EVALUATION_COMMITTEE = "evaluation_committee"
    FYP_COMMITTEE = "fyp_committee"


class EmailTemplate(str, Enum):
    """Templates rendered by the email collaborator."""

    SUBMISSION_UPLOADED = "submission_uploaded"
    REVISION_REQUESTED = "revision_requested"
    DOCUMENT_LOCKED = "document_locked"
    RESULT_RELEASED = "result_released"


class NotificationIntent(BaseModel):
    """What a transition wants to tell, to whom. Payload is filled by the service."""

    model_config = ConfigDict(frozen=True)

    event_type: NotificationType
    recipients: FrozenSet[RecipientRole]
    email_template: Optional[EmailTemplate] = None
    email_recipients: FrozenSet[RecipientRole] = frozenset()


class PendingNotification(BaseModel):
    """A resolved in-app notification waiting for commit."""

    user_ids: List[uuid.UUID]
    event_type: NotificationType
    payload: Dict[str, Any] = Field(default_factory=dict)


class PendingEmail(BaseModel):
    """A resolved email waiting for commit."""

    recipients: List[uuid.UUID]
    template: EmailTemplate
    data: Dict[str, Any] = Field(default_factory=dict)


def intent(
    event_type: NotificationType,
    *recipients: RecipientRole,
    email: Optional[EmailTemplate] = None,
    email_to: tuple = (),
) -> NotificationIntent:
    """Shorthand used by the transition tables."""
    return NotificationIntent(
        event_type=event_type,
        recipients=frozenset(recipients),
        email_template=email,
        email_recipients=frozenset(email_to or (recipients if email else ())),
    )
