"""
Immutable event log for audit trail.

Every state mutation is logged here in the same transaction as the mutation.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from fypflow.kernel.models.base import Base, UTCDateTime, generate_uuid


class EventType(str, Enum):
    """All event types for the audit log."""

    # Submission events
    SUBMISSION_CREATED = "submission.created"
    SUBMISSION_STATUS_CHANGED = "submission.status_changed"
    SUBMISSION_MARKED_FINAL = "submission.marked_final"
    SUBMISSION_AUTO_LOCKED = "submission.auto_locked"
    SUPERVISOR_MARKS_SAVED = "submission.supervisor_marks_saved"

    # Evaluation events
    EVALUATION_MARK_SAVED = "evaluation.mark_saved"
    EVALUATION_MARK_FINALIZED = "evaluation.mark_finalized"

    # Deadline events
    DEADLINE_MISSED = "deadline.missed"
    DEADLINE_PROCESSED = "deadline.processed"

    # Result events
    RESULT_COMPUTED = "result.computed"
    RESULT_RELEASED = "result.released"


class EventLog(Base):
    """
    Append-only audit entry.

    user_id is None for system actors (the deadline sweep).
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_type", "event_type"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"
