"""
Deadline batches, per-document-type deadlines and the sweep ledger.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fypflow.kernel.models.base import Base, TimestampMixin, generate_uuid


class DeadlineBatch(Base, TimestampMixin):
    """
    A named set of per-document-type due dates applied to projects
    approved within [applies_from, applies_until).
    """

    __tablename__ = "deadline_batches"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    applies_from: Mapped[datetime] = mapped_column(nullable=False)
    applies_until: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Deadline(Base, TimestampMixin):
    """Due date of one document type within a batch."""

    __tablename__ = "deadlines"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    batch_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("deadline_batches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("document_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    due_at: Mapped[datetime] = mapped_column(nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Set once every project in the batch reached a terminal sweep outcome
    locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("batch_id", "document_type_id", name="uq_deadlines_batch_doc_type"),
        Index("ix_deadlines_due_locked", "due_at", "locked"),
    )

    def is_past(self, now: datetime) -> bool:
        return now >= self.due_at


class SweepOutcome(str, Enum):
    """What the deadline sweep did for one (deadline, project) pair."""

    LOCKED = "LOCKED"
    ALREADY_LOCKED = "ALREADY_LOCKED"
    MISSED = "MISSED"

    @property
    def is_terminal(self) -> bool:
        return self is not SweepOutcome.MISSED


class DeadlineSweepRecord(Base):
    """Exactly-once ledger entry for a processed (deadline, project) pair."""

    __tablename__ = "deadline_sweep_records"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    deadline_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("deadlines.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    outcome: Mapped[SweepOutcome] = mapped_column(
        SAEnum(SweepOutcome, native_enum=False, length=20),
        nullable=False,
    )
    submission_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    processed_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("deadline_id", "project_id", name="uq_sweep_records_deadline_project"),
    )
