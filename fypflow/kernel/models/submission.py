"""
Submission model - one uploaded version of a required document.

Submission.status is authoritative for review and evaluation. Valid
transitions live in fypflow.orchestration.state_machine.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, Index, Integer, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fypflow.kernel.models.base import Base, TimestampMixin, generate_uuid


class SubmissionStatus(str, Enum):
    """Lifecycle state of a document submission."""

    PENDING_SUPERVISOR = "PENDING_SUPERVISOR"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    APPROVED_BY_SUPERVISOR = "APPROVED_BY_SUPERVISOR"
    LOCKED_FOR_EVAL = "LOCKED_FOR_EVAL"
    EVAL_IN_PROGRESS = "EVAL_IN_PROGRESS"
    EVAL_FINALIZED = "EVAL_FINALIZED"

    @property
    def is_locked(self) -> bool:
        """Locked submissions are visible to the committee and closed to review."""
        return self in (
            SubmissionStatus.LOCKED_FOR_EVAL,
            SubmissionStatus.EVAL_IN_PROGRESS,
            SubmissionStatus.EVAL_FINALIZED,
        )


class Submission(Base):
    """
    A versioned document submission.

    Versions per (project, document type) run 1..N without gaps. At most one
    submission per pair carries is_final.
    """

    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    document_type_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("document_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    file_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[SubmissionStatus] = mapped_column(
        SAEnum(SubmissionStatus, native_enum=False, length=40),
        default=SubmissionStatus.PENDING_SUPERVISOR,
        nullable=False,
    )
    is_final: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    supervisor_reviewed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "project_id", "document_type_id", "version",
            name="uq_submissions_project_doc_version",
        ),
        Index("ix_submissions_project_doc", "project_id", "document_type_id"),
        Index("ix_submissions_status", "status"),
    )

    @property
    def is_locked(self) -> bool:
        return self.status.is_locked

    def append_comment(self, text: str) -> None:
        self.comments = f"{self.comments}\n\n{text}" if self.comments else text

    def __repr__(self) -> str:
        return f"<Submission v{self.version} {self.status.value}>"


class SupervisorMark(Base, TimestampMixin):
    """The supervisor's score for a submission (one per submission)."""

    __tablename__ = "supervisor_marks"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    submission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("submissions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    supervisor_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    score: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class EvaluationMark(Base, TimestampMixin):
    """One evaluator's mark for a submission; immutable once final."""

    __tablename__ = "evaluation_marks"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    submission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    evaluator_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    score: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_final: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    finalized_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("submission_id", "evaluator_id", name="uq_evaluation_marks_submission_evaluator"),
    )
