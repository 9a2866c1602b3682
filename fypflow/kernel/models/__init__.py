"""
Kernel Data Models

SQLAlchemy models for projects, deadlines, submissions, marks and results.
"""

from fypflow.kernel.models.base import Base, TimestampMixin, UTCDateTime, generate_uuid
from fypflow.kernel.models.project import (
    CommitteeKind,
    CommitteeMember,
    DocumentType,
    Project,
    ProjectStatus,
)
from fypflow.kernel.models.deadline import (
    Deadline,
    DeadlineBatch,
    DeadlineSweepRecord,
    SweepOutcome,
)
from fypflow.kernel.models.submission import (
    EvaluationMark,
    Submission,
    SubmissionStatus,
    SupervisorMark,
)
from fypflow.kernel.models.final_result import FinalResult, ResultState
from fypflow.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "generate_uuid",
    # Project
    "Project",
    "ProjectStatus",
    "DocumentType",
    "CommitteeMember",
    "CommitteeKind",
    # Deadlines
    "DeadlineBatch",
    "Deadline",
    "DeadlineSweepRecord",
    "SweepOutcome",
    # Submissions
    "Submission",
    "SubmissionStatus",
    "SupervisorMark",
    "EvaluationMark",
    # Results
    "FinalResult",
    "ResultState",
    # Event Log
    "EventLog",
    "EventType",
]
