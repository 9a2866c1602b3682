"""
Kernel Layer

Foundational components the workflow engines build on:
- Data models (projects, deadlines, submissions, marks, results)
- Immutable Event Log (every mutation logged in its own transaction)
- Keyed lock table (per-pair and per-submission serialization)
- Repository functions (explicit relation loading)

Invariants:
- Audit events are written in the same transaction as the mutation
- Versions per (project, document type) are 1..N without gaps
- At most one final submission per (project, document type)
"""

from fypflow.kernel.models import (
    DocumentType,
    EventLog,
    EventType,
    FinalResult,
    Project,
    ProjectStatus,
    Submission,
    SubmissionStatus,
)

__all__ = [
    "DocumentType",
    "EventLog",
    "EventType",
    "FinalResult",
    "Project",
    "ProjectStatus",
    "Submission",
    "SubmissionStatus",
]
