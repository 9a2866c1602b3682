"""Submission schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from fypflow.kernel.models.submission import SubmissionStatus


class SubmissionCreate(BaseModel):
    """Upload a new version of a document."""

    project_id: uuid.UUID
    document_type_id: uuid.UUID
    file_id: Optional[str] = Field(None, max_length=500)
    comments: Optional[str] = None


class SupervisorReview(BaseModel):
    """Supervisor approves or requests a revision."""

    approve: bool
    feedback: Optional[str] = None
    marks: Optional[Decimal] = Field(None, ge=0, le=100)


class FileRefResponse(BaseModel):
    url: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SubmissionView(BaseModel):
    """Submission with its deadline-derived flags and resolved file."""

    id: uuid.UUID
    project_id: uuid.UUID
    document_type_id: uuid.UUID
    document_type_code: Optional[str] = None
    document_type_title: Optional[str] = None
    version: int
    file: Optional[FileRefResponse] = None
    uploaded_by: Optional[uuid.UUID] = None
    uploaded_at: datetime
    status: SubmissionStatus
    status_display: str
    is_final: bool
    supervisor_reviewed_at: Optional[datetime] = None
    comments: Optional[str] = None
    can_edit: bool
    can_mark_final: bool
    is_locked: bool
    deadline: Optional[datetime] = None
    is_late: bool = False
    deadline_passed: bool = False
