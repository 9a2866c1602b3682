"""
Common schema types used across the API.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    database: str = "connected"


class SweepFailure(BaseModel):
    deadline_id: uuid.UUID
    project_id: uuid.UUID
    error: str


class SweepReport(BaseModel):
    """What one deadline sweep run did."""

    run_id: str
    started_at: datetime
    deadlines_checked: int = 0
    locked: int = 0
    already_locked: int = 0
    missed: int = 0
    skipped: int = 0
    deadlines_closed: int = 0
    failures: List[SweepFailure] = Field(default_factory=list)
