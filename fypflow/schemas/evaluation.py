"""Evaluation schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EvaluationMarkCreate(BaseModel):
    """Record (or update a draft of) an evaluator's mark."""

    score: Decimal = Field(..., ge=0, le=100)
    comments: Optional[str] = None
    finalize: bool = False


class EvaluationMarkResponse(BaseModel):
    """One evaluator's mark."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    submission_id: uuid.UUID
    evaluator_id: uuid.UUID
    score: Decimal
    comments: Optional[str] = None
    is_final: bool
    finalized_at: Optional[datetime] = None


class EvaluationSummary(BaseModel):
    """Mark counts and the mean of finalized scores only."""

    submission_id: uuid.UUID
    total_marks: int
    finalized_marks: int
    average_score: Optional[Decimal] = None
    supervisor_score: Optional[Decimal] = None
    is_complete: bool = False
