"""Final result schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from fypflow.kernel.models.final_result import ResultState


class DocumentContribution(BaseModel):
    """Weighted contribution of one document type to the project total."""

    document_type_id: uuid.UUID
    document_type_code: str
    submission_id: uuid.UUID
    supervisor_score: Decimal
    supervisor_weight: int
    committee_avg_score: Decimal
    committee_weight: int
    weighted_score: Decimal


class FinalResultResponse(BaseModel):
    """Computed or released project result."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_id: uuid.UUID
    total_score: Decimal
    breakdown: List[dict]
    state: ResultState
    computed_by: Optional[uuid.UUID] = None
    computed_at: datetime
    released: bool
    released_by: Optional[uuid.UUID] = None
    released_at: Optional[datetime] = None
