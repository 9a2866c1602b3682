"""
FinalResult model - the weighted project score.

No row means UNCOMPUTED; a row is COMPUTED until released, then RELEASED
and frozen.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from fypflow.kernel.models.base import Base, TimestampMixin, generate_uuid


class ResultState(str, Enum):
    """FinalResult lifecycle."""

    UNCOMPUTED = "UNCOMPUTED"
    COMPUTED = "COMPUTED"
    RELEASED = "RELEASED"


class FinalResult(Base, TimestampMixin):
    """
    Computed final score for a project.

    breakdown holds one entry per document type:
        {"document_type_code": "SRS", "supervisor_score": "85",
         "supervisor_weight": 20, "committee_avg_score": "78.5",
         "committee_weight": 80, "weighted_score": "79.8000", ...}
    """

    __tablename__ = "final_results"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    total_score: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    breakdown: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    computed_by: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    computed_at: Mapped[datetime] = mapped_column(nullable=False)
    released: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    released_by: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    released_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    @property
    def state(self) -> ResultState:
        return ResultState.RELEASED if self.released else ResultState.COMPUTED

    def __repr__(self) -> str:
        return f"<FinalResult {self.project_id} {self.total_score} {self.state.value}>"
