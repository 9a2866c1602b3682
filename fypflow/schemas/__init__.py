"""
Pydantic schemas for API requests and responses.
"""

from fypflow.schemas.common import ErrorResponse, HealthResponse, SweepFailure, SweepReport
from fypflow.schemas.evaluation import EvaluationMarkCreate, EvaluationMarkResponse, EvaluationSummary
from fypflow.schemas.result import DocumentContribution, FinalResultResponse
from fypflow.schemas.submission import FileRefResponse, SubmissionCreate, SubmissionView, SupervisorReview

__all__ = [
    "DocumentContribution",
    "ErrorResponse",
    "EvaluationMarkCreate",
    "EvaluationMarkResponse",
    "EvaluationSummary",
    "FileRefResponse",
    "FinalResultResponse",
    "HealthResponse",
    "SubmissionCreate",
    "SubmissionView",
    "SupervisorReview",
    "SweepFailure",
    "SweepReport",
]
