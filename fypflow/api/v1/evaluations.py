"""Evaluation committee endpoints."""

import uuid
from typing import List

from fastapi import APIRouter

from fypflow.api.deps import ActorId, Evaluations
from fypflow.schemas.evaluation import EvaluationMarkCreate, EvaluationMarkResponse, EvaluationSummary

router = APIRouter()


@router.put("/submissions/{submission_id}/evaluations", response_model=EvaluationMarkResponse)
async def record_mark(
    submission_id: uuid.UUID,
    data: EvaluationMarkCreate,
    actor_id: ActorId,
    aggregator: Evaluations,
):
    """Record or update the caller's mark; finalize=true makes it immutable."""
    return await aggregator.record_mark(
        submission_id,
        actor_id,
        data.score,
        comments=data.comments,
        finalize=data.finalize,
    )


@router.post("/submissions/{submission_id}/evaluations/finalize", response_model=EvaluationMarkResponse)
async def finalize_mark(submission_id: uuid.UUID, actor_id: ActorId, aggregator: Evaluations):
    return await aggregator.finalize_mark(submission_id, actor_id)


@router.get("/submissions/{submission_id}/evaluations", response_model=List[EvaluationMarkResponse])
async def list_marks(submission_id: uuid.UUID, aggregator: Evaluations):
    return await aggregator.marks(submission_id)


@router.get("/submissions/{submission_id}/evaluations/summary", response_model=EvaluationSummary)
async def evaluation_summary(submission_id: uuid.UUID, aggregator: Evaluations):
    return await aggregator.summary(submission_id)
