"""Submission endpoints: upload, review, final marking and locking."""

import uuid
from typing import List, Optional

from fastapi import APIRouter, status

from fypflow.api.deps import ActorId, Submissions
from fypflow.schemas.submission import SubmissionCreate, SubmissionView, SupervisorReview

router = APIRouter()


@router.post("/submissions", response_model=SubmissionView, status_code=status.HTTP_201_CREATED)
async def create_submission(data: SubmissionCreate, actor_id: ActorId, service: Submissions):
    """Upload a new version of a document."""
    submission = await service.create(
        data.project_id,
        data.document_type_id,
        file_id=data.file_id,
        uploaded_by=actor_id,
        comments=data.comments,
    )
    return await service.get_submission(submission.id)


@router.get("/submissions/awaiting-evaluation", response_model=List[SubmissionView])
async def list_awaiting_evaluation(service: Submissions):
    """Submissions locked for evaluation or being evaluated."""
    return await service.awaiting_evaluation()


@router.get("/submissions/pending-review", response_model=List[SubmissionView])
async def list_pending_review(actor_id: ActorId, service: Submissions):
    """Submissions waiting for the calling supervisor."""
    return await service.pending_for_supervisor(actor_id)


@router.get("/submissions/{submission_id}", response_model=SubmissionView)
async def get_submission(submission_id: uuid.UUID, service: Submissions):
    return await service.get_submission(submission_id)


@router.post("/submissions/{submission_id}/review", response_model=SubmissionView)
async def review_submission(
    submission_id: uuid.UUID,
    data: SupervisorReview,
    actor_id: ActorId,
    service: Submissions,
):
    """Supervisor approves or requests a revision."""
    await service.review(
        submission_id,
        actor_id,
        approve=data.approve,
        feedback=data.feedback,
        marks=data.marks,
    )
    return await service.get_submission(submission_id)


@router.post("/submissions/{submission_id}/final", response_model=SubmissionView)
async def mark_submission_final(submission_id: uuid.UUID, actor_id: ActorId, service: Submissions):
    await service.mark_final(submission_id, actor_id)
    return await service.get_submission(submission_id)


@router.post("/submissions/{submission_id}/lock", response_model=SubmissionView)
async def lock_submission(submission_id: uuid.UUID, actor_id: ActorId, service: Submissions):
    await service.lock_for_evaluation(submission_id, actor_id)
    return await service.get_submission(submission_id)


@router.get("/projects/{project_id}/submissions", response_model=List[SubmissionView])
async def list_project_submissions(
    project_id: uuid.UUID,
    service: Submissions,
    document_type_id: Optional[uuid.UUID] = None,
):
    return await service.list_for_project(project_id, document_type_id)


@router.get(
    "/projects/{project_id}/document-types/{document_type_id}/latest",
    response_model=SubmissionView,
)
async def get_latest_submission(project_id: uuid.UUID, document_type_id: uuid.UUID, service: Submissions):
    return await service.latest(project_id, document_type_id)
