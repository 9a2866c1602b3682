"""
Explicit loaders for workflow entities.

Relations are fetched through these functions rather than traversed lazily,
so each service call shows exactly which rows it reads.
"""

import uuid
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import and_, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fypflow.errors import NotFound
from fypflow.kernel.models import (
    CommitteeKind,
    CommitteeMember,
    Deadline,
    DeadlineBatch,
    DeadlineSweepRecord,
    DocumentType,
    EvaluationMark,
    FinalResult,
    Project,
    Submission,
    SubmissionStatus,
    SupervisorMark,
)


async def get_project(session: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFound("Project", project_id)
    return project


async def get_document_type(session: AsyncSession, document_type_id: uuid.UUID) -> DocumentType:
    document_type = await session.get(DocumentType, document_type_id)
    if document_type is None:
        raise NotFound("DocumentType", document_type_id)
    return document_type


async def get_submission(
    session: AsyncSession,
    submission_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Submission:
    query = select(Submission).where(Submission.id == submission_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    submission = result.scalar_one_or_none()
    if submission is None:
        raise NotFound("Submission", submission_id)
    return submission


async def max_version(session: AsyncSession, project_id: uuid.UUID, document_type_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.max(Submission.version)).where(
            Submission.project_id == project_id,
            Submission.document_type_id == document_type_id,
        )
    )
    return result.scalar() or 0


async def list_submissions(
    session: AsyncSession,
    project_id: uuid.UUID,
    document_type_id: Optional[uuid.UUID] = None,
) -> List[Submission]:
    query = select(Submission).where(Submission.project_id == project_id)
    if document_type_id is not None:
        query = query.where(Submission.document_type_id == document_type_id)
    query = query.order_by(Submission.document_type_id, Submission.version)
    result = await session.execute(query)
    return list(result.scalars().all())


async def latest_submission(
    session: AsyncSession,
    project_id: uuid.UUID,
    document_type_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Optional[Submission]:
    query = (
        select(Submission)
        .where(
            Submission.project_id == project_id,
            Submission.document_type_id == document_type_id,
        )
        .order_by(Submission.version.desc())
        .limit(1)
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def final_submission_exists(
    session: AsyncSession,
    project_id: uuid.UUID,
    document_type_id: uuid.UUID,
    *,
    exclude_id: Optional[uuid.UUID] = None,
) -> bool:
    condition = and_(
        Submission.project_id == project_id,
        Submission.document_type_id == document_type_id,
        Submission.is_final.is_(True),
    )
    if exclude_id is not None:
        condition = and_(condition, Submission.id != exclude_id)
    result = await session.execute(select(exists().where(condition)))
    return bool(result.scalar())


async def final_submission(
    session: AsyncSession,
    project_id: uuid.UUID,
    document_type_id: uuid.UUID,
) -> Optional[Submission]:
    result = await session.execute(
        select(Submission).where(
            Submission.project_id == project_id,
            Submission.document_type_id == document_type_id,
            Submission.is_final.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def submissions_in_status(
    session: AsyncSession,
    statuses: Sequence[SubmissionStatus],
) -> List[Submission]:
    result = await session.execute(
        select(Submission)
        .where(Submission.status.in_(list(statuses)))
        .order_by(Submission.uploaded_at)
    )
    return list(result.scalars().all())


async def deadline_for(
    session: AsyncSession,
    project: Project,
    document_type_id: uuid.UUID,
) -> Optional[Deadline]:
    """The deadline of a document type in the project's batch, if any."""
    if project.deadline_batch_id is None:
        return None
    result = await session.execute(
        select(Deadline).where(
            Deadline.batch_id == project.deadline_batch_id,
            Deadline.document_type_id == document_type_id,
        )
    )
    return result.scalar_one_or_none()


async def passed_open_deadlines(session: AsyncSession, now: datetime) -> List[Deadline]:
    result = await session.execute(
        select(Deadline)
        .join(DeadlineBatch, DeadlineBatch.id == Deadline.batch_id)
        .where(
            Deadline.due_at <= now,
            Deadline.locked.is_(False),
            DeadlineBatch.is_active.is_(True),
        )
        .order_by(Deadline.due_at, Deadline.sort_order)
    )
    return list(result.scalars().all())


async def projects_in_batch(session: AsyncSession, batch_id: uuid.UUID) -> List[Project]:
    result = await session.execute(
        select(Project).where(Project.deadline_batch_id == batch_id).order_by(Project.created_at)
    )
    return list(result.scalars().all())


async def sweep_record(
    session: AsyncSession,
    deadline_id: uuid.UUID,
    project_id: uuid.UUID,
) -> Optional[DeadlineSweepRecord]:
    result = await session.execute(
        select(DeadlineSweepRecord).where(
            DeadlineSweepRecord.deadline_id == deadline_id,
            DeadlineSweepRecord.project_id == project_id,
        )
    )
    return result.scalar_one_or_none()


async def sweep_records_for(session: AsyncSession, deadline_id: uuid.UUID) -> List[DeadlineSweepRecord]:
    result = await session.execute(
        select(DeadlineSweepRecord).where(DeadlineSweepRecord.deadline_id == deadline_id)
    )
    return list(result.scalars().all())


async def required_document_types(session: AsyncSession, project: Project) -> List[DocumentType]:
    """
    Active document types a project is scored on: those with a deadline in
    its batch, or every active type when no batch is assigned.
    """
    query = select(DocumentType).where(DocumentType.is_active.is_(True))
    if project.deadline_batch_id is not None:
        query = query.join(Deadline, Deadline.document_type_id == DocumentType.id).where(
            Deadline.batch_id == project.deadline_batch_id
        )
    query = query.order_by(DocumentType.display_order, DocumentType.code)
    result = await session.execute(query)
    return list(result.scalars().all())


async def committee_user_ids(session: AsyncSession, committee: CommitteeKind) -> List[uuid.UUID]:
    result = await session.execute(
        select(CommitteeMember.user_id)
        .where(
            CommitteeMember.committee == committee,
            CommitteeMember.is_active.is_(True),
        )
        .order_by(CommitteeMember.created_at)
    )
    return list(result.scalars().all())


async def supervisor_mark(session: AsyncSession, submission_id: uuid.UUID) -> Optional[SupervisorMark]:
    result = await session.execute(
        select(SupervisorMark).where(SupervisorMark.submission_id == submission_id)
    )
    return result.scalar_one_or_none()


async def evaluation_marks(session: AsyncSession, submission_id: uuid.UUID) -> List[EvaluationMark]:
    result = await session.execute(
        select(EvaluationMark)
        .where(EvaluationMark.submission_id == submission_id)
        .order_by(EvaluationMark.created_at)
    )
    return list(result.scalars().all())


async def evaluation_mark(
    session: AsyncSession,
    submission_id: uuid.UUID,
    evaluator_id: uuid.UUID,
) -> Optional[EvaluationMark]:
    result = await session.execute(
        select(EvaluationMark).where(
            EvaluationMark.submission_id == submission_id,
            EvaluationMark.evaluator_id == evaluator_id,
        )
    )
    return result.scalar_one_or_none()


async def final_result(
    session: AsyncSession,
    project_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Optional[FinalResult]:
    query = select(FinalResult).where(FinalResult.project_id == project_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def pending_for_supervisor(session: AsyncSession, supervisor_id: uuid.UUID) -> List[Submission]:
    result = await session.execute(
        select(Submission)
        .join(Project, Project.id == Submission.project_id)
        .where(
            Project.supervisor_id == supervisor_id,
            Submission.status == SubmissionStatus.PENDING_SUPERVISOR,
        )
        .order_by(Submission.uploaded_at)
    )
    return list(result.scalars().all())
