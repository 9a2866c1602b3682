"""
Submission view builder.

Combines a submission row with its document type, its deadline and the
resolved file reference into the payload shown to users.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fypflow.kernel import repositories
from fypflow.kernel.models import Deadline, DocumentType, Project, Submission
from fypflow.orchestration.state_machine import can_edit, can_mark_final, status_display
from fypflow.ports import FileStoragePort
from fypflow.schemas.submission import FileRefResponse, SubmissionView


async def build_view(
    submission: Submission,
    *,
    document_type: Optional[DocumentType],
    deadline: Optional[Deadline],
    now: datetime,
    file_storage: FileStoragePort,
) -> SubmissionView:
    deadline_passed = deadline is not None and deadline.is_past(now)
    is_late = deadline is not None and deadline.is_past(submission.uploaded_at)

    file_ref = None
    if submission.file_id:
        resolved = await file_storage.resolve_file(submission.file_id)
        if resolved is not None:
            file_ref = FileRefResponse(url=resolved.url, metadata=resolved.metadata)

    return SubmissionView(
        id=submission.id,
        project_id=submission.project_id,
        document_type_id=submission.document_type_id,
        document_type_code=document_type.code if document_type else None,
        document_type_title=document_type.title if document_type else None,
        version=submission.version,
        file=file_ref,
        uploaded_by=submission.uploaded_by,
        uploaded_at=submission.uploaded_at,
        status=submission.status,
        status_display=status_display(submission.status, is_late),
        is_final=submission.is_final,
        supervisor_reviewed_at=submission.supervisor_reviewed_at,
        comments=submission.comments,
        can_edit=can_edit(submission.status, deadline_passed, submission.is_final),
        can_mark_final=can_mark_final(submission.status, submission.is_final),
        is_locked=submission.is_locked,
        deadline=deadline.due_at if deadline else None,
        is_late=is_late,
        deadline_passed=deadline_passed,
    )


async def build_views(
    session: AsyncSession,
    submissions: List[Submission],
    *,
    now: datetime,
    file_storage: FileStoragePort,
) -> List[SubmissionView]:
    """Build views for many submissions, loading each project and document type once."""
    projects: Dict = {}
    document_types: Dict = {}
    deadlines: Dict = {}
    views = []
    for submission in submissions:
        project: Project = projects.get(submission.project_id)
        if project is None:
            project = projects[submission.project_id] = await repositories.get_project(
                session, submission.project_id
            )
        if submission.document_type_id not in document_types:
            document_types[submission.document_type_id] = await repositories.get_document_type(
                session, submission.document_type_id
            )
        key = (submission.project_id, submission.document_type_id)
        if key not in deadlines:
            deadlines[key] = await repositories.deadline_for(session, project, submission.document_type_id)
        views.append(
            await build_view(
                submission,
                document_type=document_types[submission.document_type_id],
                deadline=deadlines[key],
                now=now,
                file_storage=file_storage,
            )
        )
    return views
