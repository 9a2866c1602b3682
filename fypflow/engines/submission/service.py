"""
Submission Service - document upload, supervisor review and locking.

Every mutation runs through run_in_transaction under the keyed locks of the
submission's (project, document type) pair and, for existing submissions,
the submission itself. Identifiers needed to build the lock keys are read in
a separate short session before the locks are taken.
"""

import uuid
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from fypflow.engines.marks import validate_score
from fypflow.engines.submission import version_allocator
from fypflow.engines.submission.views import build_view, build_views
from fypflow.errors import BusinessRuleViolation, NotFound
from fypflow.kernel import repositories
from fypflow.kernel.locks import submission_key, version_key
from fypflow.kernel.models import (
    CommitteeKind,
    EventType,
    Project,
    Submission,
    SubmissionStatus,
    SupervisorMark,
)
from fypflow.kernel.models.base import generate_uuid
from fypflow.logging_config import get_logger
from fypflow.orchestration.state_machine import (
    LATE_SUBMISSION_PREFIX,
    StateMachine,
    SubmissionAction,
    decide,
    decide_review,
)
from fypflow.orchestration.unit_of_work import UnitOfWork, run_in_transaction, run_read
from fypflow.runtime import Runtime
from fypflow.schemas.submission import SubmissionView

logger = get_logger(__name__)

AWAITING_EVALUATION = (SubmissionStatus.LOCKED_FOR_EVAL, SubmissionStatus.EVAL_IN_PROGRESS)


async def ensure_latest(session: AsyncSession, submission: Submission) -> None:
    latest = await repositories.latest_submission(
        session, submission.project_id, submission.document_type_id
    )
    if latest is None or latest.id != submission.id:
        raise BusinessRuleViolation(
            f"Only the latest version can be changed; v{submission.version} has been superseded",
            code="NOT_LATEST_VERSION",
            details={"submission_id": str(submission.id), "version": submission.version},
        )


async def ensure_no_other_final(session: AsyncSession, submission: Submission) -> None:
    if await repositories.final_submission_exists(
        session,
        submission.project_id,
        submission.document_type_id,
        exclude_id=submission.id,
    ):
        raise BusinessRuleViolation(
            "A final submission already exists for this document type",
            code="FINAL_EXISTS",
            details={
                "project_id": str(submission.project_id),
                "document_type_id": str(submission.document_type_id),
            },
        )


async def lock_submission(
    uow: UnitOfWork,
    submission: Submission,
    project: Project,
    *,
    actor_id: Optional[uuid.UUID],
    note: Optional[str] = None,
) -> Submission:
    """
    Lock a submission for evaluation and make it the final version.

    Used by the explicit lock action and by the deadline sweep; the caller
    holds the pair and submission locks.
    """
    transition = decide(submission.status, SubmissionAction.LOCK)
    await ensure_no_other_final(uow.session, submission)
    if note:
        submission.append_comment(note)
    await StateMachine(uow).apply(
        submission,
        transition,
        project,
        actor_id,
        payload={"auto_locked": actor_id is None},
    )
    return submission


class SubmissionService:
    """
    Versioned document submissions and their supervisor-facing lifecycle.

    Usage:
        service = SubmissionService(runtime)
        submission = await service.create(project_id, doc_type_id, file_id="f1", uploaded_by=leader_id)
        await service.review(submission.id, supervisor_id, approve=True, marks=Decimal("85"))
    """

    def __init__(self, runtime: Runtime):
        self.runtime = runtime

    async def _pair_of(self, submission_id: uuid.UUID) -> Tuple[uuid.UUID, uuid.UUID]:
        async def load(session: AsyncSession) -> Tuple[uuid.UUID, uuid.UUID]:
            submission = await repositories.get_submission(session, submission_id)
            return submission.project_id, submission.document_type_id

        return await run_read(self.runtime, load)

    async def _submission_locks(self, submission_id: uuid.UUID) -> Tuple[str, str]:
        project_id, document_type_id = await self._pair_of(submission_id)
        return version_key(project_id, document_type_id), submission_key(submission_id)

    async def create(
        self,
        project_id: uuid.UUID,
        document_type_id: uuid.UUID,
        *,
        file_id: Optional[str] = None,
        uploaded_by: Optional[uuid.UUID] = None,
        comments: Optional[str] = None,
    ) -> Submission:
        """
        Upload a new version of a document.

        Rejected when a final submission already exists for the pair. Uploads
        after the deadline are accepted and flagged as late.
        """

        async def work(uow: UnitOfWork) -> Submission:
            session = uow.session
            project = await repositories.get_project(session, project_id)
            if not project.is_approved:
                raise BusinessRuleViolation(
                    "Project must be approved before submitting documents",
                    code="PROJECT_NOT_APPROVED",
                    details={"project_id": str(project_id), "status": project.status.value},
                )
            document_type = await repositories.get_document_type(session, document_type_id)
            if not document_type.is_active:
                raise BusinessRuleViolation(
                    f"Document type {document_type.code} is not active",
                    code="DOCUMENT_TYPE_INACTIVE",
                )
            if uploaded_by is not None and not project.has_member(uploaded_by):
                raise BusinessRuleViolation(
                    "Only members of the project group can upload submissions",
                    code="PERMISSION_DENIED",
                )
            if await repositories.final_submission_exists(session, project_id, document_type_id):
                raise BusinessRuleViolation(
                    f"A final submission already exists for {document_type.code}",
                    code="FINAL_EXISTS",
                    details={"project_id": str(project_id), "document_type_id": str(document_type_id)},
                )

            now = uow.clock.now()
            deadline = await repositories.deadline_for(session, project, document_type_id)
            is_late = deadline is not None and deadline.is_past(now)
            note = comments
            if is_late:
                note = f"{LATE_SUBMISSION_PREFIX} {comments}" if comments else LATE_SUBMISSION_PREFIX

            transition = decide(None, SubmissionAction.CREATE)
            version = await version_allocator.next_version(session, project_id, document_type_id)
            submission = Submission(
                id=generate_uuid(),
                project_id=project_id,
                document_type_id=document_type_id,
                version=version,
                file_id=file_id,
                uploaded_by=uploaded_by,
                uploaded_at=now,
                status=transition.to_status,
                is_final=False,
                comments=note,
            )
            session.add(submission)
            await session.flush()

            await uow.events.log(
                event_type=EventType.SUBMISSION_CREATED,
                entity_type="submission",
                entity_id=submission.id,
                user_id=uploaded_by,
                payload={
                    "project_id": project_id,
                    "document_type_id": document_type_id,
                    "version": version,
                    "is_late": is_late,
                },
            )
            await StateMachine(uow).apply(
                submission,
                transition,
                project,
                uploaded_by,
                payload={"document_type_code": document_type.code, "is_late": is_late},
            )
            logger.info(
                "Submission created",
                extra={
                    "submission_id": str(submission.id),
                    "project_id": str(project_id),
                    "document_type": document_type.code,
                    "version": version,
                    "is_late": is_late,
                },
            )
            return submission

        return await run_in_transaction(
            self.runtime,
            work,
            lock_keys=version_allocator.serialized(project_id, document_type_id),
        )

    async def review(
        self,
        submission_id: uuid.UUID,
        supervisor_id: uuid.UUID,
        *,
        approve: bool,
        feedback: Optional[str] = None,
        marks: Optional[Decimal] = None,
    ) -> Submission:
        """
        Supervisor approves or requests a revision of the latest version.

        At or after the deadline, approval requires marks and locks the
        submission as final; revision is refused.
        """
        score = validate_score(marks, "marks") if marks is not None else None
        lock_keys = await self._submission_locks(submission_id)

        async def work(uow: UnitOfWork) -> Submission:
            session = uow.session
            submission = await repositories.get_submission(session, submission_id, for_update=True)
            project = await repositories.get_project(session, submission.project_id)
            if project.supervisor_id != supervisor_id:
                raise BusinessRuleViolation(
                    "Only the assigned supervisor can review submissions",
                    code="PERMISSION_DENIED",
                )
            await ensure_latest(session, submission)

            now = uow.clock.now()
            deadline = await repositories.deadline_for(session, project, submission.document_type_id)
            past_deadline = deadline is not None and deadline.is_past(now)
            transition = decide_review(
                submission.status,
                approve=approve,
                feedback=feedback,
                has_marks=score is not None,
                past_deadline=past_deadline,
                is_final=submission.is_final,
            )
            if transition.forces_final:
                await ensure_no_other_final(session, submission)

            if score is not None:
                await self._save_supervisor_mark(uow, submission, supervisor_id, score, feedback)
            if transition.action is SubmissionAction.REQUEST_REVISION:
                submission.append_comment(feedback.strip())
            submission.supervisor_reviewed_at = now

            payload = {"past_deadline": past_deadline}
            if transition.action is SubmissionAction.REQUEST_REVISION:
                payload["feedback"] = feedback
            await StateMachine(uow).apply(submission, transition, project, supervisor_id, payload=payload)
            logger.info(
                "Submission reviewed",
                extra={
                    "submission_id": str(submission.id),
                    "action": transition.action.value,
                    "status": transition.to_status.value,
                    "past_deadline": past_deadline,
                },
            )
            return submission

        return await run_in_transaction(self.runtime, work, lock_keys=lock_keys)

    async def _save_supervisor_mark(
        self,
        uow: UnitOfWork,
        submission: Submission,
        supervisor_id: uuid.UUID,
        score: Decimal,
        comments: Optional[str],
    ) -> SupervisorMark:
        mark = await repositories.supervisor_mark(uow.session, submission.id)
        if mark is None:
            mark = SupervisorMark(
                submission_id=submission.id,
                supervisor_id=supervisor_id,
                score=score,
                comments=comments,
            )
            uow.session.add(mark)
        else:
            mark.supervisor_id = supervisor_id
            mark.score = score
            mark.comments = comments
        await uow.events.log(
            event_type=EventType.SUPERVISOR_MARKS_SAVED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=supervisor_id,
            payload={"score": score},
        )
        return mark

    async def mark_final(self, submission_id: uuid.UUID, actor_id: uuid.UUID) -> Submission:
        """Group leader freezes the latest version; no further versions may be uploaded."""
        lock_keys = await self._submission_locks(submission_id)

        async def work(uow: UnitOfWork) -> Submission:
            session = uow.session
            submission = await repositories.get_submission(session, submission_id, for_update=True)
            project = await repositories.get_project(session, submission.project_id)
            if project.group_leader_id != actor_id:
                raise BusinessRuleViolation(
                    "Only the group leader can mark submissions as final",
                    code="PERMISSION_DENIED",
                )
            if submission.is_final:
                raise BusinessRuleViolation(
                    "Submission is already final",
                    code="CANNOT_MARK_FINAL",
                    details={"state": submission.status.value, "action": SubmissionAction.MARK_FINAL.value},
                )
            transition = decide(submission.status, SubmissionAction.MARK_FINAL)
            await ensure_latest(session, submission)
            await ensure_no_other_final(session, submission)
            await StateMachine(uow).apply(submission, transition, project, actor_id)
            return submission

        return await run_in_transaction(self.runtime, work, lock_keys=lock_keys)

    async def lock_for_evaluation(
        self,
        submission_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Submission:
        """
        Lock the latest version for evaluation (FYP committee action).

        Locking an already locked submission is rejected and never regresses
        its state.
        """
        lock_keys = await self._submission_locks(submission_id)

        async def work(uow: UnitOfWork) -> Submission:
            session = uow.session
            if actor_id is not None and actor_id not in await uow.committee(CommitteeKind.FYP):
                raise BusinessRuleViolation(
                    "Only the FYP committee can lock submissions for evaluation",
                    code="PERMISSION_DENIED",
                )
            submission = await repositories.get_submission(session, submission_id, for_update=True)
            project = await repositories.get_project(session, submission.project_id)
            decide(submission.status, SubmissionAction.LOCK)
            await ensure_latest(session, submission)
            await lock_submission(uow, submission, project, actor_id=actor_id)
            logger.info(
                "Submission locked for evaluation",
                extra={"submission_id": str(submission.id), "actor_id": str(actor_id)},
            )
            return submission

        return await run_in_transaction(self.runtime, work, lock_keys=lock_keys)

    # ==================== Read views ====================

    async def get_submission(self, submission_id: uuid.UUID) -> SubmissionView:
        async def load(session: AsyncSession) -> SubmissionView:
            submission = await repositories.get_submission(session, submission_id)
            project = await repositories.get_project(session, submission.project_id)
            return await build_view(
                submission,
                document_type=await repositories.get_document_type(session, submission.document_type_id),
                deadline=await repositories.deadline_for(session, project, submission.document_type_id),
                now=self.runtime.clock.now(),
                file_storage=self.runtime.file_storage,
            )

        return await run_read(self.runtime, load)

    async def list_for_project(
        self,
        project_id: uuid.UUID,
        document_type_id: Optional[uuid.UUID] = None,
    ) -> List[SubmissionView]:
        async def load(session: AsyncSession) -> List[SubmissionView]:
            await repositories.get_project(session, project_id)
            submissions = await repositories.list_submissions(session, project_id, document_type_id)
            return await build_views(
                session,
                submissions,
                now=self.runtime.clock.now(),
                file_storage=self.runtime.file_storage,
            )

        return await run_read(self.runtime, load)

    async def latest(self, project_id: uuid.UUID, document_type_id: uuid.UUID) -> SubmissionView:
        async def load(session: AsyncSession) -> SubmissionView:
            submission = await repositories.latest_submission(session, project_id, document_type_id)
            if submission is None:
                raise NotFound("Submission", f"{project_id}/{document_type_id}")
            views = await build_views(
                session,
                [submission],
                now=self.runtime.clock.now(),
                file_storage=self.runtime.file_storage,
            )
            return views[0]

        return await run_read(self.runtime, load)

    async def awaiting_evaluation(self) -> List[SubmissionView]:
        """Submissions visible to the evaluation committee."""

        async def load(session: AsyncSession) -> List[SubmissionView]:
            submissions = await repositories.submissions_in_status(session, AWAITING_EVALUATION)
            return await build_views(
                session,
                submissions,
                now=self.runtime.clock.now(),
                file_storage=self.runtime.file_storage,
            )

        return await run_read(self.runtime, load)

    async def pending_for_supervisor(self, supervisor_id: uuid.UUID) -> List[SubmissionView]:
        """Submissions of the supervisor's projects waiting for review."""

        async def load(session: AsyncSession) -> List[SubmissionView]:
            submissions = await repositories.pending_for_supervisor(session, supervisor_id)
            return await build_views(
                session,
                submissions,
                now=self.runtime.clock.now(),
                file_storage=self.runtime.file_storage,
            )

        return await run_read(self.runtime, load)
