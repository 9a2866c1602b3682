"""
Evaluation Aggregator - committee marks, finalization and averages.

Each evaluator holds at most one mark per submission. A draft mark can be
overwritten; a finalized one is immutable. The first mark moves the
submission into EVAL_IN_PROGRESS and the completion policy decides when the
evaluation as a whole is finalized.
"""

import uuid
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from fypflow.engines.marks import validate_score
from fypflow.errors import BusinessRuleViolation, NotFound
from fypflow.kernel import repositories
from fypflow.kernel.events.event_types import NotificationType, RecipientRole, intent
from fypflow.kernel.locks import submission_key, version_key
from fypflow.kernel.models import CommitteeKind, EvaluationMark, EventType, Submission, SubmissionStatus
from fypflow.logging_config import get_logger
from fypflow.orchestration.state_machine import StateMachine, SubmissionAction, decide
from fypflow.orchestration.unit_of_work import UnitOfWork, run_in_transaction, run_read
from fypflow.runtime import Runtime
from fypflow.schemas.evaluation import EvaluationSummary

logger = get_logger(__name__)

RECORDED_MARKS = "recorded_marks"
COMMITTEE_ROSTER = "committee_roster"

_MARK_FINALIZED = intent(NotificationType.EVALUATION_MARK_FINALIZED, RecipientRole.FYP_COMMITTEE)

_MARKABLE = (SubmissionStatus.LOCKED_FOR_EVAL, SubmissionStatus.EVAL_IN_PROGRESS)


def finalized_average(marks: Sequence[EvaluationMark]) -> Optional[Decimal]:
    """Mean of finalized scores; drafts are excluded. None when nothing is final."""
    scores = [Decimal(m.score) for m in marks if m.is_final]
    if not scores:
        return None
    return sum(scores, Decimal("0")) / len(scores)


def is_complete(total: int, finalized: int, policy: str, roster_size: int = 0) -> bool:
    """
    recorded_marks: everyone who has marked has finalized (at least one mark).
    committee_roster: additionally, at least as many final marks as active
    evaluation committee members.
    """
    if total < 1 or finalized != total:
        return False
    if policy == COMMITTEE_ROSTER:
        return finalized >= roster_size
    return True


class EvaluationAggregator:
    """Records committee marks and finalizes evaluations."""

    def __init__(self, runtime: Runtime):
        self.runtime = runtime

    @property
    def policy(self) -> str:
        return self.runtime.settings.evaluation_completion_policy

    async def _lock_keys(self, submission_id: uuid.UUID):
        async def load(session: AsyncSession):
            submission = await repositories.get_submission(session, submission_id)
            return (
                version_key(submission.project_id, submission.document_type_id),
                submission_key(submission.id),
            )

        return await run_read(self.runtime, load)

    async def record_mark(
        self,
        submission_id: uuid.UUID,
        evaluator_id: uuid.UUID,
        score,
        comments: Optional[str] = None,
        finalize: bool = False,
    ) -> EvaluationMark:
        """Create or update the evaluator's mark; optionally finalize it."""
        score = validate_score(score)
        lock_keys = await self._lock_keys(submission_id)

        async def work(uow: UnitOfWork) -> EvaluationMark:
            session = uow.session
            submission = await repositories.get_submission(session, submission_id, for_update=True)
            self._ensure_markable(submission)
            if self.policy == COMMITTEE_ROSTER and evaluator_id not in await uow.committee(
                CommitteeKind.EVALUATION
            ):
                raise BusinessRuleViolation(
                    "Only evaluation committee members can mark submissions",
                    code="PERMISSION_DENIED",
                )

            mark = await repositories.evaluation_mark(session, submission_id, evaluator_id)
            if mark is not None and mark.is_final:
                raise BusinessRuleViolation(
                    "Evaluation mark is already finalized and cannot be changed",
                    code="MARK_FINALIZED",
                    details={"submission_id": str(submission_id), "evaluator_id": str(evaluator_id)},
                )
            if mark is None:
                mark = EvaluationMark(
                    submission_id=submission_id,
                    evaluator_id=evaluator_id,
                    score=score,
                    comments=comments,
                    is_final=False,
                )
                session.add(mark)
            else:
                mark.score = score
                mark.comments = comments
            await uow.events.log(
                event_type=EventType.EVALUATION_MARK_SAVED,
                entity_type="submission",
                entity_id=submission_id,
                user_id=evaluator_id,
                payload={"score": score, "finalize": finalize},
            )

            project = await repositories.get_project(session, submission.project_id)
            if submission.status is SubmissionStatus.LOCKED_FOR_EVAL:
                await StateMachine(uow).apply(
                    submission,
                    decide(submission.status, SubmissionAction.START_EVALUATION),
                    project,
                    evaluator_id,
                )
            if finalize:
                await self._finalize(uow, submission, mark, evaluator_id)
            return mark

        return await run_in_transaction(self.runtime, work, lock_keys=lock_keys)

    async def finalize_mark(self, submission_id: uuid.UUID, evaluator_id: uuid.UUID) -> EvaluationMark:
        """Finalize an existing draft mark."""
        lock_keys = await self._lock_keys(submission_id)

        async def work(uow: UnitOfWork) -> EvaluationMark:
            session = uow.session
            submission = await repositories.get_submission(session, submission_id, for_update=True)
            mark = await repositories.evaluation_mark(session, submission_id, evaluator_id)
            if mark is None:
                raise NotFound("EvaluationMark", f"{submission_id}/{evaluator_id}")
            if mark.is_final:
                raise BusinessRuleViolation(
                    "Evaluation mark is already finalized",
                    code="MARK_FINALIZED",
                    details={"submission_id": str(submission_id), "evaluator_id": str(evaluator_id)},
                )
            self._ensure_markable(submission)
            await self._finalize(uow, submission, mark, evaluator_id)
            return mark

        return await run_in_transaction(self.runtime, work, lock_keys=lock_keys)

    def _ensure_markable(self, submission: Submission) -> None:
        if submission.status is SubmissionStatus.EVAL_FINALIZED:
            raise BusinessRuleViolation(
                "Evaluation of this submission is already finalized",
                code="EVALUATION_FINALIZED",
                details={"state": submission.status.value, "action": "record_mark"},
            )
        if submission.status not in _MARKABLE:
            raise BusinessRuleViolation(
                f"Cannot record marks for a submission in state {submission.status.value}",
                code="SUBMISSION_NOT_LOCKED",
                details={"state": submission.status.value, "action": "record_mark"},
            )

    async def _finalize(
        self,
        uow: UnitOfWork,
        submission: Submission,
        mark: EvaluationMark,
        evaluator_id: uuid.UUID,
    ) -> None:
        session = uow.session
        mark.is_final = True
        mark.finalized_at = uow.clock.now()
        await session.flush()
        await uow.events.log(
            event_type=EventType.EVALUATION_MARK_FINALIZED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=evaluator_id,
            payload={"score": mark.score},
        )

        project = await repositories.get_project(session, submission.project_id)
        await uow.emit(
            _MARK_FINALIZED,
            project,
            {
                "submission_id": submission.id,
                "project_id": project.id,
                "project_title": project.title,
                "evaluator_id": evaluator_id,
            },
        )

        marks = await repositories.evaluation_marks(session, submission.id)
        finalized = sum(1 for m in marks if m.is_final)
        roster = await uow.committee(CommitteeKind.EVALUATION) if self.policy == COMMITTEE_ROSTER else []
        if is_complete(len(marks), finalized, self.policy, len(roster)):
            await StateMachine(uow).apply(
                submission,
                decide(submission.status, SubmissionAction.FINALIZE_EVALUATION),
                project,
                evaluator_id,
                payload={"average_score": finalized_average(marks)},
            )
            logger.info(
                "Evaluation finalized",
                extra={"submission_id": str(submission.id), "marks": len(marks)},
            )

    # ==================== Read views ====================

    async def marks(self, submission_id: uuid.UUID) -> List[EvaluationMark]:
        async def load(session: AsyncSession) -> List[EvaluationMark]:
            await repositories.get_submission(session, submission_id)
            return await repositories.evaluation_marks(session, submission_id)

        return await run_read(self.runtime, load)

    async def summary(self, submission_id: uuid.UUID) -> EvaluationSummary:
        """Total and finalized mark counts with the mean of finalized scores only."""

        async def load(session: AsyncSession) -> EvaluationSummary:
            submission = await repositories.get_submission(session, submission_id)
            marks = await repositories.evaluation_marks(session, submission_id)
            supervisor_mark = await repositories.supervisor_mark(session, submission_id)
            return EvaluationSummary(
                submission_id=submission_id,
                total_marks=len(marks),
                finalized_marks=sum(1 for m in marks if m.is_final),
                average_score=finalized_average(marks),
                supervisor_score=supervisor_mark.score if supervisor_mark else None,
                is_complete=submission.status is SubmissionStatus.EVAL_FINALIZED,
            )

        return await run_read(self.runtime, load)
