"""
Scoring Engine - weighted project results.

For every required document type the final, fully evaluated submission
contributes

    supervisor_score * weight_supervisor / 100
        + committee_average * weight_committee / 100

and the project total is the mean of those contributions. Arithmetic is
exact Decimal throughout; only the stored values are quantized.
"""

import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from fypflow.engines.evaluation.aggregator import finalized_average
from fypflow.errors import BusinessRuleViolation, NotFound
from fypflow.kernel import repositories
from fypflow.kernel.events.event_types import EmailTemplate, NotificationType, RecipientRole, intent
from fypflow.kernel.locks import result_key
from fypflow.kernel.models import EventType, FinalResult, ResultState, SubmissionStatus
from fypflow.logging_config import get_logger
from fypflow.orchestration.state_machine import ResultAction, decide_result
from fypflow.orchestration.unit_of_work import UnitOfWork, run_in_transaction, run_read
from fypflow.runtime import Runtime
from fypflow.schemas.result import DocumentContribution

logger = get_logger(__name__)

SCORE_QUANTUM = Decimal("0.0001")
HUNDRED = Decimal("100")

_RELEASED = intent(
    NotificationType.RESULT_RELEASED,
    RecipientRole.GROUP_MEMBERS,
    email=EmailTemplate.RESULT_RELEASED,
)


def weighted_contribution(
    supervisor_score: Decimal,
    supervisor_weight: int,
    committee_avg: Decimal,
    committee_weight: int,
) -> Decimal:
    return (
        supervisor_score * Decimal(supervisor_weight) / HUNDRED
        + committee_avg * Decimal(committee_weight) / HUNDRED
    )


def total_score(contributions: Sequence[Decimal]) -> Decimal:
    """Mean of the contributions, unrounded."""
    if not contributions:
        raise ValueError("no contributions to combine")
    return sum(contributions, Decimal("0")) / len(contributions)


def quantize_score(value: Decimal) -> Decimal:
    return value.quantize(SCORE_QUANTUM, rounding=ROUND_HALF_UP)


class ScoringEngine:
    """Computes, freezes and serves project FinalResults."""

    def __init__(self, runtime: Runtime):
        self.runtime = runtime

    async def compute_final_result(
        self,
        project_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> FinalResult:
        """
        Compute (or recompute) the project's result.

        Every required document type needs a final submission whose
        evaluation is finalized. A released result is never recomputed.
        """

        async def work(uow: UnitOfWork) -> FinalResult:
            session = uow.session
            project = await repositories.get_project(session, project_id)
            existing = await repositories.final_result(session, project_id, for_update=True)
            decide_result(existing.state if existing else ResultState.UNCOMPUTED, ResultAction.COMPUTE)

            breakdown = await self._breakdown(session, project)
            total = total_score([item.weighted_score for item in breakdown])
            stored_breakdown = [
                item.model_copy(
                    update={
                        "weighted_score": quantize_score(item.weighted_score),
                        "committee_avg_score": quantize_score(item.committee_avg_score),
                    }
                ).model_dump(mode="json")
                for item in breakdown
            ]
            now = uow.clock.now()

            if existing is None:
                result = FinalResult(
                    project_id=project_id,
                    total_score=quantize_score(total),
                    breakdown=stored_breakdown,
                    computed_by=actor_id,
                    computed_at=now,
                    released=False,
                )
                session.add(result)
            else:
                result = existing
                result.total_score = quantize_score(total)
                result.breakdown = stored_breakdown
                result.computed_by = actor_id
                result.computed_at = now
            await session.flush()

            await uow.events.log(
                event_type=EventType.RESULT_COMPUTED,
                entity_type="final_result",
                entity_id=result.id,
                user_id=actor_id,
                payload={
                    "project_id": project_id,
                    "total_score": result.total_score,
                    "document_types": len(breakdown),
                    "recomputed": existing is not None,
                },
            )
            logger.info(
                "Final result computed",
                extra={"project_id": str(project_id), "total_score": str(result.total_score)},
            )
            return result

        return await run_in_transaction(self.runtime, work, lock_keys=(result_key(project_id),))

    async def _breakdown(self, session: AsyncSession, project) -> List[DocumentContribution]:
        document_types = await repositories.required_document_types(session, project)
        if not document_types:
            raise BusinessRuleViolation(
                "No active document types to score",
                code="NO_DOCUMENT_TYPES",
                details={"project_id": str(project.id)},
            )

        contributions: List[DocumentContribution] = []
        incomplete: List[str] = []
        for document_type in document_types:
            submission = await repositories.final_submission(session, project.id, document_type.id)
            if submission is None or submission.status is not SubmissionStatus.EVAL_FINALIZED:
                incomplete.append(document_type.code)
                continue
            supervisor_mark = await repositories.supervisor_mark(session, submission.id)
            supervisor_score = Decimal(supervisor_mark.score) if supervisor_mark else Decimal("0")
            committee_avg = finalized_average(await repositories.evaluation_marks(session, submission.id))
            committee_avg = committee_avg if committee_avg is not None else Decimal("0")
            contributions.append(
                DocumentContribution(
                    document_type_id=document_type.id,
                    document_type_code=document_type.code,
                    submission_id=submission.id,
                    supervisor_score=supervisor_score,
                    supervisor_weight=document_type.weight_supervisor,
                    committee_avg_score=committee_avg,
                    committee_weight=document_type.weight_committee,
                    weighted_score=weighted_contribution(
                        supervisor_score,
                        document_type.weight_supervisor,
                        committee_avg,
                        document_type.weight_committee,
                    ),
                )
            )

        if incomplete:
            raise BusinessRuleViolation(
                "All required documents must have a finalized evaluation: " + ", ".join(incomplete),
                code="INCOMPLETE_EVALUATIONS",
                details={"document_types": incomplete},
            )
        return contributions

    async def release_final_result(
        self,
        project_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> FinalResult:
        """
        Release a computed result to the group. One-way; of concurrent
        releases exactly one succeeds.
        """

        async def work(uow: UnitOfWork) -> FinalResult:
            session = uow.session
            project = await repositories.get_project(session, project_id)
            existing = await repositories.final_result(session, project_id)
            if existing is None:
                decide_result(ResultState.UNCOMPUTED, ResultAction.RELEASE)

            now: datetime = uow.clock.now()
            outcome = await session.execute(
                update(FinalResult)
                .where(FinalResult.project_id == project_id, FinalResult.released.is_(False))
                .values(released=True, released_by=actor_id, released_at=now)
                .execution_options(synchronize_session=False)
            )
            if outcome.rowcount != 1:
                decide_result(ResultState.RELEASED, ResultAction.RELEASE)
            await session.refresh(existing)

            await uow.events.log(
                event_type=EventType.RESULT_RELEASED,
                entity_type="final_result",
                entity_id=existing.id,
                user_id=actor_id,
                payload={"project_id": project_id, "total_score": existing.total_score},
            )
            await uow.emit(
                _RELEASED,
                project,
                {
                    "project_id": project.id,
                    "project_title": project.title,
                    "total_score": existing.total_score,
                },
            )
            logger.info("Final result released", extra={"project_id": str(project_id)})
            return existing

        return await run_in_transaction(self.runtime, work, lock_keys=(result_key(project_id),))

    async def get_final_result(self, project_id: uuid.UUID) -> FinalResult:
        """Computed or released result (committee view)."""

        async def load(session: AsyncSession) -> FinalResult:
            await repositories.get_project(session, project_id)
            result = await repositories.final_result(session, project_id)
            if result is None:
                raise NotFound("FinalResult", project_id)
            return result

        return await run_read(self.runtime, load)

    async def get_released_result(self, project_id: uuid.UUID) -> FinalResult:
        """Released result only (student view)."""
        result = await self.get_final_result(project_id)
        if not result.released:
            raise NotFound("FinalResult", project_id)
        return result
