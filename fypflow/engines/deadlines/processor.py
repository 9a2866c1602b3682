"""
Deadline Processor - force-transitions stale submissions after a deadline.

For every passed, still-open deadline the sweep visits each project of the
deadline's batch in its own transaction and records the outcome in the
sweep ledger:

- latest submission awaiting review or revision: made final, annotated and
  locked for evaluation (LOCKED)
- latest submission approved: made final and locked (LOCKED)
- latest submission already locked: nothing to do (ALREADY_LOCKED)
- no submission: the group leader is told once (MISSED); the pair is
  revisited so a late upload is still locked, without a second notice

A deadline is closed once every project of its batch has a terminal outcome.
A failing pair is logged and the sweep moves on. Runs are idempotent and may
overlap: each pair is processed under its (project, document type) lock and
terminal ledger rows are skipped.
"""

import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fypflow.engines.submission.service import lock_submission
from fypflow.errors import NotFound
from fypflow.kernel import repositories
from fypflow.kernel.events.event_types import NotificationType, RecipientRole, intent
from fypflow.kernel.locks import version_key
from fypflow.kernel.models import Deadline, DeadlineSweepRecord, EventType, SweepOutcome
from fypflow.logging_config import bind_correlation_id, get_logger
from fypflow.orchestration.state_machine import auto_lock_note
from fypflow.orchestration.unit_of_work import UnitOfWork, run_in_transaction, run_read
from fypflow.runtime import Runtime
from fypflow.schemas.common import SweepFailure, SweepReport

logger = get_logger(__name__)

_DEADLINE_PASSED = intent(NotificationType.DEADLINE_PASSED, RecipientRole.GROUP_LEADER)


@dataclass(frozen=True)
class _DueDeadline:
    id: uuid.UUID
    batch_id: uuid.UUID
    document_type_id: uuid.UUID


class DeadlineProcessor:
    """
    Usage:
        report = await DeadlineProcessor(runtime).run_deadline_sweep()
    """

    def __init__(self, runtime: Runtime):
        self.runtime = runtime

    async def run_deadline_sweep(self) -> SweepReport:
        with bind_correlation_id(f"sweep-{uuid.uuid4().hex[:8]}") as run_id:
            now = self.runtime.clock.now()
            report = SweepReport(run_id=run_id, started_at=now)

            async def load(session: AsyncSession) -> List[_DueDeadline]:
                deadlines = await repositories.passed_open_deadlines(session, now)
                return [_DueDeadline(d.id, d.batch_id, d.document_type_id) for d in deadlines]

            due = await run_read(self.runtime, load)
            logger.info("Deadline sweep started", extra={"deadlines": len(due)})

            for deadline in due:
                report.deadlines_checked += 1
                if await self._process_deadline(deadline, report):
                    report.deadlines_closed += 1

            logger.info(
                "Deadline sweep finished",
                extra={
                    "locked": report.locked,
                    "already_locked": report.already_locked,
                    "missed": report.missed,
                    "skipped": report.skipped,
                    "failures": len(report.failures),
                    "deadlines_closed": report.deadlines_closed,
                },
            )
            return report

    async def _process_deadline(self, deadline: _DueDeadline, report: SweepReport) -> bool:
        """Process every project of the deadline's batch; True when the deadline was closed."""

        async def load(session: AsyncSession) -> List[uuid.UUID]:
            return [p.id for p in await repositories.projects_in_batch(session, deadline.batch_id)]

        project_ids = await run_read(self.runtime, load)
        settled = True
        for project_id in project_ids:
            try:
                outcome = await self.process_pair(deadline.id, project_id)
            except Exception as exc:
                settled = False
                report.failures.append(
                    SweepFailure(deadline_id=deadline.id, project_id=project_id, error=str(exc))
                )
                logger.exception(
                    "Deadline processing failed for project",
                    extra={"deadline_id": str(deadline.id), "project_id": str(project_id)},
                )
                continue

            if outcome is None:
                report.skipped += 1
            elif outcome is SweepOutcome.LOCKED:
                report.locked += 1
            elif outcome is SweepOutcome.ALREADY_LOCKED:
                report.already_locked += 1
            else:
                report.missed += 1
            if outcome is not None and not outcome.is_terminal:
                settled = False

        if not settled:
            return False
        return await self._close_deadline(deadline.id)

    async def process_pair(self, deadline_id: uuid.UUID, project_id: uuid.UUID) -> Optional[SweepOutcome]:
        """
        Process one (deadline, project) pair. Returns the recorded outcome, or
        None when a terminal outcome was already on the ledger.
        """

        async def load(session: AsyncSession) -> uuid.UUID:
            deadline = await session.get(Deadline, deadline_id)
            if deadline is None:
                raise NotFound("Deadline", deadline_id)
            return deadline.document_type_id

        document_type_id = await run_read(self.runtime, load)

        async def work(uow: UnitOfWork) -> Optional[SweepOutcome]:
            session = uow.session
            record = await repositories.sweep_record(session, deadline_id, project_id)
            if record is not None and record.outcome.is_terminal:
                return None

            project = await repositories.get_project(session, project_id)
            submission = await repositories.latest_submission(
                session, project_id, document_type_id, for_update=True
            )
            now = uow.clock.now()

            if submission is None:
                if record is None:
                    session.add(
                        DeadlineSweepRecord(
                            deadline_id=deadline_id,
                            project_id=project_id,
                            outcome=SweepOutcome.MISSED,
                            processed_at=now,
                        )
                    )
                    await uow.events.log(
                        event_type=EventType.DEADLINE_MISSED,
                        entity_type="project",
                        entity_id=project_id,
                        payload={"deadline_id": deadline_id, "document_type_id": document_type_id},
                    )
                    document_type = await repositories.get_document_type(session, document_type_id)
                    await uow.emit(
                        _DEADLINE_PASSED,
                        project,
                        {
                            "project_id": project.id,
                            "project_title": project.title,
                            "deadline_id": deadline_id,
                            "document_type_code": document_type.code,
                            "message": f"The deadline for {document_type.title} has passed without a submission.",
                        },
                    )
                    logger.info(
                        "Deadline missed",
                        extra={"project_id": str(project_id), "deadline_id": str(deadline_id)},
                    )
                return SweepOutcome.MISSED

            if submission.is_locked:
                outcome = SweepOutcome.ALREADY_LOCKED
            else:
                from_status = submission.status
                await lock_submission(
                    uow,
                    submission,
                    project,
                    actor_id=None,
                    note=auto_lock_note(from_status),
                )
                await uow.events.log(
                    event_type=EventType.SUBMISSION_AUTO_LOCKED,
                    entity_type="submission",
                    entity_id=submission.id,
                    payload={"deadline_id": deadline_id, "from_status": from_status},
                )
                outcome = SweepOutcome.LOCKED
                logger.info(
                    "Submission auto-locked",
                    extra={
                        "submission_id": str(submission.id),
                        "from_status": from_status.value,
                        "deadline_id": str(deadline_id),
                    },
                )

            if record is None:
                session.add(
                    DeadlineSweepRecord(
                        deadline_id=deadline_id,
                        project_id=project_id,
                        outcome=outcome,
                        submission_id=submission.id,
                        processed_at=now,
                    )
                )
            else:
                record.outcome = outcome
                record.submission_id = submission.id
                record.processed_at = now
            return outcome

        return await run_in_transaction(
            self.runtime,
            work,
            lock_keys=(version_key(project_id, document_type_id),),
        )

    async def _close_deadline(self, deadline_id: uuid.UUID) -> bool:
        async def work(uow: UnitOfWork) -> bool:
            session = uow.session
            deadline = await session.get(Deadline, deadline_id)
            if deadline is None or deadline.locked:
                return False
            projects = await repositories.projects_in_batch(session, deadline.batch_id)
            records = {r.project_id: r for r in await repositories.sweep_records_for(session, deadline_id)}
            for project in projects:
                record = records.get(project.id)
                if record is None or not record.outcome.is_terminal:
                    return False
            deadline.locked = True
            await uow.events.log(
                event_type=EventType.DEADLINE_PROCESSED,
                entity_type="deadline",
                entity_id=deadline_id,
                payload={"projects": len(projects)},
            )
            return True

        return await run_in_transaction(self.runtime, work)


async def run_deadline_sweep(runtime: Runtime) -> SweepReport:
    """Entry point for the scheduler and the admin endpoint."""
    return await DeadlineProcessor(runtime).run_deadline_sweep()
